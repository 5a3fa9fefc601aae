"""Infrastructure layer: persistence, providers, observability, lifecycle."""
