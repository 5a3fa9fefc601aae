"""Application layer: routing, reconciliation and event handling."""
