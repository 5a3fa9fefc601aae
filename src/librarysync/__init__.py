"""librarysync - keeps a media library and its sync providers in step."""

__version__ = "0.1.0"
