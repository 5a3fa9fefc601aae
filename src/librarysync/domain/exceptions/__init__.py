"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # message is kept as an attribute so handlers can log it without parsing str(exc).
    # Never raise this directly, always a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Persisted or incoming data failed structural validation.

    Stores never let this escape a read: a malformed record degrades to
    empty state and the error is only logged.

    Example:
        raise ValidationError("Stored record is not an object")
        raise ValidationError("Song entry has no string _id")
    """

    pass


class PersistError(DomainException):
    """Writing provider state to its backing store failed.

    The write queue catches this, logs it and drops the write. The queue
    keeps draining and the last durable state stays in place.

    Example:
        raise PersistError("Failed to write /data/sync/default.json", store="default")
    """

    def __init__(self, message: str, store: str | None = None) -> None:
        super().__init__(message)
        self.store = store


class ConfigurationError(DomainException):
    """Application misconfiguration.

    The only error allowed to abort startup.

    Example:
        raise ConfigurationError("Unknown storage backend: 'redis'")
    """

    pass


# Standardized alias, same naming scheme as ValidationError / PersistError.
EntityNotFoundError = EntityNotFoundException


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "EntityNotFoundError",
    "ValidationError",
    "PersistError",
    "ConfigurationError",
]
