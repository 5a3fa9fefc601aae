"""Value objects."""

from librarysync.domain.value_objects.namespacing import (
    NAMESPACE_SEPARATOR,
    namespace_prefix,
    strip_namespace,
)

__all__ = [
    "NAMESPACE_SEPARATOR",
    "namespace_prefix",
    "strip_namespace",
]
