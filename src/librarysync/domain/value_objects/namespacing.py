"""Entity id namespacing.

An entity id is either bare (originated in the local library) or carries
exactly one provider prefix: ``"<tag><suffix>:"`` followed by the provider's
own id. The router decides ownership by matching these prefixes and a
provider strips its own prefix before touching its store, so both sides must
build prefixes with the same helper below.
"""

NAMESPACE_SEPARATOR = ":"


def namespace_prefix(tag: str, suffix: str = "") -> str:
    """Build the prefix for a provider tag.

    Example:
        >>> namespace_prefix("spotify", "-playlist")
        'spotify-playlist:'
    """
    return f"{tag}{suffix}{NAMESPACE_SEPARATOR}"


def strip_namespace(entity_id: str, prefix: str) -> str:
    """Remove ``prefix`` once from the start of ``entity_id``.

    Ids that do not start with the prefix are returned unchanged, an id that
    merely contains the prefix further in is left alone.
    """
    if prefix and entity_id.startswith(prefix):
        return entity_id[len(prefix):]
    return entity_id

