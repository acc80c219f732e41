"""
Key validation for destructive storage operations.

Only keys inside the two managed namespaces may be deleted or rewritten.
Validation is purely lexical: no normalization is applied, a key that would
need one is rejected.
"""

from certstore.core.exceptions import UnsafeKeyError

GENERATED_NAMESPACE = "generated/"
TEMP_IMAGES_NAMESPACE = "temp_images/"
ALLOWED_NAMESPACES: tuple[str, ...] = (GENERATED_NAMESPACE, TEMP_IMAGES_NAMESPACE)


def _violation(key: str, allow_namespace_root: bool = False) -> str | None:
    """Return why a key is unsafe, or None if it is acceptable."""
    if not key:
        return "empty key"
    if "\x00" in key:
        return "NUL byte in key"
    if "\\" in key:
        return "backslash in key"
    if key.startswith("/"):
        return "absolute path"
    if not key.startswith(ALLOWED_NAMESPACES):
        return "outside managed namespaces"

    segments = key.split("/")
    if allow_namespace_root and segments[-1] == "":
        segments = segments[:-1]
    for segment in segments:
        if segment in ("", ".", ".."):
            return "relative or empty path segment"

    if len(segments) < 2:
        return "namespace root is not an object"
    return None


def is_safe_key(key: str) -> bool:
    """Check whether a key lies strictly inside a managed namespace."""
    return _violation(key) is None


def ensure_safe_key(key: str) -> str:
    """
    Validate an object key before a destructive operation.

    Args:
        key: Storage key, e.g. generated/individual_1/cert.pdf.

    Returns:
        The key, unchanged.

    Raises:
        UnsafeKeyError: If the key is outside generated/ or temp_images/,
            or contains traversal segments.
    """
    reason = _violation(key)
    if reason is not None:
        raise UnsafeKeyError(key, reason)
    return key


def ensure_safe_prefix(prefix: str) -> str:
    """
    Validate a prefix used for bulk deletion.

    A whole namespace (generated/) is allowed, anything above it is not.
    """
    if prefix in ALLOWED_NAMESPACES:
        return prefix
    reason = _violation(prefix, allow_namespace_root=True)
    if reason is not None:
        raise UnsafeKeyError(prefix, reason)
    return prefix
