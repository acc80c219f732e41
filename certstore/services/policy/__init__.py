"""Pure lifecycle policies: key namespaces and retention tiers."""

from certstore.services.policy.keys import (
    ALLOWED_NAMESPACES,
    ensure_safe_key,
    ensure_safe_prefix,
    is_safe_key,
)
from certstore.services.policy.retention import (
    ObjectMetadata,
    ObjectType,
    Retention,
    effective_retention,
    infer_metadata,
    is_expired,
    merge_metadata,
)

__all__ = [
    "ALLOWED_NAMESPACES",
    "ObjectMetadata",
    "ObjectType",
    "Retention",
    "effective_retention",
    "ensure_safe_key",
    "ensure_safe_prefix",
    "infer_metadata",
    "is_expired",
    "is_safe_key",
    "merge_metadata",
]
