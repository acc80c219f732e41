"""
Retention policy for generated artifacts.

Pure functions only: metadata inference from a storage key at upload time,
and the expired/kept decision used by the cleanup job.
"""

import fnmatch
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping

from certstore.core.exceptions import DataIntegrityError, ValidationError


class ObjectType(str, Enum):
    """Kind of artifact an object holds."""

    PREVIEW = "preview"
    INDIVIDUAL = "individual"
    BULK = "bulk"
    TEMPLATE = "template"


class Retention(str, Enum):
    """Retention tiers."""

    HOURS_24 = "24h"
    DAYS_7 = "7d"
    DAYS_90 = "90d"
    PERMANENT = "permanent"


RETENTION_SECONDS: dict[Retention, int] = {
    Retention.HOURS_24: 86400,
    Retention.DAYS_7: 604800,
    Retention.DAYS_90: 7776000,
}

# Persisted metadata field names. S3 lowercases user metadata keys, so
# every backend stores this form.
META_TYPE = "type"
META_CREATED = "created"
META_RETENTION = "retention"
META_EMAIL_SENT = "emailsent"
META_DOWNLOAD_COUNT = "downloadcount"


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with milliseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ObjectMetadata:
    """Lifecycle metadata stored alongside every object."""

    type: ObjectType
    retention: Retention
    created: datetime | None = None
    email_sent: bool = False
    download_count: int = 0

    def to_wire(self) -> dict[str, str]:
        """Serialize to the flat string map persisted by backends."""
        wire = {
            META_TYPE: self.type.value,
            META_RETENTION: self.retention.value,
            META_EMAIL_SENT: "true" if self.email_sent else "false",
            META_DOWNLOAD_COUNT: str(self.download_count),
        }
        if self.created is not None:
            wire[META_CREATED] = format_timestamp(self.created)
        return wire

    @classmethod
    def from_wire(cls, raw: Mapping[str, str], key: str | None = None) -> "ObjectMetadata":
        """
        Parse a persisted metadata map.

        Keys are matched case-insensitively. A missing `created` parses to
        None; it is rejected later by is_expired.

        Raises:
            DataIntegrityError: If type or retention is missing or invalid,
                or created cannot be parsed.
        """
        data = {k.lower(): v for k, v in raw.items()}

        try:
            object_type = ObjectType(data[META_TYPE])
            retention = Retention(data[META_RETENTION])
        except (KeyError, ValueError) as e:
            raise DataIntegrityError(
                message=f"Invalid lifecycle metadata: {e}",
                details={"key": key, "metadata": dict(raw)},
            ) from e

        created = None
        if data.get(META_CREATED):
            try:
                created = parse_timestamp(data[META_CREATED])
            except ValueError as e:
                raise DataIntegrityError(
                    message=f"Unparsable creation timestamp: {data[META_CREATED]}",
                    details={"key": key},
                ) from e

        try:
            download_count = int(data.get(META_DOWNLOAD_COUNT) or 0)
        except ValueError:
            download_count = 0

        return cls(
            type=object_type,
            retention=retention,
            created=created,
            email_sent=str(data.get(META_EMAIL_SENT, "false")).lower() == "true",
            download_count=download_count,
        )


@dataclass(frozen=True)
class RetentionRule:
    """A key pattern mapped to a type and retention tier."""

    name: str
    matches: Callable[[str], bool]
    type: ObjectType
    retention: Retention


def _segment_startswith(*prefixes: str) -> Callable[[str], bool]:
    # The namespace segment itself (e.g. temp_images/) never counts.
    def check(key: str) -> bool:
        segments = key.split("/")[1:]
        return any(seg.startswith(prefixes) for seg in segments)

    return check


def _filename_matches(pattern: str) -> Callable[[str], bool]:
    def check(key: str) -> bool:
        return fnmatch.fnmatchcase(key.rsplit("/", 1)[-1], pattern)

    return check


RULES: tuple[RetentionRule, ...] = (
    RetentionRule(
        name="individual",
        matches=_segment_startswith("individual_"),
        type=ObjectType.INDIVIDUAL,
        retention=Retention.DAYS_90,
    ),
    RetentionRule(
        name="preview",
        matches=_segment_startswith("preview_", "temp_"),
        type=ObjectType.PREVIEW,
        retention=Retention.HOURS_24,
    ),
    RetentionRule(
        name="bulk",
        matches=_filename_matches("certificates_*.pdf"),
        type=ObjectType.BULK,
        retention=Retention.DAYS_7,
    ),
)

DEFAULT_TYPE = ObjectType.TEMPLATE
DEFAULT_RETENTION = Retention.PERMANENT


def classify_key(key: str) -> tuple[ObjectType, Retention]:
    """Return the type and retention tier of the first rule matching the key."""
    for rule in RULES:
        if rule.matches(key):
            return rule.type, rule.retention
    return DEFAULT_TYPE, DEFAULT_RETENTION


def infer_metadata(
    key: str,
    content_type: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> ObjectMetadata:
    """
    Build the metadata for a freshly uploaded object.

    Type and retention come from the key rules; caller overrides are applied
    last and win over anything inferred. content_type is accepted for
    parity with the upload signature but does not influence the rules.

    Args:
        key: Storage key of the object.
        content_type: MIME type of the payload.
        overrides: Field overrides, either wire names (emailsent) or
            attribute names (email_sent).
        now: Creation timestamp. Defaults to the current UTC time.

    Returns:
        ObjectMetadata ready to persist.
    """
    object_type, retention = classify_key(key)
    metadata = ObjectMetadata(
        type=object_type,
        retention=retention,
        created=now or datetime.now(timezone.utc),
    )
    if overrides:
        metadata = apply_overrides(metadata, overrides)
    return metadata


_OVERRIDE_FIELDS = {
    "type": "type",
    "retention": "retention",
    "created": "created",
    "emailsent": "email_sent",
    "email_sent": "email_sent",
    "downloadcount": "download_count",
    "download_count": "download_count",
}


def apply_overrides(metadata: ObjectMetadata, overrides: Mapping[str, Any]) -> ObjectMetadata:
    """Return a copy of metadata with the given fields replaced."""
    changes: dict[str, Any] = {}
    for name, value in overrides.items():
        attr = _OVERRIDE_FIELDS.get(name.lower())
        if attr is None or value is None:
            continue
        try:
            if attr == "type":
                value = ObjectType(value)
            elif attr == "retention":
                value = Retention(value)
            elif attr == "created" and isinstance(value, str):
                value = parse_timestamp(value)
            elif attr == "email_sent" and isinstance(value, str):
                value = value.lower() == "true"
            elif attr == "download_count":
                value = int(value)
        except ValueError as e:
            raise ValidationError(
                message=f"Invalid metadata override for {name}: {value!r}",
                details={"field": name},
            ) from e
        changes[attr] = value
    return replace(metadata, **changes)


def merge_metadata(current: Mapping[str, str], patch: Mapping[str, str]) -> dict[str, str]:
    """
    Merge a wire-level patch into current metadata.

    The creation timestamp is set once at upload; a patch never changes it.
    """
    merged = {k.lower(): v for k, v in current.items()}
    for name, value in patch.items():
        name = name.lower()
        if name == META_CREATED:
            continue
        merged[name] = value
    return merged


def effective_retention(metadata: ObjectMetadata) -> Retention:
    """Retention tier after applying the emailed extension."""
    if metadata.retention is Retention.PERMANENT:
        return Retention.PERMANENT
    extended = RETENTION_SECONDS[Retention.DAYS_90]
    if metadata.email_sent and RETENTION_SECONDS[metadata.retention] < extended:
        return Retention.DAYS_90
    return metadata.retention


def is_expired(metadata: ObjectMetadata, now: datetime, key: str | None = None) -> bool:
    """
    Decide whether an object has outlived its retention tier.

    Raises:
        DataIntegrityError: If the object has no creation timestamp. Such
            objects are never deleted automatically.
    """
    retention = effective_retention(metadata)
    if retention is Retention.PERMANENT:
        return False

    if metadata.created is None:
        raise DataIntegrityError(
            message="Object has no creation timestamp",
            details={"key": key},
        )

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    age = (now - metadata.created).total_seconds()
    return age > RETENTION_SECONDS[retention]

