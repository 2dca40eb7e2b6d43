"""Data models for the store module."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from halte.exceptions import InvalidBundleError, UnsupportedVersionError

__all__ = ["StoreRecord", "ExportBundle", "FORMAT_VERSION", "SUPPORTED_FORMAT_VERSIONS"]

logger = logging.getLogger(__name__)

# Current export format written by export_all()
FORMAT_VERSION = 1

# Bundle formats import_all() knows how to apply
SUPPORTED_FORMAT_VERSIONS = frozenset({1})


@dataclass
class StoreRecord:
    """
    One live namespace in the persistent store.

    Fields
    ──────
    namespace_key   — logical partition name, e.g. "journalEntries"
    payload         — decoded JSON value; shape owned by the writing feature
    schema_version  — version of the payload shape, set by the writer
    updated_at      — UTC timestamp of the last write
    """
    namespace_key:  str
    payload:        Any
    schema_version: int                = 1
    updated_at:     Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = datetime.now(tz=timezone.utc)

    def __str__(self) -> str:
        return f"StoreRecord({self.namespace_key!r}, v{self.schema_version})"


@dataclass
class ExportBundle:
    """
    Snapshot of every namespace, as written to / read from a backup file.

    namespaces       — namespace_key → payload
    schema_versions  — namespace_key → schema_version (missing = 1)
    """
    format_version:  int
    exported_at:     datetime
    namespaces:      dict[str, Any]  = field(default_factory=dict)
    schema_versions: dict[str, int]  = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "formatVersion":  self.format_version,
            "exportedAt":     self.exported_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "namespaces":     self.namespaces,
            "schemaVersions": self.schema_versions,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ExportBundle":
        """
        Build a bundle from a decoded JSON document.

        Raises:
            UnsupportedVersionError: formatVersion is missing or unknown.
            InvalidBundleError: the document does not have the bundle shape.
        """
        if not isinstance(data, dict):
            raise InvalidBundleError("Backup file must contain a JSON object")

        version = data.get("formatVersion")
        if isinstance(version, bool) or not isinstance(version, int):
            raise UnsupportedVersionError(f"Unrecognised formatVersion: {version!r}")
        if version not in SUPPORTED_FORMAT_VERSIONS:
            raise UnsupportedVersionError(
                f"Backup formatVersion {version} is not supported "
                f"(supported: {sorted(SUPPORTED_FORMAT_VERSIONS)})"
            )

        namespaces = data.get("namespaces")
        if not isinstance(namespaces, dict):
            raise InvalidBundleError("Backup file has no 'namespaces' object")
        if not all(isinstance(k, str) and k for k in namespaces):
            raise InvalidBundleError("Namespace keys must be non-empty strings")

        versions = data.get("schemaVersions") or {}
        if not isinstance(versions, dict) or not all(
            isinstance(v, int) and not isinstance(v, bool) for v in versions.values()
        ):
            raise InvalidBundleError("'schemaVersions' must map namespaces to integers")

        exported_raw = data.get("exportedAt")
        exported_at = datetime.now(tz=timezone.utc)
        if isinstance(exported_raw, str):
            try:
                exported_at = datetime.fromisoformat(exported_raw.replace("Z", "+00:00"))
            except ValueError:
                logger.warning("Ignoring unparseable exportedAt: %r", exported_raw)

        return cls(
            format_version=version,
            exported_at=exported_at,
            namespaces=dict(namespaces),
            schema_versions={k: v for k, v in versions.items() if k in namespaces},
        )

    def __str__(self) -> str:
        return f"ExportBundle(v{self.format_version}, {len(self.namespaces)} namespace(s))"
