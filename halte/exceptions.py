"""
Project-wide custom exception hierarchy.
All modules raise subclasses of HalteBaseError — never bare Exception.
"""

__all__ = [
    "HalteBaseError",
    "StorageError",
    "ImportBundleError",
    "UnsupportedVersionError",
    "InvalidBundleError",
    "GatewayError",
    "TransportError",
    "MalformedResponseError",
    "FeatureError",
    "NoRelevantEntriesError",
    "InvalidStateError",
]


class HalteBaseError(Exception):
    """Root exception for all halte errors."""


# ── Store ─────────────────────────────────────────────────────────────────────

class StorageError(HalteBaseError):
    """Raised on serialization, quota or SQLite I/O failures."""


class ImportBundleError(StorageError):
    """Base class for export-bundle import failures."""


class UnsupportedVersionError(ImportBundleError):
    """Raised when a bundle's formatVersion is not recognised by this store."""


class InvalidBundleError(ImportBundleError):
    """Raised when a bundle is not valid JSON or lacks the expected structure."""


# ── Gateway ───────────────────────────────────────────────────────────────────

class GatewayError(HalteBaseError):
    """Base class for oracle-related errors (converted to results by the gateway)."""


class TransportError(GatewayError):
    """Raised when the oracle is unreachable or rejects the request."""


class MalformedResponseError(GatewayError):
    """Raised when the oracle replies with content that does not match the expected shape."""


# ── Features ──────────────────────────────────────────────────────────────────

class FeatureError(HalteBaseError):
    """Base class for feature workflow errors shown to the user."""


class NoRelevantEntriesError(FeatureError):
    """Raised when a theme matched none of the user's shared entries."""


class InvalidStateError(FeatureError):
    """Raised when a feature workflow step is attempted out of order."""
