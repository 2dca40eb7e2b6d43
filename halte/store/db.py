"""
PersistentStore — SQLite-backed namespaced key/value store for app state.

Usage::

    store = PersistentStore(db_path="~/.halte/halte.db")

    # Feature state
    store.write("appSettings", {"theme": "dark"})
    settings = store.read("appSettings", {"theme": "light"})

    # Backup / restore
    bundle = store.export_all()
    store.import_all(bundle)

    # Settings → "delete all my data"
    store.wipe_all()
"""

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from halte.exceptions import InvalidBundleError, StorageError
from halte.store.models import FORMAT_VERSION, ExportBundle, StoreRecord

__all__ = ["PersistentStore"]

logger = logging.getLogger(__name__)

# Path to the SQL schema file bundled with this package
_SCHEMA_PATH = Path(__file__).parent / "migrations" / "schema.sql"


def _now() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _encode(namespace_key: str, payload: Any) -> str:
    """Serialize *payload* to its stored JSON text."""
    try:
        return json.dumps(payload, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise StorageError(
            f"Cannot serialize payload for namespace {namespace_key!r}: {exc}"
        ) from exc


class PersistentStore:
    """
    Durable, namespaced JSON storage for a single device and a single writer.

    Payload shapes are owned by the features that write them; the store
    never validates them. The database file and schema are created
    automatically on first open. Every operation opens its own connection
    and closes it on return; no connection is kept open between calls.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open store at {self._db_path}: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._db_path

    # ── Internal helpers ──────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        """Create tables if they don't already exist."""
        sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        with closing(self._connect()) as conn, conn:
            conn.executescript(sql)

    # ── Public API ────────────────────────────────────────────────────────

    def read(self, namespace_key: str, default: Any = None) -> Any:
        """
        Return the payload stored under *namespace_key*.

        Returns *default* when the namespace is absent or its payload cannot
        be decoded. Corrupt data is logged and never raised to the caller.
        """
        try:
            with closing(self._connect()) as conn, conn:
                row = conn.execute(
                    "SELECT payload FROM namespaces WHERE namespace_key=?",
                    (namespace_key,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Store read failed for %r: %s", namespace_key, exc)
            return default

        if row is None:
            return default
        try:
            return json.loads(row["payload"])
        except ValueError as exc:
            logger.warning("Corrupt payload in namespace %r, using default: %s", namespace_key, exc)
            return default

    def write(self, namespace_key: str, payload: Any, schema_version: int = 1) -> None:
        """
        Persist *payload* under *namespace_key*, replacing any previous value.

        Raises:
            StorageError: payload is not JSON-serializable, or the database
                          write failed (disk full, I/O error). Never retried.
        """
        text = _encode(namespace_key, payload)
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO namespaces
                        (namespace_key, schema_version, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (namespace_key, schema_version, text, _now()),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write namespace {namespace_key!r}: {exc}") from exc
        logger.debug("Wrote namespace %r (%d bytes)", namespace_key, len(text))

    def remove(self, namespace_key: str) -> bool:
        """
        Delete a single namespace.

        Returns:
            True if a namespace was deleted, False if it did not exist.
        """
        try:
            with closing(self._connect()) as conn, conn:
                cur = conn.execute(
                    "DELETE FROM namespaces WHERE namespace_key=?", (namespace_key,)
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to remove namespace {namespace_key!r}: {exc}") from exc
        return cur.rowcount > 0

    def namespaces(self) -> list[StoreRecord]:
        """List every stored namespace (payloads decoded; corrupt ones skipped)."""
        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                "SELECT * FROM namespaces ORDER BY namespace_key"
            ).fetchall()

        records: list[StoreRecord] = []
        for row in rows:
            try:
                payload = json.loads(row["payload"])
            except ValueError:
                logger.warning("Skipping corrupt namespace %r", row["namespace_key"])
                continue
            records.append(StoreRecord(
                namespace_key=row["namespace_key"],
                payload=payload,
                schema_version=row["schema_version"],
                updated_at=datetime.fromisoformat(row["updated_at"].replace("Z", "+00:00")),
            ))
        return records

    def export_all(self) -> ExportBundle:
        """Snapshot every namespace into an ExportBundle."""
        records = self.namespaces()
        bundle = ExportBundle(
            format_version=FORMAT_VERSION,
            exported_at=datetime.now(tz=timezone.utc),
            namespaces={r.namespace_key: r.payload for r in records},
            schema_versions={r.namespace_key: r.schema_version for r in records},
        )
        logger.info("Exported %d namespace(s)", len(records))
        return bundle

    def import_all(self, bundle: ExportBundle) -> int:
        """
        Replace every namespace present in *bundle*, atomically.

        Namespaces absent from the bundle are left untouched. Every payload
        is serialized before the transaction opens; the writes then commit
        together or not at all.

        Returns:
            Number of namespaces replaced.

        Raises:
            UnsupportedVersionError: bundle format not recognised.
            InvalidBundleError: a payload cannot be serialized.
            StorageError: the transaction failed and was rolled back.
        """
        # Re-validates the version for bundles built in code.
        ExportBundle.from_dict(bundle.to_dict())

        staged: list[tuple[str, int, str, str]] = []
        stamp = _now()
        for key, payload in bundle.namespaces.items():
            try:
                text = _encode(key, payload)
            except StorageError as exc:
                raise InvalidBundleError(str(exc)) from exc
            staged.append((key, bundle.schema_versions.get(key, 1), text, stamp))

        try:
            with closing(self._connect()) as conn, conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO namespaces
                        (namespace_key, schema_version, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    staged,
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Import failed, store left unchanged: {exc}") from exc

        logger.info("Imported %d namespace(s)", len(staged))
        return len(staged)

    def wipe_all(self) -> int:
        """
        Remove every namespace. Irreversible.

        Returns:
            Number of namespaces deleted.
        """
        try:
            with closing(self._connect()) as conn, conn:
                cur = conn.execute("DELETE FROM namespaces")
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to wipe store: {exc}") from exc
        logger.info("Wiped %d namespace(s)", cur.rowcount)
        return cur.rowcount

    def get_record(self, namespace_key: str) -> Optional[StoreRecord]:
        """Return the full StoreRecord for *namespace_key*, or None."""
        return next(
            (r for r in self.namespaces() if r.namespace_key == namespace_key), None
        )
