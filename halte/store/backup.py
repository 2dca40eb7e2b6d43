"""Backup files — ExportBundle ⇄ JSON document on disk."""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from halte.exceptions import InvalidBundleError, StorageError
from halte.store.models import ExportBundle

__all__ = ["backup_filename", "write_backup", "read_backup"]

logger = logging.getLogger(__name__)


def backup_filename(day: Optional[date] = None) -> str:
    """Return the export filename for *day*, e.g. 'halte-backup-2024-03-01.json'."""
    day = day or date.today()
    return f"halte-backup-{day.isoformat()}.json"


def write_backup(bundle: ExportBundle, output_dir: Optional[str] = None) -> Path:
    """Write *bundle* to <output_dir>/halte-backup-<export date>.json and return the path."""
    out_dir = Path(output_dir) if output_dir else Path.cwd()
    out_path = out_dir / backup_filename(bundle.exported_at.date())
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            json.dumps(bundle.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    except OSError as exc:
        raise StorageError(f"Cannot write backup to {out_path}: {exc}") from exc
    logger.info("Backup written to %s", out_path)
    return out_path


def read_backup(path: str) -> ExportBundle:
    """
    Load and validate a backup file.

    Raises:
        InvalidBundleError: unreadable file, invalid JSON, or wrong shape.
        UnsupportedVersionError: unknown formatVersion.
    """
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidBundleError(f"Cannot read backup file {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InvalidBundleError(f"Backup file {path} is not valid JSON: {exc}") from exc
    return ExportBundle.from_dict(data)
