"""Bible Aura Local Store - Canonical path utilities.

Returns canonical Paths. Does NOT create directories.
Directory creation is the responsibility of the calling code.
"""

from datetime import datetime
from pathlib import Path

from aura_store.config import BACKUP_DIR, BACKUP_FILENAME_PREFIX


def backup_filename(exported_at: datetime) -> str:
    """Get the default filename for a backup taken at exported_at.

    Args:
        exported_at: Export timestamp; only the calendar date is used.

    Returns:
        str: bible-aura-backup-{YYYY-MM-DD}.json
    """
    return f"{BACKUP_FILENAME_PREFIX}-{exported_at.date().isoformat()}.json"


def backup_file_path(exported_at: datetime, backup_dir: Path | None = None) -> Path:
    """Get canonical path for a backup file.

    Args:
        exported_at: Export timestamp.
        backup_dir: Optional directory override. Defaults to config.BACKUP_DIR.

    Returns:
        Path: data/backups/bible-aura-backup-{YYYY-MM-DD}.json
    """
    directory = backup_dir if backup_dir is not None else BACKUP_DIR
    return directory / backup_filename(exported_at)
