"""Bible Aura Local Store - Configuration constants.

Module-level constants with a few environment overrides. No external config
libraries. Data paths are relative to the repository root by default.
"""

import os
from pathlib import Path

# Repository root (parent of aura_store/)
REPO_ROOT = Path(__file__).parent.parent.resolve()


def _get_data_dir() -> Path:
    """Get the data directory, honouring AURA_STORE_DATA_DIR if set."""
    env_val = os.environ.get("AURA_STORE_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return REPO_ROOT / "data"


def _get_int_env(name: str, default: int) -> int:
    """Read a positive integer from the environment.

    Missing, non-integer and non-positive values fall back to the default.

    Args:
        name: Environment variable name.
        default: Value to use when the variable is absent or invalid.

    Returns:
        The parsed value or the default.
    """
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = int(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


DATA_DIR = _get_data_dir()

# SQLite substrate database
DB_PATH = DATA_DIR / "aura_store.db"

# Backup files written by the backup codec
BACKUP_DIR = DATA_DIR / "backups"

# Fixed per-collection substrate keys (wire-compatible with the mobile app)
SERMONS_KEY = "bible_aura_sermons"
JOURNALS_KEY = "bible_aura_journals"
CHATS_KEY = "bible_aura_chats"
SYNC_STATUS_KEY = "bible_aura_sync_status"

# Suffix for keys holding records that failed validation on load
QUARANTINE_SUFFIX = "_quarantine"

MIB = 1024 * 1024

# Storage budget reported by the quota tracker (100 MiB)
STORAGE_CAPACITY_BYTES = _get_int_env("AURA_STORE_CAPACITY_BYTES", 100 * MIB)

# "Nearly full" warning when fewer bytes than this remain (10 MiB)
LOW_WATER_MARK_BYTES = _get_int_env("AURA_STORE_LOW_WATER_BYTES", 10 * MIB)

# Hard limit enforced by the substrate itself; writes past it are rejected
SUBSTRATE_HARD_LIMIT_BYTES = _get_int_env(
    "AURA_STORE_SUBSTRATE_LIMIT_BYTES", STORAGE_CAPACITY_BYTES
)

# Backup snapshot format
BACKUP_FORMAT_VERSION = "1.0"
BACKUP_FILENAME_PREFIX = "bible-aura-backup"

# Reading speed used to derive journal reading_time (minutes)
WORDS_PER_MINUTE = 200
