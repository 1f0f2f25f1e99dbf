"""Bible Aura Local Store - Utility modules."""

from aura_store.utils.atomic_io import (
    atomic_write_bytes,
    atomic_write_text,
    cleanup_orphan_temp_files,
)
from aura_store.utils.paths import backup_file_path, backup_filename

__all__ = [
    # atomic_io
    "atomic_write_bytes",
    "atomic_write_text",
    "cleanup_orphan_temp_files",
    # paths
    "backup_filename",
    "backup_file_path",
]
