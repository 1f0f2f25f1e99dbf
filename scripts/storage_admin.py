#!/usr/bin/env python3
"""Administer the Bible Aura local store from the command line.

Subcommands:
    stats                       print per-collection usage and the storage budget
    export [--output PATH]      write a backup snapshot (default: dated file in data/backups)
    import PATH [--merge]       restore a backup snapshot (replace by default)
    clear [--collection NAME]   clear one collection, or all of them (quarantine included)

The database defaults to data/aura_store.db; pass --db to point elsewhere.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from aura_store.backup import ImportMode
from aura_store.local_store import LocalStore
from aura_store.quota import format_size
from aura_store.registry import COLLECTION_ORDER, CollectionName


def _print_stats(store: LocalStore) -> None:
    stats = store.stats()
    for name in COLLECTION_ORDER:
        entry = getattr(stats, str(name))
        line = f"{name:<10} {entry.count:>6} records  {format_size(entry.total_size):>10}"
        if entry.quarantine_size:
            line += f"  (+{format_size(entry.quarantine_size)} quarantined)"
        print(line)
    percent = store.quota.used_percentage(stats)
    print(
        f"{'total':<10} {format_size(stats.total_size):>25}"
        f"  ({percent:.1f}% of {format_size(stats.capacity)})"
    )
    if store.quota.is_full(stats):
        print("Storage is almost full; export a backup and clear old records.", file=sys.stderr)


def _cmd_stats(store: LocalStore, args: argparse.Namespace) -> int:
    _print_stats(store)
    return 0


def _cmd_export(store: LocalStore, args: argparse.Namespace) -> int:
    try:
        path = store.backup.write_backup_file(args.output)
    except OSError as exc:
        print(f"Export failed: {exc}", file=sys.stderr)
        return 1
    print(f"Backup written to {path}")
    return 0


def _cmd_import(store: LocalStore, args: argparse.Namespace) -> int:
    mode = ImportMode.MERGE if args.merge else ImportMode.REPLACE
    result = store.backup.read_backup_file(args.path, mode)
    if not result.ok:
        print(f"Import failed ({result.error_code}): {result.message}", file=sys.stderr)
        return 1
    summary = ", ".join(f"{name}={count}" for name, count in result.imported.items()) or "nothing"
    print(f"Imported ({result.mode}): {summary}")
    return 0


def _cmd_clear(store: LocalStore, args: argparse.Namespace) -> int:
    if not store.clear(args.collection):
        print("Clear failed: storage rejected the write", file=sys.stderr)
        return 1
    print(f"Cleared {args.collection or 'all collections'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bible Aura local store administration")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (default: data/aura_store.db)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    stats = sub.add_parser("stats", help="Show storage usage")
    stats.set_defaults(handler=_cmd_stats)

    export = sub.add_parser("export", help="Write a backup snapshot")
    export.add_argument("--output", type=Path, default=None, help="Destination file")
    export.set_defaults(handler=_cmd_export)

    restore = sub.add_parser("import", help="Restore a backup snapshot")
    restore.add_argument("path", type=Path, help="Snapshot file to import")
    restore.add_argument(
        "--merge",
        action="store_true",
        help="Upsert into existing records instead of replacing them",
    )
    restore.set_defaults(handler=_cmd_import)

    clear = sub.add_parser("clear", help="Delete stored records")
    clear.add_argument(
        "--collection",
        choices=[str(name) for name in CollectionName],
        default=None,
        help="Collection to clear (default: all)",
    )
    clear.set_defaults(handler=_cmd_clear)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = LocalStore.open(str(args.db) if args.db is not None else None)
    return args.handler(store, args)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    raise SystemExit(main())
