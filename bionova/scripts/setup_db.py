"""
BioNova-X - Cache Collection Setup
====================================
CLI entry point that prepares the MongoDB search cache:
    1. Validate that settings load (``GOOGLE_API_KEY``, ``MONGO_URI``).
    2. Optionally drop the cache collection.
    3. Create the ``(cache_key, created_at)`` lookup index.
    4. Optionally delete rows older than the freshness window.
    5. Print a structured execution summary with timing breakdown.

Flags:
    --drop         Drop the cache collection before creating the index.
    --purge-stale  Delete rows older than ``CACHE_TTL_HOURS``.
    --drop-only    Drop the cache collection and exit.

Usage:
    python -m bionova.scripts.setup_db
    python -m bionova.scripts.setup_db --purge-stale
    python -m bionova.scripts.setup_db --drop
    python -m bionova.scripts.setup_db --drop-only
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bionova.src.database.cache_store import SearchCacheStore


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="BioNova-X — Prepare the MongoDB search cache.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the cache collection before creating the index.")
    parser.add_argument("--purge-stale", action="store_true", default=False, help="Delete cache rows older than CACHE_TTL_HOURS.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the cache collection and exit.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    try:
        from bionova.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)

    from bionova.src.database.cache_store import SearchCacheStore, close_mongo_client
    from bionova.src.utils.logger import get_logger

    logger = get_logger(__name__)
    _print_header(settings)

    store = SearchCacheStore()
    try:
        summary = asyncio.run(_run(store, args, logger))
    except Exception:
        logger.exception("Cache setup failed.")
        sys.exit(1)
    finally:
        close_mongo_client()

    _print_footer(summary, time.perf_counter() - t_start)


async def _run(store: SearchCacheStore, args: argparse.Namespace, logger: logging.Logger) -> dict[str, object]:
    summary: dict[str, object] = {"dropped": False, "index": "-", "purged": 0}

    if args.drop or args.drop_only:
        logger.warning("Dropping the cache collection as requested.")
        await store.drop()
        summary["dropped"] = True
        if args.drop_only:
            return summary

    summary["index"] = await store.ensure_indexes()

    if args.purge_stale:
        summary["purged"] = await store.purge_stale()

    return summary


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object) -> None:
    mongo_uri_val = settings.MONGO_URI.get_secret_value()  # type: ignore[attr-defined]
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  BIONOVA-X — Search Cache Setup")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME})")  # type: ignore[attr-defined]
    print(f"  Collection   : {settings.CACHE_COLLECTION_NAME}")              # type: ignore[attr-defined]
    print(f"  TTL          : {settings.CACHE_TTL_HOURS}h")                    # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(summary: dict[str, object], elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Collection dropped   : {'yes' if summary['dropped'] else 'no'}")
    print(f"  Lookup index         : {summary['index']}")
    print(f"  Stale rows purged    : {summary['purged']}")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
