#!/usr/bin/env python3
"""campuscache CLI - Maintenance commands for the offline portal cache."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cli.output import OutputManager, format_scope, get_output
from utils.config import Config
from utils.errors import ScopeError, StoreError


def setup_logging(
    log_dir: Optional[Path] = None,
    verbose: bool = False,
    log_file_name: Optional[str] = None,
) -> Path:
    """Setup logging to both console and file.

    Args:
        log_dir: Directory for log files (default: Config.LOG_DIR)
        verbose: If True, set DEBUG level; otherwise Config.LOG_LEVEL
        log_file_name: Custom log file name (default: auto-generated with timestamp)

    Returns:
        Path to the log file
    """
    if log_dir is None:
        log_dir = Config.LOG_DIR
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    if log_file_name is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_name = f"campuscache_{timestamp}.log"
    log_file = log_dir / log_file_name

    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # File handler (always DEBUG to capture everything)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    # Console handler only shows warnings unless verbose; command output goes through OutputManager
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.debug(f"Logging initialized. Log file: {log_file}")
    return log_file


def build_services(args):
    """Create the cache services for the selected backend and database."""
    from cache import CacheServices

    return CacheServices.from_config(backend=args.backend, db_path=args.db)


def _require_sqlite(services, out: OutputManager) -> bool:
    from cache import CacheDatabase

    if not isinstance(services.backend, CacheDatabase):
        out.error("This command needs the sqlite backend")
        return False
    return True


async def cmd_cache(args) -> int:
    """Manage cache."""
    out = get_output("campuscache.cache")
    services = build_services(args)

    try:
        await services.initialize()
    except Exception as e:
        out.error(f"Error initializing cache: {e}")
        return 1

    if args.cache_command == "stats":
        if not _require_sqlite(services, out):
            return 1
        db = services.backend
        out.header("Cache Statistics")
        stats = db.get_stats()
        out.stat("Database", db.db_path)
        out.stat("Size", f"{stats.get('db_size_mb', 0)} MB")
        out.stat("Entries", stats.get("entries_count", 0))
        out.stat("Updated in last 24h", stats.get("updated_last_24h", 0))
        by_domain = stats.get("by_domain", {})
        if by_domain:
            out.blank()
            out.info("Entries by domain:")
            out.stats(by_domain)

    elif args.cache_command == "keys":
        contains = args.contains or ""
        if args.tenant and args.user:
            contains = f"|{args.tenant}|{args.user}|"
        keys = await services.backend.find_keys(contains)
        out.header(f"Cache Keys ({len(keys)})")
        out.bullets(keys)

    elif args.cache_command == "clear":
        if args.all:
            if not args.yes:
                confirm = input("This will delete all cached data. Are you sure? (y/N): ")
                if confirm.lower() != "y":
                    out.info("Aborted")
                    return 0
            count = await services.backend.clear_all()
            out.success(f"Cleared {count} cache entries")
        elif args.tenant and args.user:
            await services.invalidate_all(args.user, args.tenant, args.session)
            out.success(f"Cleared caches for {format_scope(args.tenant, args.user, args.session)}")
        else:
            out.warning("Specify what to clear: --tenant and --user, or --all")
            return 1

    elif args.cache_command == "vacuum":
        if not _require_sqlite(services, out):
            return 1
        out.info("Optimizing database...")
        services.backend.vacuum()
        stats = services.backend.get_stats()
        out.success(f"Done. Database size: {stats.get('db_size_mb', 0)} MB")

    else:
        out.warning("No cache command specified. Use: stats, keys, clear, or vacuum")
        return 1

    return 0


async def cmd_feed(args) -> int:
    """Inspect the feed cache of one scope."""
    out = get_output("campuscache.feed")
    services = build_services(args)
    await services.initialize()

    if args.feed_command == "status":
        status = await services.feed.get_cache_status(args.user, args.tenant, args.session)
        out.scope_header("Feed Cache", args.tenant, args.user, args.session)
        out.stats(status)
        return 0

    out.warning("No feed command specified. Use: status")
    return 1


async def cmd_build(args) -> int:
    """Record the running build and wipe caches if it changed."""
    out = get_output("campuscache.build")
    services = build_services(args)
    await services.initialize()

    if args.build_command == "check":
        wiped = await services.refresh_on_build_change(
            args.build_number, args.user, args.tenant, args.session
        )
        if wiped:
            out.success(f"Build changed to {args.build_number}; caches invalidated")
        else:
            out.info(f"Build {args.build_number} unchanged; caches kept")
        return 0

    out.warning("No build command specified. Use: check")
    return 1


async def cmd_config(args) -> int:
    out = get_output("campuscache.config")
    out.header("Configuration")
    out.stats(Config.get_summary())
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="campuscache",
        description="campuscache - Offline cache maintenance for the school portal client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Cache management
  campuscache cache stats                              # Show cache statistics
  campuscache cache keys --tenant dps --user 1042      # List one user's keys
  campuscache cache clear --tenant dps --user 1042 --session 7
  campuscache cache clear --all --yes
  campuscache cache vacuum                             # Optimize database

  # Feed diagnostics
  campuscache feed status --tenant dps --user 1042 --session 7

  # Invalidate caches after an app update
  campuscache build check 57 --tenant dps --user 1042 --session 7
        """,
    )
    parser.add_argument("--db", type=Path, default=None, help="SQLite database file")
    parser.add_argument(
        "--backend",
        choices=["sqlite", "memory"],
        default=None,
        help="Store backend (default: CAMPUSCACHE_BACKEND or sqlite)",
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for log files")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # cache command - Cache management
    cache_parser = subparsers.add_parser("cache", help="Manage the local cache")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command", help="Cache commands")

    cache_subparsers.add_parser("stats", help="Show cache statistics")

    cache_keys_parser = cache_subparsers.add_parser("keys", help="List stored keys")
    cache_keys_parser.add_argument("--contains", help="Only keys containing this text")
    cache_keys_parser.add_argument("--tenant", help="Tenant abbreviation")
    cache_keys_parser.add_argument("--user", help="User id")

    cache_clear_parser = cache_subparsers.add_parser("clear", help="Clear cache entries")
    cache_clear_parser.add_argument("--tenant", help="Tenant abbreviation")
    cache_clear_parser.add_argument("--user", help="User id")
    cache_clear_parser.add_argument(
        "--session",
        help="Academic session id (session-scoped caches are kept without it)",
    )
    cache_clear_parser.add_argument(
        "--all",
        action="store_true",
        help="Clear every cached entry of every user",
    )
    cache_clear_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    cache_subparsers.add_parser("vacuum", help="Optimize database storage")

    # feed command - Feed diagnostics
    feed_parser = subparsers.add_parser("feed", help="Inspect the feed cache")
    feed_subparsers = feed_parser.add_subparsers(dest="feed_command", help="Feed commands")
    feed_status_parser = feed_subparsers.add_parser("status", help="Show feed cache status")
    feed_status_parser.add_argument("--tenant", required=True, help="Tenant abbreviation")
    feed_status_parser.add_argument("--user", required=True, help="User id")
    feed_status_parser.add_argument("--session", required=True, help="Academic session id")

    # build command - Build-change invalidation
    build_parser = subparsers.add_parser("build", help="App build tracking")
    build_subparsers = build_parser.add_subparsers(dest="build_command", help="Build commands")
    build_check_parser = build_subparsers.add_parser(
        "check",
        help="Record the running build and invalidate caches if it changed",
    )
    build_check_parser.add_argument("build_number", type=int, help="Running build number")
    build_check_parser.add_argument("--tenant", required=True, help="Tenant abbreviation")
    build_check_parser.add_argument("--user", required=True, help="User id")
    build_check_parser.add_argument("--session", help="Academic session id")

    # config command
    subparsers.add_parser("config", help="Show effective configuration")

    return parser


async def async_main(args) -> int:
    """Async main entry point."""
    try:
        if args.command == "cache":
            return await cmd_cache(args)
        elif args.command == "feed":
            return await cmd_feed(args)
        elif args.command == "build":
            return await cmd_build(args)
        elif args.command == "config":
            return await cmd_config(args)
        else:
            print("No command specified. Use --help for usage.")
            return 1
    except (ScopeError, ValueError) as e:
        get_output("campuscache").error(str(e))
        return 2
    except StoreError as e:
        get_output("campuscache").error(f"Cache store unavailable: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(log_dir=args.log_dir, verbose=args.verbose)
    return asyncio.run(async_main(args))


if __name__ == "__main__":
    sys.exit(main())
