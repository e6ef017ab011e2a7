"""
scotty CLI — jump to directories you have visited before

Commands:
    scotty add    PATH                        — record a visit to PATH
    scotty search TARGET [--all] [--exclude P] — best (or every) match → stdout
    scotty delete PATH                        — forget PATH (idempotent)
    scotty list   [--json] [--sort S]         — dump the ledger
    scotty init   SHELL                       — print bash/zsh integration
    scotty check  [--repair]                  — compare ledger and search index

Environment variables:
    SCOTTY_DB       Path to SQLite database (default: platform data dir)
    SCOTTY_CONFIG   Path to a JSON config file
    SCOTTY_LOG      Log level name (DEBUG, INFO, ...) when --verbose is absent

Precedence (invariant):
    CLI --flag  >  SCOTTY_* env var  >  config file  >  compiled default

Exit codes:
    0  Success (including idempotent no-op)
    1  Operational error (invalid path, no results, unknown shell)
    2  Internal failure (storage error, corrupt index, unexpected exception)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from scotty.config import ScottyConfig, load_config
from scotty.errors import (
    NoResults,
    PathNotDirectory,
    RelativePath,
    UnknownShell,
)

logger = logging.getLogger(__name__)

# Raised by commands for a bad request; everything else is an internal failure
_OPERATIONAL_ERRORS = (PathNotDirectory, RelativePath, NoResults, UnknownShell)


# ---------------------------------------------------------------------------
# Defensive env parsing (never crash on bad export)
# ---------------------------------------------------------------------------


def _env_str(name: str, default: str) -> str:
    """Parse string env var with fallback."""
    return os.environ.get(name, default)


def _env_log_level(name: str, default: int) -> int:
    """Parse a log level name from env. Never raises on bad input."""
    v = os.environ.get(name)
    if not v:
        return default
    level = logging.getLevelName(v.strip().upper())
    return level if isinstance(level, int) else default


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _resolve_config(args: Optional[argparse.Namespace] = None) -> ScottyConfig:
    """Resolve config: CLI --config > SCOTTY_CONFIG > compiled defaults."""
    path = getattr(args, "config", None) if args else None
    path = path or _env_str("SCOTTY_CONFIG", "") or None
    return load_config(path)


def _resolve_db(
    args: Optional[argparse.Namespace], config: ScottyConfig,
) -> str:
    """Resolve database path: CLI --db > SCOTTY_DB > config > data dir."""
    if args and getattr(args, "db", None):
        return args.db
    env = _env_str("SCOTTY_DB", "")
    if env:
        return env
    return config.store.resolved_db_path()


def _open_index(args: argparse.Namespace, config: Optional[ScottyConfig] = None):
    """Open the Index for this invocation. Creates the DB and parent dirs if needed."""
    from scotty.index import Index
    config = config or _resolve_config(args)
    return Index.open(config, db_path=_resolve_db(args, config))


# ---------------------------------------------------------------------------
# Stderr helpers (respect --quiet)
# ---------------------------------------------------------------------------

_quiet = False


def _info(msg: str) -> None:
    """Print progress to stderr (suppressed by --quiet)."""
    if not _quiet:
        print(msg, file=sys.stderr)


def _warn(msg: str) -> None:
    """Print warning to stderr (always visible)."""
    print(msg, file=sys.stderr)


# ===========================================================================
# Commands
# ===========================================================================


def cmd_add(args: argparse.Namespace) -> None:
    """Record a visit to a directory."""
    with _open_index(args) as index:
        index.add(args.path)
    _info(f"Added {args.path} to index")


def cmd_search(args: argparse.Namespace) -> None:
    """Print the best match, or every match with --all."""
    from scotty import printer
    config = _resolve_config(args)
    with _open_index(args, config) as index:
        if args.all:
            printer.print_paths(index.find_all(args.target, args.exclude))
            return
        best = index.jump(
            args.target, args.exclude,
            max_attempts=config.search.max_attempts,
        )
    print(best)


def cmd_delete(args: argparse.Namespace) -> None:
    """Forget a directory. Not an error if it was never indexed."""
    with _open_index(args) as index:
        index.delete(args.path)
    _info(f"Removed {args.path} from index")


def cmd_list(args: argparse.Namespace) -> None:
    """Dump the ledger as a table or as JSON lines."""
    from scotty import printer
    with _open_index(args) as index:
        entries = index.list()
    if args.sort == "recent":
        entries.sort(key=lambda e: e.timestamp, reverse=True)

    if getattr(args, "json", False):
        printer.print_json(entries)
    elif entries:
        printer.print_human(entries)
    else:
        _info("Index is empty.")


def cmd_init(args: argparse.Namespace) -> None:
    """Print the shell integration script."""
    from scotty.shell import Shell, init_script
    sys.stdout.write(init_script(Shell.parse(args.shell)))


def cmd_check(args: argparse.Namespace) -> None:
    """Report (and optionally repair) ledger/index divergence."""
    with _open_index(args) as index:
        report = index.repair() if args.repair else index.check()
        stats = index.stats()

    if getattr(args, "json", False):
        print(json.dumps({**report.to_dict(), **stats}, indent=2, ensure_ascii=False))
        return

    print(f"Database:        {stats['db_path']}")
    print(f"Ledger entries:  {report.ledger_count}")
    print(f"Index entries:   {report.index_count} ({stats['index_bytes']} bytes)")
    if report.corrupt:
        print("  index blob could not be decoded")
    for path in report.unindexed:
        print(f"  unindexed: {path}")
    for path in report.orphaned:
        print(f"  orphaned:  {path}")
    if report.consistent:
        print("Status:          consistent")
    elif report.repaired:
        print("Status:          repaired")
    else:
        print("Status:          inconsistent (run `scotty check --repair`)")
        sys.exit(1)


# ===========================================================================
# Entry point
# ===========================================================================


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with all subcommands registered."""
    # SUPPRESS defaults prevent subparser defaults from overriding
    # values parsed at the main-parser level (argparse parents quirk).
    _common = argparse.ArgumentParser(add_help=False)
    _common.add_argument(
        "--db", default=argparse.SUPPRESS,
        help="Path to SQLite database (default: SCOTTY_DB or the data dir)",
    )
    _common.add_argument(
        "--config", default=argparse.SUPPRESS,
        help="Path to a JSON config file (default: SCOTTY_CONFIG)",
    )
    _common.add_argument(
        "--quiet", "-q", action="store_true", default=argparse.SUPPRESS,
        help="Suppress stderr progress messages",
    )
    _common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    parser = argparse.ArgumentParser(
        prog="scotty",
        description="scotty — transports you into a directory based on previous usage",
        parents=[_common],
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # -- add ---------------------------------------------------------------
    p_add = sub.add_parser("add", parents=[_common], help="Add a path to the index")
    p_add.add_argument("path", help="The absolute directory path to add")
    p_add.set_defaults(func=cmd_add)

    # -- search ------------------------------------------------------------
    p_search = sub.add_parser(
        "search", parents=[_common],
        help="Find the directory that best matches TARGET",
    )
    p_search.add_argument("target", help="Fragment of the directory to jump to")
    p_search.add_argument(
        "-a", "--all", action="store_true",
        help="Print every matching path instead of the best one",
    )
    p_search.add_argument(
        "-x", "--exclude", default=None,
        help="Path that must never be returned (e.g. the current directory)",
    )
    p_search.set_defaults(func=cmd_search)

    # -- delete ------------------------------------------------------------
    p_delete = sub.add_parser("delete", parents=[_common], help="Remove a path from the index")
    p_delete.add_argument("path", help="The path to remove")
    p_delete.set_defaults(func=cmd_delete)

    # -- list --------------------------------------------------------------
    p_list = sub.add_parser("list", parents=[_common], help="List all indexed paths")
    p_list.add_argument(
        "--json", action="store_true",
        help="Machine-readable output (one JSON object per line)",
    )
    p_list.add_argument(
        "--sort", choices=("path", "recent"), default="path",
        help="Order by path (default) or most recent visit first",
    )
    p_list.set_defaults(func=cmd_list)

    # -- init --------------------------------------------------------------
    p_init = sub.add_parser("init", parents=[_common], help="Integrate scotty in your shell")
    p_init.add_argument("shell", help="The shell to integrate with: bash|zsh")
    p_init.set_defaults(func=cmd_init)

    # -- check -------------------------------------------------------------
    p_check = sub.add_parser(
        "check", parents=[_common],
        help="Verify the search index against the path ledger",
    )
    p_check.add_argument(
        "--repair", action="store_true",
        help="Rebuild the search index from the ledger if they diverge",
    )
    p_check.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    p_check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[list] = None) -> None:
    """CLI entry point: scotty <command> [args]."""
    global _quiet

    parser = build_parser()
    args = parser.parse_args(argv)

    _quiet = getattr(args, "quiet", False)

    if getattr(args, "verbose", False):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s %(message)s",
        )
    else:
        logging.basicConfig(level=_env_log_level("SCOTTY_LOG", logging.WARNING))

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except BrokenPipeError:
        # Handle broken pipe gracefully (e.g. scotty list | head)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except _OPERATIONAL_ERRORS as e:
        _warn(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        _warn(f"Internal error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
