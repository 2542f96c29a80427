#!/usr/bin/env python3
"""
dep-install-cache - Cache the output of dependency install commands

Usage:
    dep-install-cache install [--cache-dir=<CACHE_DIR>] [--force-refresh] \
        [<MANAGER> [<INSTALL_OPTIONS>...]]...
    dep-install-cache hash [<MANAGER>...]
    dep-install-cache clean [--cache-dir=<CACHE_DIR>] [--older-than=<SECONDS>]
    dep-install-cache serve <port> [--cache-dir=<CACHE_DIR>] [--host=<HOST>] \
        [--is-public] [--api-keys=<KEY1>,<KEY2>,...]

Examples:
    dep-install-cache install                      # every manager with a manifest here
    dep-install-cache install npm --production bower --allow-root
    dep-install-cache install --force-refresh composer

Flags of a subcommand go before the first manager name; everything after a
manager name is passed to that manager's install command.
"""

import argparse
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from application.load_dependencies import LoadDependencies
from domain.errors import CacheError, UnknownManagerError
from domain.fingerprint import compute_fingerprint
from infrastructure.file_system_cache_store import FileSystemCacheStore
from infrastructure.manager_registry import (
    DEFAULT_MANAGERS, MANAGERS, build_config, get_available_managers, get_definition
)

logger = logging.getLogger("dep_install_cache")

CACHE_DIR_ENV = "DEP_INSTALL_CACHE_DIR"
DEFAULT_CACHE_DIR = "~/.package_cache"
# Flags of the install subcommand; after a manager name they become install options
INSTALL_FLAGS = ("--cache-dir", "--force-refresh")


def default_cache_dir() -> str:
    return os.environ.get(CACHE_DIR_ENV) or DEFAULT_CACHE_DIR


def parse_manager_args(args: List[str]) -> List[Tuple[str, str]]:
    """
    Split 'npm --production bower --allow-root' into
    [('npm', '--production'), ('bower', '--allow-root')].

    An empty list means every manager whose manifest is present.
    """
    groups: List[Tuple[str, List[str]]] = []

    for arg in args:
        if arg in MANAGERS:
            groups.append((arg, []))
        elif not groups:
            raise UnknownManagerError(arg)
        else:
            groups[-1][1].append(arg)

    return [(name, shlex.join(options)) for name, options in groups]


def detect_managers(work_dir: Path) -> List[str]:
    """Default managers whose manifest exists in work_dir."""
    return [
        name for name in DEFAULT_MANAGERS
        if (work_dir / get_definition(name).manifest_name).exists()
    ]


def run_install(args: argparse.Namespace) -> int:
    work_dir = Path.cwd()
    try:
        requested = parse_manager_args(args.managers)
    except UnknownManagerError as e:
        logger.error("%s (available: %s)", e, ", ".join(get_available_managers()))
        return 2

    if not requested:
        requested = [(name, "") for name in detect_managers(work_dir)]
        if not requested:
            logger.info("No dependency config files found in %s", work_dir)
            return 0

    for name, options in requested:
        words = {word.split("=", 1)[0] for word in shlex.split(options)}
        misplaced = [flag for flag in INSTALL_FLAGS if flag in words]
        if misplaced:
            logger.warning(
                "[%s] passing %s to %s as install options; put them before the manager names",
                name, " ".join(misplaced), name
            )

    loader = LoadDependencies()
    failed = False

    for name, options in requested:
        try:
            config = build_config(
                name,
                cache_root=args.cache_dir,
                install_options=options,
                force_refresh=args.force_refresh,
                work_dir=work_dir
            )
            result = loader.load(config)
            logger.info("[%s] %s", name, result.outcome.value)
        except (CacheError, OSError) as e:
            logger.error("[%s] %s", name, e)
            failed = True

    return 1 if failed else 0


def run_hash(args: argparse.Namespace) -> int:
    work_dir = Path.cwd()
    names = args.managers or get_available_managers()
    status = 0

    for name in names:
        try:
            manifest = work_dir / get_definition(name).manifest_name
        except UnknownManagerError as e:
            logger.error("%s", e)
            status = 2
            continue
        if not manifest.exists():
            continue
        try:
            print(f"{name} {compute_fingerprint(manifest)}")
        except OSError as e:
            logger.error("[%s] %s", name, e)
            status = status or 1

    return status


def run_clean(args: argparse.Namespace) -> int:
    store = FileSystemCacheStore(args.cache_dir)
    try:
        if args.older_than is not None:
            removed = store.cleanup_old_archives(args.older_than)
            logger.info("Removed %d archives older than %d seconds", removed, args.older_than)
        else:
            store.clear()
            logger.info("Cleared cache at %s", store.cache_root)
    except OSError as e:
        logger.error("Could not clean %s: %s", store.cache_root, e)
        return 1
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn
    from interfaces.api import initialize_app

    api_keys = None
    if args.api_keys:
        api_keys = [key.strip() for key in args.api_keys.split(',') if key.strip()]

    if not args.is_public and not api_keys:
        print("Error: Either --is-public must be set or --api-keys must be provided", file=sys.stderr)
        return 1

    cache_dir = str(Path(args.cache_dir).expanduser())
    app = initialize_app(cache_dir=cache_dir, is_public=args.is_public, api_keys=api_keys)

    print(f"Starting dep-install-cache server on {args.host}:{args.port}")
    print(f"Cache directory: {cache_dir}")
    print(f"Public mode: {args.is_public}")

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dep-install-cache',
        description='Cache the output of dependency install commands',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug output')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only show errors')

    subparsers = parser.add_subparsers(dest='command', required=True)

    install = subparsers.add_parser('install', help='Install dependencies, using the cache when possible')
    install.add_argument('--cache-dir', default=default_cache_dir(),
                         help=f'Directory to store archives (default: ${CACHE_DIR_ENV} or {DEFAULT_CACHE_DIR})')
    install.add_argument('--force-refresh', action='store_true',
                         help='Ignore cached archives and run the install command')
    install.add_argument('managers', nargs=argparse.REMAINDER,
                         help=f'Managers with their install options ({", ".join(get_available_managers())}); '
                              'flags must come before the first manager')
    install.set_defaults(func=run_install)

    hash_parser = subparsers.add_parser('hash', help='Print manifest fingerprints')
    hash_parser.add_argument('managers', nargs='*')
    hash_parser.set_defaults(func=run_hash)

    clean = subparsers.add_parser('clean', help='Remove cached archives')
    clean.add_argument('--cache-dir', default=default_cache_dir())
    clean.add_argument('--older-than', type=int, metavar='SECONDS',
                       help='Only remove archives older than this many seconds')
    clean.set_defaults(func=run_clean)

    serve = subparsers.add_parser('serve', help='Share the cache directory over HTTP')
    serve.add_argument('port', type=int, help='Port to listen on')
    serve.add_argument('--cache-dir', default=default_cache_dir())
    serve.add_argument('--host', default='0.0.0.0', help='Host to bind to (default: 0.0.0.0)')
    serve.add_argument('--is-public', action='store_true', help='Run server without authentication')
    serve.add_argument('--api-keys', help='Comma-separated list of API keys for authentication')
    serve.set_defaults(func=run_serve)

    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format='%(levelname)s %(message)s')


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
