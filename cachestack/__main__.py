"""
cachestack — Command Line Interface

Runs single cache operations against the driver described by the environment
(CACHE_DRIVER, CACHE_STACK, REDIS_URL, ...).

    python -m cachestack set greeting hello --lifetime 600
    python -m cachestack get greeting --lifetime 600
    python -m cachestack exists greeting
    python -m cachestack expire greeting
"""

import argparse
import asyncio
import json
import sys

from .cache import close_all_caches, create_cache
from .config import load_config
from .errors import CacheStackError
from .observability import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cachestack", description="cachestack cache operations")
    parser.add_argument("--env-file", type=str, default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("get", help="Write a cached value to stdout (exit 1 on miss)")
    g.add_argument("key")
    g.add_argument("-l", "--lifetime", type=int, default=None, help="Max age in seconds (default: configured)")

    s = sub.add_parser("set", help="Store a value")
    s.add_argument("key")
    s.add_argument("value")
    s.add_argument("-l", "--lifetime", type=int, default=None, help="Lifetime in seconds (0 = never expire)")
    s.add_argument("--json", action="store_true", help="Parse VALUE as JSON")

    e = sub.add_parser("exists", help="Exit 0 if a fresh value exists, 1 otherwise")
    e.add_argument("key")
    e.add_argument("-l", "--lifetime", type=int, default=None)

    x = sub.add_parser("expire", help="Remove a key")
    x.add_argument("key")

    return parser


async def _async_main(args: argparse.Namespace) -> int:
    cache = create_cache()
    try:
        if args.cmd == "get":
            found = await cache.output(args.key, args.lifetime)
            if found:
                sys.stdout.write("\n")
            return 0 if found else 1
        if args.cmd == "set":
            value = json.loads(args.value) if args.json else args.value
            return 0 if await cache.set(args.key, value, args.lifetime) else 1
        if args.cmd == "exists":
            return 0 if await cache.exists(args.key, args.lifetime) else 1
        return 0 if await cache.expire(args.key) else 1
    finally:
        await close_all_caches()


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run one operation and return the exit code."""
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(env_file=args.env_file)
        setup_logging(config.log_level)
        return asyncio.run(_async_main(args))
    except CacheStackError as e:
        print(json.dumps(e.to_dict(), default=str), file=sys.stderr)
        return 2
    except json.JSONDecodeError as e:
        print(f"VALUE is not valid JSON: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
