"""CLI for listing Log Cache sources with their resolved names."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta
from typing import Optional

import structlog
from pydantic import SecretStr, ValidationError

from ..common.errors import ConfigurationError, LogCacheError
from ..common.observability import configure_logging, configure_tracing
from ..common.settings import LogCacheSettings
from ..meta.pipeline import MetaOptions, run_meta
from ..meta.scope import parse_scope

LOGGER = structlog.get_logger("logcache.cli.meta")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="logcache-meta",
        description="Show Log Cache sources with application and service instance names",
    )
    parser.add_argument("--guid", action="store_true", help="Display the raw source ID column")
    parser.add_argument("--noise", action="store_true", help="Display the approximate per-second rate column")
    parser.add_argument(
        "--scope",
        default="all",
        help="Restrict sources to 'applications', 'platform' or 'all' (default: all)",
    )
    parser.add_argument(
        "--no-headers",
        action="store_true",
        help="Omit the preamble and header row (implied when stdout is not a terminal)",
    )
    parser.add_argument("--rate-window", type=int, help="Rate lookback window in seconds")
    parser.add_argument("--api-url", help="Cloud Controller API URL (overrides LOG_CACHE_API_URL)")
    parser.add_argument("--token", help="OAuth access token (overrides LOG_CACHE_TOKEN)")
    parser.add_argument("--username", help="Username shown in the preamble (overrides LOG_CACHE_USERNAME)")
    parser.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    return parser.parse_args(argv)


def build_options(args: argparse.Namespace, *, interactive: bool) -> MetaOptions:
    if args.extra:
        raise ConfigurationError(f"Invalid arguments, expected 0, got {len(args.extra)}.")
    if args.rate_window is not None and args.rate_window < 1:
        raise ConfigurationError("Rate window must be at least 1 second.")
    return MetaOptions(
        show_guid=args.guid,
        show_rate=args.noise,
        scope=parse_scope(args.scope),
        headers=interactive and not args.no_headers,
    )


def load_settings(args: argparse.Namespace) -> LogCacheSettings:
    try:
        settings = LogCacheSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc.error_count()} validation error(s)") from exc
    overrides: dict[str, object] = {}
    if args.api_url:
        overrides["api_url"] = args.api_url
    if args.token:
        overrides["access_token"] = SecretStr(args.token)
    if args.username:
        overrides["username"] = args.username
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


def stdout_is_tty() -> bool:
    return sys.stdout.isatty()


async def run(argv: Optional[list[str]] = None) -> str:
    args = parse_args(argv)
    settings = load_settings(args)
    configure_logging("logcache.meta", settings.log_level)
    options = build_options(args, interactive=stdout_is_tty())
    configure_tracing(settings)
    rate_window = timedelta(seconds=args.rate_window) if args.rate_window else None
    output = await run_meta(settings, options, rate_window=rate_window)
    sys.stdout.write(output)
    return output


def main(argv: Optional[list[str]] = None) -> None:
    configure_logging("logcache.meta")
    try:
        asyncio.run(run(argv))
    except LogCacheError as exc:
        LOGGER.info("Meta command failed", error=exc.describe(), error_type=type(exc).__name__)
        raise SystemExit(exc.describe()) from None


if __name__ == "__main__":
    main()
