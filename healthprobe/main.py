"""Command-line entry point for the health probe.

Parse the probe flags, configure logging, run a single probe and map its
outcome to the process exit code. Confine all side effects (logging
configuration, stdout/stderr writes) to `main` so the probe itself stays a
pure request-and-classify step.

Exit Codes:
    0: Healthy - Response status in [200, 400).
    1: Transport error - No response obtained.
    2: Unhealthy - Response status outside [200, 400), or invalid flags.
"""

import argparse
import logging.config
import sys
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from healthprobe.config import DEFAULT_TIMEOUT, DEFAULT_URL, Settings, get_settings
from healthprobe.core.logging_config import (
    bind_contextvars,
    clear_contextvars,
    configure_structlog,
    get_logger,
    get_logging_config,
    unbind_contextvars,
)
from healthprobe.prober import ProbeResult, probe


# Accepted flag spellings; prefixes such as `-u` or `--time` are rejected.
FLAGS = ("-url", "--url", "-timeout", "--timeout", "-h", "--help")


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}")
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of seconds: {value!r}")
    return parsed


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise argparse.ArgumentTypeError("must not be empty")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Flags accept both the single-dash form (`-url`) used by container
    HEALTHCHECK lines and the double-dash form (`--url`). Unset flags fall
    back to the environment settings.
    """
    parser = argparse.ArgumentParser(
        prog="healthprobe",
        description="Probe an HTTP endpoint once and exit with its health status.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-url",
        "--url",
        dest="url",
        type=_non_empty,
        default=None,
        help=f"URL to probe (default: $HEALTHCHECK_URL or {DEFAULT_URL})",
    )
    parser.add_argument(
        "-timeout",
        "--timeout",
        dest="timeout",
        type=_positive_int,
        default=None,
        help=f"timeout seconds (default: $HEALTHCHECK_TIMEOUT or {DEFAULT_TIMEOUT})",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse `argv`, rejecting any flag not spelled exactly as in FLAGS.

    argparse resolves single-dash prefixes such as `-u` to `-url` even with
    `allow_abbrev=False`, so unknown spellings are caught before parsing.
    """
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    for token in argv:
        name = token.split("=", 1)[0]
        if token.startswith("-") and not token[1:2].isdigit() and name not in FLAGS:
            parser.error(f"flag provided but not defined: {name}")
    return parser.parse_args(argv)


def setup_logging(settings: Settings) -> None:
    """Apply the stdlib logging configuration and the structlog wrapper."""
    logging.config.dictConfig(get_logging_config(settings))
    configure_structlog()


def report(result: ProbeResult) -> None:
    """Write the result line: stdout when healthy, stderr otherwise."""
    stream = sys.stdout if result.is_healthy else sys.stderr
    stream.write(f"{result.message}\n")
    stream.flush()


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> int:
    """Run one probe and return the exit code.

    Args:
        argv: Command-line arguments, defaults to `sys.argv[1:]`.
        settings: Settings override; loaded from the environment when omitted.
        transport: Optional httpx transport override, used by tests.

    Returns:
        int: 0 when healthy, 1 on transport error, 2 on unhealthy status.
    """
    args = parse_args(argv)

    if settings is None:
        try:
            settings = get_settings()
        except ValidationError as exc:
            build_parser().error(f"invalid configuration: {exc}")

    setup_logging(settings)
    logger = get_logger("healthprobe")

    url = args.url if args.url is not None else settings.HEALTHCHECK_URL
    timeout = args.timeout if args.timeout is not None else settings.HEALTHCHECK_TIMEOUT

    clear_contextvars()
    bind_contextvars(probe_url=url)
    try:
        result = probe(url, timeout, transport=transport)
        logger.info(
            "probe_finished",
            outcome=result.outcome.name,
            exit_code=result.exit_code,
        )
    finally:
        unbind_contextvars("probe_url")

    report(result)
    return result.exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
