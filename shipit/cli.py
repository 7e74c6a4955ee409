"""
Command line entry point.

Runs exactly one scan cycle and exits:

    0  the cycle completed (individual candidates may still have failed)
    1  the configuration is missing or invalid
    2  Bitbucket could not be reached to identify the user or list pull requests
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from shipit import __version__
from shipit.bitbucket import AsyncBitbucketClient
from shipit.config import Config, load_config
from shipit.exceptions import ConfigurationError, ShipitError
from shipit.jenkins import AsyncJenkinsClient
from shipit.logging import configure_logging
from shipit.orchestrator import Orchestrator
from shipit.types.cycle import CycleSummary

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNREACHABLE = 2

logger = logging.getLogger("shipit.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipit",
        description="Merge Bitbucket pull requests marked with a merge trigger.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML configuration file (default: $SHIPIT_CONFIG, else environment only)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every request and decision to stderr",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        configure_logging(level=logging.DEBUG)
    elif args.quiet:
        configure_logging(level=logging.WARNING)
    else:
        configure_logging(level=logging.INFO)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e.message)
        return EXIT_CONFIG_ERROR

    try:
        summary = asyncio.run(run_once(config))
    except ShipitError as e:
        logger.error("Could not reach Bitbucket at %s: %s", config.bitbucket_url, e)
        return EXIT_UNREACHABLE

    print(summary.format(), file=sys.stdout)
    return EXIT_OK


async def run_once(config: Config) -> CycleSummary:
    """Open the clients the configuration calls for and run one cycle."""
    async with AsyncBitbucketClient.from_config(config) as bitbucket:
        if config.jenkins is None:
            return await Orchestrator(config, bitbucket).run_cycle()

        async with AsyncJenkinsClient.from_config(
            config.jenkins, timeout=config.request_timeout_seconds
        ) as jenkins:
            return await Orchestrator(config, bitbucket, jenkins).run_cycle()
