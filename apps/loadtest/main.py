from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from packages.connectors.api.client import ApiClient
from packages.connectors.oauth.authenticator import AuthenticationError, Authenticator

from .config import LOG_LEVELS, Configuration, ConfigurationError, get_settings, load_configuration
from .engine import LoadTest

logger = logging.getLogger("apps.loadtest")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="loadtest",
        description="Run the scripted API load test and report per-request results.",
    )
    parser.add_argument("--config", help="Path to the JSON configuration file")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Diagnostic log level (default: WARNING)",
    )
    return parser.parse_args(argv)


async def run(configuration: Configuration) -> None:
    app = configuration.app
    scenario = configuration.scenario
    async with Authenticator(
        configuration.oauth, timeout=app.timeout_seconds, verify=app.verify_ssl
    ) as authenticator, ApiClient(
        base_url=app.base_url,
        timeout=app.timeout_seconds,
        verify=app.verify_ssl,
        max_connections=scenario.batch_size,
    ) as api_client:
        await LoadTest(authenticator, api_client, scenario).execute()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"loadtest: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=args.log_level or settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )

    try:
        configuration = load_configuration(args.config or settings.config_file)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    try:
        asyncio.run(run(configuration))
    except AuthenticationError as exc:
        logger.error("Load test setup failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
