"""CLI entry point: python -m coinduel [--config coinduel.yaml]"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from coinduel.config import ClientConfig, load_config
from coinduel.core.channel import ChannelConnectionError
from coinduel.core.poshti import PoshtiClient
from coinduel.core.seed import SeedManager
from coinduel.session import GameSession
from coinduel import __version__, ui

logger = logging.getLogger("coinduel")


def _configure_logging(config: ClientConfig) -> None:
    """Route logs to a file; the terminal belongs to the UI."""
    kwargs = {
        "level": getattr(logging, config.logging.level, logging.INFO),
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    }
    if config.logging.file is not None:
        kwargs["filename"] = str(config.logging.file)
    logging.basicConfig(**kwargs)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="coinduel",
        description="Two-player coin collection over a pub/sub channel",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to client YAML config file (default: built-in settings)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (DEBUG, INFO, ...)",
    )
    args = parser.parse_args()

    if args.config is not None and not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    load_dotenv()
    config = load_config(args.config)
    if args.log_level:
        config.logging.level = args.log_level.upper()
    _configure_logging(config)

    server = config.server
    token = server.token()
    if token is None:
        print(f"Error: set {server.token_env} to your channel auth token", file=sys.stderr)
        sys.exit(1)

    client = PoshtiClient(
        server.project_id,
        token,
        url=server.url,
        connect_timeout_s=server.connect_timeout_s,
        join_wait_s=server.join_wait_s,
        heartbeat_interval_s=server.heartbeat_interval_s,
        idle_threshold_s=server.idle_threshold_s,
    )
    seeds = SeedManager(config.game.seed)
    session = GameSession(
        client,
        server.channel,
        seeds=seeds,
        start_from_left=config.game.start_from_left,
        start_url=server.start_url,
    )

    try:
        client.connect()
        session.start()
    except ChannelConnectionError as exc:
        logger.error("Could not connect to poshti server: %s", exc)
        print(f"Could not connect to poshti server: {exc}", file=sys.stderr)
        session.outbox.close()
        sys.exit(1)

    logger.info("Joined channel %s (seed=%s)", server.channel, seeds.session_seed)
    try:
        ui.run(session)
    finally:
        session.close()


if __name__ == "__main__":
    main()
