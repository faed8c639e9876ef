"""Propagation engine runner.

Starts one worker per outbox partition that delivers catalogue change events
to the search index until interrupted.

Usage:
    python src/server.py                  # Partitions from settings
    python src/server.py --partitions 8   # Override the partition count
"""

import argparse
import asyncio
import signal

import structlog

from services import build_services
from shared.config import get_settings
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)


async def run(partitions=None):
    settings = get_settings()
    if partitions is not None:
        settings = settings.model_copy(update={"propagation_partitions": partitions})

    services = build_services(settings)
    engine = services.propagation

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, engine.shutdown)

    try:
        await engine.run()
    finally:
        services.domain.close()


def main():
    parser = argparse.ArgumentParser(description="Storefront propagation engine runner")
    parser.add_argument(
        "--partitions",
        type=int,
        help="Number of outbox partitions to work (default: from settings)",
    )
    args = parser.parse_args()

    configure_logging(log_dir="logs", log_file_prefix="storefront")
    asyncio.run(run(args.partitions))


if __name__ == "__main__":
    main()
