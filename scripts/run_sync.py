"""
Run the report sync: forever on the schedule, or one pass with --once
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings, validate_runtime_settings
from core.exceptions import ConfigurationError, ETLException
from core.logging import setup_logging
from ingestion.pipeline import SyncPipeline
from ingestion.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync report API data into the warehouse")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass immediately, ignoring the allowed hours",
    )
    return parser.parse_args(argv)


async def run_once() -> int:
    summary = await SyncPipeline().run_pass()
    for result in summary["reports"]:
        logger.info(
            f"{result['report']}: {result['status']} "
            f"(attempts={result.get('attempts')}, records={result.get('records_loaded', 0)})"
        )
    return 0 if summary["status"] == "success" else 1


async def run_forever() -> int:
    scheduler = SyncScheduler()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(scheduler.stop))

    logger.info(
        f"Syncing every {settings.SYNC_INTERVAL_MINUTES} minutes between "
        f"{settings.ALLOWED_START_HOUR}:00 and {settings.ALLOWED_END_HOUR}:00 "
        f"{settings.SCHEDULE_TIMEZONE}"
    )
    await scheduler.run_until_stopped()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        validate_runtime_settings()
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 1

    try:
        return asyncio.run(run_once() if args.once else run_forever())
    except ETLException as e:
        logger.critical(f"Report sync aborted: {e}", extra={"error_context": e.to_dict()})
        return 1
    except Exception:
        logger.critical("Unhandled exception in report sync", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
