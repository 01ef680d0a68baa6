"""
Standalone script to run the liquidation monitor without the HTTP API.

Usage:
    python run_monitor.py [config_path]

Exits 0 on SIGINT/SIGTERM, 1 on a fatal startup or configuration error.
The first signal stops the loop once the current step is done. A second one exits immediately.
"""

import signal
import sys

from dotenv import load_dotenv
load_dotenv()

from app.liquidation.bot_manager import build_monitor
from app.liquidation.config_loader import load_config
from app.liquidation.exceptions import ConfigError, EventFilterMissing
from app.liquidation.logging_config import global_exception_handler, setup_logger

logger = setup_logger("run_monitor")


def main() -> int:
    sys.excepthook = global_exception_handler
    config_path = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        config = load_config(config_path)
        monitor = build_monitor(config)
    except (ConfigError, EventFilterMissing) as ex:
        logger.critical("Fatal error: %s", ex)
        return 1

    def handle_signal(signum, _frame):
        logger.info("Received signal %s, stopping monitor after the current step. Send again to exit now.", signum)
        # A second signal takes the default action and terminates the process
        signal.signal(signal.SIGINT, signal.SIG_DFL)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)
        monitor.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        monitor.run_forever()
    except EventFilterMissing as ex:
        logger.critical("Fatal error: %s", ex)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
