"""
Standalone script to check a single borrower and optionally start its liquidation auction.

Usage:
    python check_borrower.py <borrower_address>
"""

import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from web3 import Web3

from app.liquidation.bot_manager import build_monitor
from app.liquidation.config_loader import load_config

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("check_borrower")


def main():
    if len(sys.argv) < 2:
        print("Usage: python check_borrower.py <borrower_address>")
        sys.exit(1)

    borrower = Web3.to_checksum_address(sys.argv[1])
    config = load_config()
    monitor = build_monitor(config)

    from_block, to_block = monitor.chain_reader.discovery_window()
    logger.info("Discovery window: %s to %s", from_block, to_block)

    health_factor = monitor.chain_reader.read_health_factor(borrower)
    logger.info("Health factor for %s: %s bps (threshold %s bps)",
                borrower, health_factor, config.health_factor_threshold_bps)

    if health_factor >= config.health_factor_threshold_bps:
        logger.info("Borrower is healthy. Exiting.")
        return

    auction_handle = monitor.trigger.simulate_start_auction(borrower)
    logger.info("startAuction simulation returned auction id %s", Web3.to_hex(auction_handle))

    answer = input("START AUCTION? (y/n)")
    if answer != "y":
        logger.info("Exiting.")
        return

    outcome = monitor.evaluate_borrower(borrower)
    logger.info("Outcome: %s", outcome.to_dict())


if __name__ == "__main__":
    main()
