"""
Apprise notification functions for the liquidation monitor.
"""

import time
from urllib.parse import urlparse

from apprise import Apprise
from web3 import Web3

from .config_loader import MonitorConfig
from .logging_config import setup_logger
from .models import HealthEvaluation

logger = setup_logger("notifications")


def setup_apprise_notification_object(config: MonitorConfig) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    apprise.add(config.notification_url)
    return apprise


def _network(config: MonitorConfig) -> str:
    return urlparse(config.rpc_url).hostname or config.rpc_url


def post_unhealthy_borrower_notification(evaluation: HealthEvaluation, config: MonitorConfig) -> bool:
    """Post a notification about a borrower below the health threshold."""
    message = (
        ":warning: *Unhealthy Borrower Detected* :warning:\n\n"
        f"*Borrower*: `{evaluation.borrower}`\n"
        f"*Health Factor*: `{evaluation.health_factor_bps / 100:.2f}%` ({evaluation.health_factor_bps} bps)\n"
        f"*Threshold*: `{evaluation.threshold_bps} bps`\n"
        f"Time of detection: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{_network(config)}`\n"
    )
    logger.info("Unhealthy borrower notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Unhealthy Borrower Detected")


def post_auction_started_notification(
    borrower: str, auction_handle: bytes, tx_hash: str, config: MonitorConfig
) -> bool:
    """Post a notification about a started liquidation auction."""
    message = (
        ":rotating_light: *Liquidation Auction Started* :rotating_light:\n\n"
        f"*Borrower*: `{borrower}`\n"
        f"*Auction*: `{Web3.to_hex(auction_handle)}`\n"
        f"*Transaction*: `{tx_hash}`\n"
        f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{_network(config)}`"
    )
    logger.info("Auction started notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Liquidation Auction Started")


def post_liquidation_result_notification(
    borrower: str, auction_handle: bytes, tx_hash: str, config: MonitorConfig
) -> bool:
    """Post a notification about an executed liquidation."""
    message = (
        ":moneybag: *Liquidation Executed* :moneybag:\n\n"
        f"*Borrower*: `{borrower}`\n"
        f"*Auction*: `{Web3.to_hex(auction_handle)}`\n"
        f"*Transaction*: `{tx_hash}`\n"
        f"Time of liquidation: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{_network(config)}`"
    )
    logger.info("Liquidation result notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Liquidation Executed")


def post_error_notification(message: str, config: MonitorConfig) -> bool:
    """Post an error notification."""
    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    error_message += f"Network: `{_network(config)}`"

    logger.info("Error notification:\n%s", error_message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=error_message, title="Error Notification")
