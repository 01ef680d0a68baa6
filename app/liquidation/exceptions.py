"""
Custom exceptions for the liquidation monitor.

Fatal errors (ConfigError, EventFilterMissing) terminate the process.
Everything else is logged and isolated to the cycle or the borrower.
"""

from typing import Optional


class LiquidationBotError(Exception):
    """Base exception for all liquidation monitor errors."""


class ConfigError(LiquidationBotError):
    """Raised for configuration-related errors."""


class EventFilterMissing(LiquidationBotError):
    """Raised when the borrower discovery event is not in the contract ABI."""


class OracleUnavailable(LiquidationBotError):
    """Raised when the price oracle cannot be reached or returns a non-2xx status."""


class OracleEmptyResponse(LiquidationBotError):
    """Raised when the price oracle returns no update payloads."""


class OracleRelayFailed(LiquidationBotError):
    """Raised when the fee query or the price update transaction fails."""


class DiscoveryError(LiquidationBotError):
    """Raised when borrower discovery fails for a transient reason."""


class ReadError(LiquidationBotError):
    """Raised when a borrower's health factor cannot be read."""


class TransactionFailed(LiquidationBotError):
    """Raised when a submitted transaction reverts or is never confirmed."""


class StartFailed(LiquidationBotError):
    """Raised when an auction start simulation or submission fails."""

    def __init__(self, message: str, auction_handle: Optional[bytes] = None):
        super().__init__(message)
        self.auction_handle = auction_handle


class ExecuteFailed(LiquidationBotError):
    """Raised when an auction execution fails."""
