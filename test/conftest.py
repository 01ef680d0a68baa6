from unittest.mock import MagicMock

import pytest

from app.liquidation.config_loader import MonitorConfig
from app.liquidation.models import TransactionResult

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
BORROWER_X = "0x1111111111111111111111111111111111111111"
BORROWER_Y = "0x2222222222222222222222222222222222222222"
BORROWER_Z = "0x3333333333333333333333333333333333333333"
AUCTION_HANDLE = bytes.fromhex("ab" * 32)


@pytest.fixture()
def raw_config() -> dict:
    return {
        "rpcUrl": "http://localhost:8545",
        "privateKey": TEST_PRIVATE_KEY,
        "priceOracleAddress": "0x00000000000000000000000000000000000000a1",
        "protocolCoreAddress": "0x00000000000000000000000000000000000000a2",
        "liquidationManagerAddress": "0x00000000000000000000000000000000000000a3",
        "priceFeedIds": ["0xfeed01", "0xfeed02"],
    }


@pytest.fixture()
def config(raw_config) -> MonitorConfig:
    return MonitorConfig.from_dict(raw_config)


@pytest.fixture()
def price_feed() -> MagicMock:
    client = MagicMock()
    client.fetch_latest_update.return_value = [b"\x01\x02", b"\x03\x04"]
    return client


@pytest.fixture()
def chain_reader() -> MagicMock:
    reader = MagicMock()
    reader.discovery_window.return_value = (50_000, 100_000)
    reader.discover_borrowers.return_value = {BORROWER_X, BORROWER_Y}
    reader.read_health_factor.side_effect = lambda borrower: {
        BORROWER_X: 12_000,
        BORROWER_Y: 8_500,
        BORROWER_Z: 10_000,
    }[borrower]
    return reader


@pytest.fixture()
def trigger() -> MagicMock:
    liquidation_trigger = MagicMock()
    liquidation_trigger.relay_prices.return_value = TransactionResult(tx_hash="0xrelay")
    liquidation_trigger.start_auction.return_value = (AUCTION_HANDLE, TransactionResult(tx_hash="0xstart"))
    liquidation_trigger.execute_auction.return_value = TransactionResult(tx_hash="0xexecute")
    return liquidation_trigger
