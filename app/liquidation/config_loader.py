"""
Config Loader module - immutable monitor configuration and Web3 setup
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from web3 import Account, Web3

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = os.path.join(os.getcwd(), "monitor", "config.json")
DEFAULT_HERMES_URL = "https://hermes.pyth.network/v2/updates/price/latest"
DEFAULT_POLL_INTERVAL_MS = 60_000
DEFAULT_LOOKBACK_BLOCKS = 50_000
DEFAULT_THRESHOLD_BPS = 10_000
DEFAULT_TX_RECEIPT_TIMEOUT = 120
DEFAULT_HTTP_TIMEOUT = 10

ABI_DIR = Path(__file__).resolve().parent.parent / "abis"

REQUIRED_FIELDS = [
    "rpcUrl",
    "privateKey",
    "priceOracleAddress",
    "protocolCoreAddress",
    "liquidationManagerAddress",
]

# Environment variables that take precedence over the config file
ENV_OVERRIDES = {
    "rpcUrl": "MONITOR_RPC_URL",
    "privateKey": "MONITOR_PRIVATE_KEY",
    "notificationUrl": "NOTIFICATION_URL",
}


class Web3Singleton:
    """
    Singleton class to manage w3 object creation per RPC URL
    """

    _instances = {}

    @staticmethod
    def get_instance(rpc_url: Optional[str] = None):
        """
        Set up a Web3 instance for the given RPC URL.
        Maintains separate instances per unique RPC URL.
        """

        if rpc_url not in Web3Singleton._instances:
            Web3Singleton._instances[rpc_url] = Web3(Web3.HTTPProvider(rpc_url))

        return Web3Singleton._instances[rpc_url]


def setup_w3(rpc_url: Optional[str] = None) -> Web3:
    """
    Get the Web3 instance from the singleton class

    Args:
        rpc_url (Optional[str]): RPC URL of the node to connect to

    Returns:
        Web3: Web3 instance.
    """
    return Web3Singleton.get_instance(rpc_url)


@dataclass(frozen=True)
class MonitorConfig:
    """
    Monitor configuration. Loaded once at process start and never mutated.
    """

    rpc_url: str
    private_key: str
    price_oracle_address: str
    protocol_core_address: str
    liquidation_manager_address: str
    hermes_url: str = DEFAULT_HERMES_URL
    price_feed_ids: Tuple[str, ...] = ()
    borrower_scan_lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS
    health_factor_threshold_bps: int = DEFAULT_THRESHOLD_BPS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    auto_execute_liquidation: bool = False
    start_block: Optional[int] = None
    notification_url: str = ""
    tx_receipt_timeout: int = DEFAULT_TX_RECEIPT_TIMEOUT
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    price_oracle_abi_path: str = str(ABI_DIR / "PriceOracle.json")
    protocol_core_abi_path: str = str(ABI_DIR / "ProtocolCore.json")
    liquidation_manager_abi_path: str = str(ABI_DIR / "LiquidationManager.json")

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def notify(self) -> bool:
        return bool(self.notification_url)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MonitorConfig":
        """
        Build a config from the camelCase keys of the config file.
        Missing optional fields take their documented defaults.
        """
        if not isinstance(raw, dict):
            raise ConfigError("Configuration must be a mapping of field names to values")

        missing_keys = [key for key in REQUIRED_FIELDS if not raw.get(key)]
        if missing_keys:
            raise ConfigError(f"Missing required configuration fields: {', '.join(missing_keys)}")

        feed_ids = raw.get("priceFeedIds") or []
        if isinstance(feed_ids, str) or not isinstance(feed_ids, (list, tuple)):
            raise ConfigError("priceFeedIds must be a list of feed identifiers")

        start_block = raw.get("startBlock")
        optional_paths = {
            "price_oracle_abi_path": raw.get("priceOracleAbiPath"),
            "protocol_core_abi_path": raw.get("protocolCoreAbiPath"),
            "liquidation_manager_abi_path": raw.get("liquidationManagerAbiPath"),
        }

        return cls(
            rpc_url=str(raw["rpcUrl"]),
            private_key=_private_key(raw),
            price_oracle_address=_checksum(raw, "priceOracleAddress"),
            protocol_core_address=_checksum(raw, "protocolCoreAddress"),
            liquidation_manager_address=_checksum(raw, "liquidationManagerAddress"),
            hermes_url=raw.get("hermesUrl") or DEFAULT_HERMES_URL,
            # dict.fromkeys keeps the configured order while dropping repeats
            price_feed_ids=tuple(dict.fromkeys(str(feed_id) for feed_id in feed_ids)),
            borrower_scan_lookback_blocks=_int_field(raw, "borrowerScanLookbackBlocks", DEFAULT_LOOKBACK_BLOCKS),
            health_factor_threshold_bps=_int_field(raw, "healthFactorThresholdBps", DEFAULT_THRESHOLD_BPS),
            poll_interval_ms=_int_field(raw, "pollIntervalMs", DEFAULT_POLL_INTERVAL_MS, minimum=1),
            auto_execute_liquidation=_bool_field(raw, "autoExecuteLiquidation"),
            start_block=None if start_block is None else _int_field(raw, "startBlock", 0),
            notification_url=raw.get("notificationUrl") or "",
            tx_receipt_timeout=_int_field(raw, "txReceiptTimeout", DEFAULT_TX_RECEIPT_TIMEOUT, minimum=1),
            http_timeout=_int_field(raw, "httpTimeout", DEFAULT_HTTP_TIMEOUT, minimum=1),
            **{key: value for key, value in optional_paths.items() if value},
        )


def _checksum(raw: Dict[str, Any], key: str) -> str:
    value = raw[key]
    if not Web3.is_address(value):
        raise ConfigError(f"{key} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def _private_key(raw: Dict[str, Any]) -> str:
    value = str(raw["privateKey"])
    try:
        Account.from_key(value)
    except Exception as exc:
        # the key itself is never echoed back
        raise ConfigError("privateKey is not a valid secp256k1 private key") from exc
    return value


def _int_field(raw: Dict[str, Any], key: str, default: int, minimum: int = 0) -> int:
    value = raw.get(key)
    if value is None:
        return default
    # bool is a subclass of int and is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be at least {minimum}, got {value}")
    return value


def _bool_field(raw: Dict[str, Any], key: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Read the raw config file. JSON by default, YAML for .yaml/.yml files."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if Path(config_path).suffix.lower() in (".yaml", ".yml"):
                return yaml.safe_load(f)
            return json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"Configuration file not found at {config_path}. "
            "Please create it based on monitor/config.example.json"
        ) from exc
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error parsing JSON config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config file {config_path}: {e}") from e


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """
    Load the monitor configuration.

    Args:
        config_path: Path to the config file. Defaults to MONITOR_CONFIG_PATH or monitor/config.json.

    Returns:
        MonitorConfig: The immutable configuration.
    """
    config_path = config_path or os.environ.get("MONITOR_CONFIG_PATH", DEFAULT_CONFIG_PATH)
    raw = read_config_file(config_path) or {}
    if isinstance(raw, dict):
        for key, env_var in ENV_OVERRIDES.items():
            if os.environ.get(env_var):
                raw[key] = os.environ[env_var]

    return MonitorConfig.from_dict(raw)
