import threading
from typing import Optional

from .chain_reader import ChainStateReader
from .config_loader import MonitorConfig, load_config, setup_w3
from .contracts import create_contract_instance
from .logging_config import setup_logger
from .monitor import MonitorLoop
from .price_feed import PriceFeedClient
from .trigger import LiquidationTrigger

logger = setup_logger("manager")


def build_monitor(config: MonitorConfig) -> MonitorLoop:
    """
    Wire a MonitorLoop from its configuration.

    Raises:
        EventFilterMissing: the ProtocolCore ABI has no Borrowed event.
    """
    w3 = setup_w3(config.rpc_url)

    price_oracle = create_contract_instance(w3, config.price_oracle_address, config.price_oracle_abi_path)
    protocol_core = create_contract_instance(w3, config.protocol_core_address, config.protocol_core_abi_path)
    liquidation_manager = create_contract_instance(
        w3, config.liquidation_manager_address, config.liquidation_manager_abi_path
    )

    chain_reader = ChainStateReader(
        w3,
        protocol_core,
        lookback_blocks=config.borrower_scan_lookback_blocks,
        start_block=config.start_block,
    )
    trigger = LiquidationTrigger(
        w3,
        config.private_key,
        price_oracle,
        liquidation_manager,
        receipt_timeout=config.tx_receipt_timeout,
    )
    price_feed = PriceFeedClient(config.hermes_url, timeout=config.http_timeout)

    logger.info("Liquidator account %s", trigger.address)
    return MonitorLoop(config, price_feed, chain_reader, trigger)


class MonitorManager:
    """Owns the monitor and the background thread it runs on when served behind Flask."""

    def __init__(self, config: Optional[MonitorConfig] = None, monitor: Optional[MonitorLoop] = None):
        self.config = config or load_config()
        self.monitor = monitor or build_monitor(self.config)
        self.thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    def start(self) -> threading.Thread:
        """Run the monitor on a daemon thread."""
        self.thread = threading.Thread(target=self._run, name="liquidation-monitor", daemon=True)
        self.thread.start()
        return self.thread

    def _run(self) -> None:
        try:
            self.monitor.run_forever()
        except Exception as ex:
            self.error = ex
            logger.critical("Monitor stopped on fatal error: %s", ex, exc_info=True)

    @property
    def last_report(self):
        return self.monitor.last_report

    def stop(self) -> None:
        self.monitor.stop()
        if self.thread is not None:
            self.thread.join()
