"""
MonitorLoop - drives the liquidation monitor one cycle at a time.

Each cycle: relay the latest prices, discover borrowers in the lookback window,
evaluate each borrower in turn and start (and optionally execute) an auction for
anyone below the health threshold, then sleep for the poll interval.
"""

import threading
import time
from typing import Callable, List, Set

from web3 import Web3

from .chain_reader import ChainStateReader
from .config_loader import MonitorConfig
from .evaluator import evaluate
from .exceptions import EventFilterMissing, OracleEmptyResponse, StartFailed
from .logging_config import setup_logger
from .models import BorrowerOutcome, CycleReport, Outcome
from .notifications import (
    post_auction_started_notification,
    post_error_notification,
    post_liquidation_result_notification,
    post_unhealthy_borrower_notification,
)
from .price_feed import PriceFeedClient
from .trigger import LiquidationTrigger

logger = setup_logger("monitor")


class MonitorLoop:
    """
    Single-threaded monitor. Cycles never overlap and borrowers are evaluated one at a time,
    since every transaction is signed by the same account.

    Nothing is carried from one cycle to the next except the last report, which is only read
    by the status endpoint. In particular auction handles are not persisted, so a borrower that
    stays unhealthy across cycles gets startAuction submitted again each cycle.
    """

    def __init__(
        self,
        config: MonitorConfig,
        price_feed: PriceFeedClient,
        chain_reader: ChainStateReader,
        trigger: LiquidationTrigger,
    ):
        self.config = config
        self.price_feed = price_feed
        self.chain_reader = chain_reader
        self.trigger = trigger
        self.stop_event = threading.Event()
        self.cycle_count = 0
        self.last_report = None

    @property
    def running(self) -> bool:
        return not self.stop_event.is_set()

    def run_forever(self) -> None:
        """
        Run cycles until stop() is called.

        Raises:
            EventFilterMissing: borrower discovery is misconfigured.
        """
        logger.info("Starting liquidation monitor against %s", self.config.rpc_url)
        logger.info(
            "Tracking %s price feed(s), threshold %s bps, poll interval %s ms, auto-execute %s",
            len(self.config.price_feed_ids), self.config.health_factor_threshold_bps,
            self.config.poll_interval_ms, self.config.auto_execute_liquidation,
        )

        while self.running:
            try:
                self.run_cycle()
            except EventFilterMissing:
                raise
            except Exception as ex:
                logger.error("Cycle %s failed: %s", self.cycle_count, ex, exc_info=True)

            self.stop_event.wait(self.config.poll_interval_seconds)

        logger.info("Stopped after %s cycle(s).", self.cycle_count)

    def stop(self) -> None:
        self.stop_event.set()

    def run_cycle(self) -> CycleReport:
        """Run one full cycle and return its report."""
        self.cycle_count += 1
        report = CycleReport(cycle=self.cycle_count)

        self.relay_prices(report)

        borrowers = self.discover(report)
        if borrowers:
            logger.info("Evaluating %s borrower(s)...", len(borrowers))
        for borrower in borrowers:
            report.outcomes.append(self.evaluate_borrower(borrower))

        report.finished_at = time.time()
        self.last_report = report

        logger.info(
            "Cycle %s finished in %.2fs: %s evaluated, %s auction(s) started, %s failure(s).",
            report.cycle, report.finished_at - report.started_at, report.borrowers_evaluated,
            len(report.auctions_started), len(report.failures),
        )
        return report

    def relay_prices(self, report: CycleReport) -> None:
        """Fetch and relay the latest prices. Failures leave the on-chain prices as they are."""
        try:
            payloads = self.price_feed.fetch_latest_update(self.config.price_feed_ids)
            if not payloads:
                raise OracleEmptyResponse("No price update payloads to relay")

            result = self.trigger.relay_prices(payloads)
            report.prices_relayed = True
            report.price_relay_tx_hash = result.tx_hash
        except OracleEmptyResponse as ex:
            report.price_relay_error = str(ex)
            logger.warning("%s, continuing with on-chain prices.", ex)
        except Exception as ex:
            report.price_relay_error = str(ex)
            logger.error(
                "Price relay failed, continuing with on-chain prices: %s", ex, exc_info=True
            )
            self._notify(post_error_notification, f"Price relay failed: {ex}")

    def discover(self, report: CycleReport) -> List[str]:
        """
        Discover borrowers for this cycle's window.

        Returns:
            Borrowers to evaluate, sorted by address. Empty if discovery failed.

        Raises:
            EventFilterMissing: always fatal.
        """
        try:
            from_block, to_block = self.chain_reader.discovery_window()
            report.from_block, report.to_block = from_block, to_block
            borrowers: Set[str] = self.chain_reader.discover_borrowers(from_block, to_block)
        except EventFilterMissing:
            raise
        except Exception as ex:
            report.discovery_error = str(ex)
            logger.error("Borrower discovery failed, ending cycle early: %s", ex, exc_info=True)
            self._notify(post_error_notification, f"Borrower discovery failed: {ex}")
            return []

        if not borrowers:
            logger.info("No borrowers discovered in the current window")
        return sorted(borrowers)

    def evaluate_borrower(self, borrower: str) -> BorrowerOutcome:
        """
        Read, classify and if needed liquidate one borrower.
        Never raises: every failure is reported in the returned outcome.
        """
        try:
            health_factor = self.chain_reader.read_health_factor(borrower)
        except Exception as ex:
            logger.error("Failed to evaluate borrower %s: %s", borrower, ex, exc_info=True)
            return BorrowerOutcome(borrower=borrower, outcome=Outcome.READ_FAILED, error=str(ex))

        evaluation = evaluate(borrower, health_factor, self.config.health_factor_threshold_bps)
        if not evaluation.is_unhealthy:
            logger.info("Borrower %s is healthy (hf=%s)", borrower, health_factor)
            return BorrowerOutcome(borrower=borrower, outcome=Outcome.HEALTHY, evaluation=evaluation)

        logger.warning("Borrower %s is UNHEALTHY (hf=%s)", borrower, health_factor)
        self._notify(post_unhealthy_borrower_notification, evaluation)

        try:
            auction_handle, start_result = self.trigger.start_auction(borrower)
        except Exception as ex:
            logger.error("Liquidation attempt failed for %s: %s", borrower, ex, exc_info=True)
            return BorrowerOutcome(
                borrower=borrower,
                outcome=Outcome.START_FAILED,
                evaluation=evaluation,
                auction_handle=ex.auction_handle if isinstance(ex, StartFailed) else None,
                error=str(ex),
            )

        outcome = BorrowerOutcome(
            borrower=borrower,
            outcome=Outcome.AUCTION_STARTED,
            evaluation=evaluation,
            auction_handle=auction_handle,
            start_tx_hash=start_result.tx_hash,
        )
        self._notify(post_auction_started_notification, borrower, auction_handle, start_result.tx_hash)

        if not self.config.auto_execute_liquidation:
            return outcome

        try:
            execute_result = self.trigger.execute_auction(auction_handle)
        except Exception as ex:
            logger.error(
                "Failed to execute liquidation for %s (id=%s): %s",
                borrower, Web3.to_hex(auction_handle), ex, exc_info=True,
            )
            outcome.outcome = Outcome.EXECUTE_FAILED
            outcome.error = str(ex)
            return outcome

        outcome.outcome = Outcome.AUCTION_EXECUTED
        outcome.execute_tx_hash = execute_result.tx_hash
        self._notify(post_liquidation_result_notification, borrower, auction_handle, execute_result.tx_hash)
        return outcome

    def _notify(self, post: Callable[..., bool], *args) -> None:
        if not self.config.notify:
            return
        try:
            post(*args, self.config)
        except Exception as ex:
            logger.error("Failed to post notification: %s", ex, exc_info=True)
