"""
Tests for the monitor cycle: ordering, fault isolation and auction gating.
"""

import dataclasses
import threading
from unittest.mock import MagicMock, patch

import pytest

from app.liquidation.exceptions import (
    DiscoveryError,
    EventFilterMissing,
    ExecuteFailed,
    OracleEmptyResponse,
    OracleRelayFailed,
    OracleUnavailable,
    ReadError,
    StartFailed,
)
from app.liquidation.models import HealthStatus, Outcome
from app.liquidation.monitor import MonitorLoop

from conftest import AUCTION_HANDLE, BORROWER_X, BORROWER_Y, BORROWER_Z


def make_monitor(config, price_feed, chain_reader, trigger, **overrides):
    if overrides:
        config = dataclasses.replace(config, **overrides)
    return MonitorLoop(config, price_feed, chain_reader, trigger)


def test_scenario_a_only_unhealthy_borrower_is_auctioned(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    healthy = report.outcome_for(BORROWER_X)
    unhealthy = report.outcome_for(BORROWER_Y)
    assert healthy.outcome is Outcome.HEALTHY
    assert healthy.evaluation.status is HealthStatus.HEALTHY
    assert unhealthy.outcome is Outcome.AUCTION_STARTED
    assert unhealthy.evaluation.status is HealthStatus.UNHEALTHY
    assert unhealthy.auction_handle == AUCTION_HANDLE
    trigger.start_auction.assert_called_once_with(BORROWER_Y)
    trigger.execute_auction.assert_not_called()


def test_scenario_a_with_auto_execute(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger, auto_execute_liquidation=True)

    report = monitor.run_cycle()

    trigger.start_auction.assert_called_once_with(BORROWER_Y)
    trigger.execute_auction.assert_called_once_with(AUCTION_HANDLE)
    outcome = report.outcome_for(BORROWER_Y)
    assert outcome.outcome is Outcome.AUCTION_EXECUTED
    assert outcome.start_tx_hash == "0xstart"
    assert outcome.execute_tx_hash == "0xexecute"


def test_threshold_equal_is_not_auctioned(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.return_value = {BORROWER_Z}
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert report.outcome_for(BORROWER_Z).outcome is Outcome.HEALTHY
    trigger.start_auction.assert_not_called()


def test_scenario_b_empty_oracle_response_skips_relay(config, price_feed, chain_reader, trigger):
    price_feed.fetch_latest_update.side_effect = OracleEmptyResponse("no payloads")
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    trigger.relay_prices.assert_not_called()
    chain_reader.discover_borrowers.assert_called_once_with(50_000, 100_000)
    assert report.borrowers_evaluated == 2
    assert not report.prices_relayed
    assert report.price_relay_error == "no payloads"


def test_no_configured_feeds_skips_relay(config, price_feed, chain_reader, trigger):
    price_feed.fetch_latest_update.return_value = []
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    trigger.relay_prices.assert_not_called()
    assert report.borrowers_evaluated == 2


@pytest.mark.parametrize(
    "failing, error",
    [
        ("fetch", OracleUnavailable("status 503")),
        ("relay", OracleRelayFailed("fee query failed")),
        ("relay", RuntimeError("unexpected")),
    ],
)
def test_price_relay_failure_does_not_stop_cycle(config, price_feed, chain_reader, trigger, failing, error):
    if failing == "fetch":
        price_feed.fetch_latest_update.side_effect = error
    else:
        trigger.relay_prices.side_effect = error
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert not report.prices_relayed
    assert report.borrowers_evaluated == 2
    trigger.start_auction.assert_called_once_with(BORROWER_Y)


def test_cycle_order_relay_then_discover_then_evaluate(config, price_feed, chain_reader, trigger):
    events = []
    trigger.relay_prices.side_effect = lambda payloads: events.append("relay") or MagicMock(tx_hash="0xrelay")
    chain_reader.discover_borrowers.side_effect = lambda start, end: events.append("discover") or {BORROWER_X}
    chain_reader.read_health_factor.side_effect = lambda borrower: events.append("read") or 12_000
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert events == ["relay", "discover", "read"]
    assert report.prices_relayed
    assert report.price_relay_tx_hash == "0xrelay"
    trigger.relay_prices.assert_called_once_with([b"\x01\x02", b"\x03\x04"])
    price_feed.fetch_latest_update.assert_called_once_with(config.price_feed_ids)


def test_discovery_failure_ends_cycle_early(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.side_effect = DiscoveryError("rpc timeout")
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert report.borrowers_evaluated == 0
    assert report.discovery_error == "rpc timeout"
    chain_reader.read_health_factor.assert_not_called()


def test_missing_event_filter_is_fatal(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.side_effect = EventFilterMissing("Borrowed event not found")
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    with pytest.raises(EventFilterMissing):
        monitor.run_cycle()

    with pytest.raises(EventFilterMissing):
        monitor.run_forever()


def test_read_failure_is_isolated_to_borrower(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.return_value = {BORROWER_X, BORROWER_Y, BORROWER_Z}
    health_factors = {BORROWER_Y: 8_500, BORROWER_Z: 10_000}

    def read(borrower):
        if borrower == BORROWER_X:
            raise ReadError("call reverted")
        return health_factors[borrower]

    chain_reader.read_health_factor.side_effect = read
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert report.outcome_for(BORROWER_X).outcome is Outcome.READ_FAILED
    assert report.outcome_for(BORROWER_X).error == "call reverted"
    assert report.outcome_for(BORROWER_Y).outcome is Outcome.AUCTION_STARTED
    assert report.outcome_for(BORROWER_Z).outcome is Outcome.HEALTHY
    assert [o.borrower for o in report.failures] == [BORROWER_X]


def test_start_failure_is_isolated_and_skips_execute(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.return_value = {BORROWER_X, BORROWER_Y}
    chain_reader.read_health_factor.side_effect = lambda borrower: 5_000

    def start(borrower):
        if borrower == BORROWER_X:
            raise StartFailed("submission failed", auction_handle=b"\x01" * 32)
        return AUCTION_HANDLE, MagicMock(tx_hash="0xstart")

    trigger.start_auction.side_effect = start
    monitor = make_monitor(config, price_feed, chain_reader, trigger, auto_execute_liquidation=True)

    report = monitor.run_cycle()

    failed = report.outcome_for(BORROWER_X)
    assert failed.outcome is Outcome.START_FAILED
    assert failed.auction_handle == b"\x01" * 32
    assert report.outcome_for(BORROWER_Y).outcome is Outcome.AUCTION_EXECUTED
    trigger.execute_auction.assert_called_once_with(AUCTION_HANDLE)


def test_execute_failure_is_isolated(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.return_value = {BORROWER_X, BORROWER_Y}
    chain_reader.read_health_factor.side_effect = lambda borrower: 5_000
    trigger.execute_auction.side_effect = [ExecuteFailed("reverted"), MagicMock(tx_hash="0xexecute")]
    monitor = make_monitor(config, price_feed, chain_reader, trigger, auto_execute_liquidation=True)

    report = monitor.run_cycle()

    assert report.outcome_for(BORROWER_X).outcome is Outcome.EXECUTE_FAILED
    assert report.outcome_for(BORROWER_Y).outcome is Outcome.AUCTION_EXECUTED
    assert len(report.auctions_started) == 2


def test_execute_never_called_without_auto_execute(config, price_feed, chain_reader, trigger):
    chain_reader.discover_borrowers.return_value = {BORROWER_X, BORROWER_Y, BORROWER_Z}
    chain_reader.read_health_factor.side_effect = lambda borrower: 1
    monitor = make_monitor(config, price_feed, chain_reader, trigger, auto_execute_liquidation=False)

    monitor.run_cycle()
    monitor.run_cycle()

    assert trigger.start_auction.call_count == 6
    trigger.execute_auction.assert_not_called()


def test_idempotent_cycles_with_healthy_borrowers(config, price_feed, chain_reader, trigger):
    chain_reader.read_health_factor.side_effect = lambda borrower: 15_000
    monitor = make_monitor(config, price_feed, chain_reader, trigger, auto_execute_liquidation=True)

    first = monitor.run_cycle()
    second = monitor.run_cycle()

    assert first.auctions_started == [] and second.auctions_started == []
    trigger.start_auction.assert_not_called()
    trigger.execute_auction.assert_not_called()
    assert (first.cycle, second.cycle) == (1, 2)
    assert monitor.last_report is second


def test_window_is_recorded_in_report(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger)

    report = monitor.run_cycle()

    assert (report.from_block, report.to_block) == (50_000, 100_000)
    assert report.finished_at >= report.started_at


def test_stop_interrupts_sleep(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger, poll_interval_ms=3_600_000)
    chain_reader.discover_borrowers.return_value = set()

    thread = threading.Thread(target=monitor.run_forever)
    thread.start()
    while monitor.last_report is None:
        thread.join(0.01)
    monitor.stop()
    thread.join(5)

    assert not thread.is_alive()
    assert monitor.cycle_count == 1


def test_unexpected_cycle_error_keeps_loop_alive(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger, poll_interval_ms=1)
    calls = []

    def failing_cycle():
        calls.append(1)
        if len(calls) == 2:
            monitor.stop()
        raise RuntimeError("boom")

    monitor.run_cycle = failing_cycle
    monitor.run_forever()

    assert len(calls) == 2


def test_notifications_only_when_configured(config, price_feed, chain_reader, trigger):
    with patch("app.liquidation.monitor.post_unhealthy_borrower_notification") as post_unhealthy, \
            patch("app.liquidation.monitor.post_auction_started_notification") as post_started:
        make_monitor(config, price_feed, chain_reader, trigger).run_cycle()
        post_unhealthy.assert_not_called()

        monitor = make_monitor(config, price_feed, chain_reader, trigger, notification_url="json://localhost")
        monitor.run_cycle()
        post_unhealthy.assert_called_once()
        assert post_unhealthy.call_args[0][0].borrower == BORROWER_Y
        post_started.assert_called_once_with(BORROWER_Y, AUCTION_HANDLE, "0xstart", monitor.config)


def test_notification_failure_does_not_affect_outcome(config, price_feed, chain_reader, trigger):
    monitor = make_monitor(config, price_feed, chain_reader, trigger, notification_url="json://localhost")

    with patch("app.liquidation.monitor.post_auction_started_notification", side_effect=RuntimeError("down")), \
            patch("app.liquidation.monitor.post_unhealthy_borrower_notification"):
        report = monitor.run_cycle()

    assert report.outcome_for(BORROWER_Y).outcome is Outcome.AUCTION_STARTED
