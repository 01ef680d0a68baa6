"""Module for handling API routes"""

from typing import Optional

from flask import Blueprint, jsonify, make_response

from .bot_manager import MonitorManager
from .logging_config import setup_logger

logger = setup_logger("api")

liquidation = Blueprint("liquidation", __name__)


def start_monitor(manager: Optional[MonitorManager] = None) -> MonitorManager:
    """Start the monitor on a background thread"""
    if manager is None:
        manager = MonitorManager()

    # Store on module level for route access before app context is available
    start_monitor._manager = manager

    manager.start()

    return manager


def _get_manager():
    """Get the monitor manager instance."""
    return getattr(start_monitor, "_manager", None)


@liquidation.route("/lastCycle", methods=["GET"])
def get_last_cycle():
    manager = _get_manager()

    if not manager:
        return jsonify({"error": "Monitor not initialized"}), 500
    if manager.error is not None:
        return jsonify({"error": f"Monitor stopped: {manager.error}"}), 500

    report = manager.last_report
    if report is None:
        return jsonify({"error": "No cycle completed yet"}), 503

    logger.info("Getting last cycle report (cycle %s)", report.cycle)
    return make_response(jsonify(report.to_dict()))


@liquidation.route("/unhealthy", methods=["GET"])
def get_unhealthy_borrowers():
    manager = _get_manager()

    if not manager:
        return jsonify({"error": "Monitor not initialized"}), 500

    report = manager.last_report
    if report is None:
        return jsonify({"error": "No cycle completed yet"}), 503

    response = [
        outcome.to_dict()
        for outcome in report.outcomes
        if outcome.evaluation is not None and outcome.evaluation.is_unhealthy
    ]
    response.sort(key=lambda entry: entry["health_factor_bps"])

    return make_response(jsonify(response))
