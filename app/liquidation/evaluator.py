"""
Position evaluation. Pure functions, no I/O.
"""

from .models import HealthEvaluation, HealthStatus


def classify(health_factor_bps: int, threshold_bps: int) -> HealthStatus:
    """
    A borrower is unhealthy iff its health factor is strictly below the threshold.
    A health factor equal to the threshold is healthy.
    """
    if health_factor_bps < threshold_bps:
        return HealthStatus.UNHEALTHY
    return HealthStatus.HEALTHY


def evaluate(borrower: str, health_factor_bps: int, threshold_bps: int) -> HealthEvaluation:
    return HealthEvaluation(
        borrower=borrower,
        health_factor_bps=health_factor_bps,
        threshold_bps=threshold_bps,
        status=classify(health_factor_bps, threshold_bps),
    )
