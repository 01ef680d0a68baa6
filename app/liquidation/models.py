"""
Data classes for structured returns in the liquidation monitor.
"""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class Outcome(str, Enum):
    """Tagged result of evaluating one borrower in a cycle."""

    HEALTHY = "healthy"
    AUCTION_STARTED = "auction_started"
    AUCTION_EXECUTED = "auction_executed"
    READ_FAILED = "read_failed"
    START_FAILED = "start_failed"
    EXECUTE_FAILED = "execute_failed"


FAILED_OUTCOMES = (Outcome.READ_FAILED, Outcome.START_FAILED, Outcome.EXECUTE_FAILED)


@dataclass
class HealthEvaluation:
    """A borrower's health factor compared against the configured threshold."""

    borrower: str
    health_factor_bps: int
    threshold_bps: int
    status: HealthStatus

    @property
    def is_unhealthy(self) -> bool:
        return self.status is HealthStatus.UNHEALTHY


@dataclass
class TransactionResult:
    """A transaction that has been included in a block."""

    tx_hash: str
    receipt: Any = None

    @property
    def block_number(self) -> Optional[int]:
        if self.receipt is None:
            return None
        return self.receipt.get("blockNumber")


@dataclass
class BorrowerOutcome:
    """Result of evaluating one borrower, success or tagged failure."""

    borrower: str
    outcome: Outcome
    evaluation: Optional[HealthEvaluation] = None
    auction_handle: Optional[bytes] = None
    start_tx_hash: Optional[str] = None
    execute_tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome in FAILED_OUTCOMES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "borrower": self.borrower,
            "outcome": self.outcome.value,
            "health_factor_bps": self.evaluation.health_factor_bps if self.evaluation else None,
            "status": self.evaluation.status.value if self.evaluation else None,
            "auction_handle": "0x" + self.auction_handle.hex() if self.auction_handle else None,
            "start_tx_hash": self.start_tx_hash,
            "execute_tx_hash": self.execute_tx_hash,
            "error": self.error,
        }


@dataclass
class CycleReport:
    """Everything that happened in one monitor cycle."""

    cycle: int
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    prices_relayed: bool = False
    price_relay_tx_hash: Optional[str] = None
    price_relay_error: Optional[str] = None
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    discovery_error: Optional[str] = None
    outcomes: List[BorrowerOutcome] = field(default_factory=list)

    @property
    def borrowers_evaluated(self) -> int:
        return len(self.outcomes)

    @property
    def auctions_started(self) -> List[BorrowerOutcome]:
        return [
            o for o in self.outcomes
            if o.outcome in (Outcome.AUCTION_STARTED, Outcome.AUCTION_EXECUTED, Outcome.EXECUTE_FAILED)
        ]

    @property
    def failures(self) -> List[BorrowerOutcome]:
        return [o for o in self.outcomes if o.failed]

    def outcome_for(self, borrower: str) -> Optional[BorrowerOutcome]:
        for outcome in self.outcomes:
            if outcome.borrower.lower() == borrower.lower():
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcomes"] = [o.to_dict() for o in self.outcomes]
        return data
