"""
Chain state reader.
Discovers borrowers from Borrowed events on the protocol ledger and reads their health factors.
"""

from typing import Optional, Set, Tuple

from web3 import Web3
from web3.contract import Contract

from .exceptions import DiscoveryError, EventFilterMissing, ReadError
from .logging_config import setup_logger

logger = setup_logger("chain_reader")

BORROW_EVENT_NAME = "Borrowed"


class ChainStateReader:
    """
    Read-only access to the protocol ledger.
    The discovery event is resolved against the contract ABI at construction so that
    a misconfigured ABI fails at startup instead of silently discovering nobody.
    """

    def __init__(
        self,
        w3: Web3,
        protocol_core: Contract,
        lookback_blocks: int,
        start_block: Optional[int] = None,
        event_name: str = BORROW_EVENT_NAME,
    ):
        self.w3 = w3
        self.protocol_core = protocol_core
        self.lookback_blocks = lookback_blocks
        self.start_block = start_block
        self.event_name = event_name
        self.borrower_arg = self.resolve_event_filter()

    def resolve_event_filter(self) -> str:
        """
        Check the discovery event exists on the contract ABI.

        Returns:
            Name of the event argument holding the borrower address.

        Raises:
            EventFilterMissing: the event is not part of the ABI.
        """
        for item in self.protocol_core.abi:
            if item.get("type") == "event" and item.get("name") == self.event_name:
                inputs = item.get("inputs") or []
                if not inputs:
                    raise EventFilterMissing(f"{self.event_name} event on ProtocolCore ABI has no arguments")
                return inputs[0]["name"]
        raise EventFilterMissing(f"{self.event_name} event not found on ProtocolCore ABI")

    def discovery_window(self) -> Tuple[int, int]:
        """
        Block range scanned this cycle: the last `lookback_blocks` blocks,
        never earlier than the configured start block.
        """
        try:
            latest_block = self.w3.eth.block_number
        except Exception as ex:
            raise DiscoveryError(f"Failed to read latest block number: {ex}") from ex

        from_block = max(self.start_block or 0, latest_block - self.lookback_blocks, 0)
        return from_block, latest_block

    def discover_borrowers(self, from_block: int, to_block: int) -> Set[str]:
        """
        Collect every borrower that emitted the discovery event in [from_block, to_block].

        Returns:
            Set of checksum addresses, without duplicates.
        """
        logger.info(
            "Scanning blocks %s to %s for %s events.",
            from_block, to_block, self.event_name,
        )
        try:
            event = getattr(self.protocol_core.events, self.event_name)
            logs = event().get_logs(from_block=from_block, to_block=to_block)
        except Exception as ex:
            raise DiscoveryError(
                f"Failed to query {self.event_name} events from {from_block} to {to_block}: {ex}"
            ) from ex

        borrowers = set()
        for log in logs:
            borrower = log["args"].get(self.borrower_arg)
            if borrower:
                borrowers.add(Web3.to_checksum_address(borrower))

        logger.info(
            "Found %s event(s) from %s unique borrower(s) in blocks %s to %s.",
            len(logs), len(borrowers), from_block, to_block,
        )
        return borrowers

    def read_health_factor(self, borrower: str) -> int:
        """
        Read a borrower's health factor in basis points.

        Raises:
            ReadError: the call failed or returned something that is not an integer.
        """
        try:
            health_factor = self.protocol_core.functions.getHealthFactor(borrower).call()
        except Exception as ex:
            raise ReadError(f"Failed to read health factor for {borrower}: {ex}") from ex

        if isinstance(health_factor, bool) or not isinstance(health_factor, int):
            raise ReadError(f"Unexpected health factor for {borrower}: {health_factor!r}")
        return health_factor
