"""
Liquidation trigger - submits price relay, auction start and auction execute transactions.

All transactions are signed locally with the single liquidator key and are awaited until
they are included in a block before returning, so callers only ever observe confirmed state.
"""

from typing import List, Optional, Tuple

from web3 import Web3
from web3.contract import Contract

from .exceptions import ExecuteFailed, OracleRelayFailed, StartFailed, TransactionFailed
from .logging_config import setup_logger
from .models import TransactionResult

logger = setup_logger("trigger")


class LiquidationTrigger:
    """
    Handles every state-changing call the monitor makes.
    Must only be used from one thread: nonces come from the pending transaction count
    of the liquidator account, so submissions have to be strictly sequential.
    """

    def __init__(
        self,
        w3: Web3,
        private_key: str,
        price_oracle: Contract,
        liquidation_manager: Contract,
        receipt_timeout: int = 120,
    ):
        self.w3 = w3
        self.private_key = private_key
        self.address = w3.eth.account.from_key(private_key).address
        self.price_oracle = price_oracle
        self.liquidation_manager = liquidation_manager
        self.receipt_timeout = receipt_timeout
        self._chain_id: Optional[int] = None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def relay_prices(self, payloads: List[bytes]) -> TransactionResult:
        """
        Push price update payloads on-chain, paying the fee the oracle contract asks for.

        Raises:
            OracleRelayFailed: the fee query, the submission or the confirmation failed.
        """
        try:
            fee = self.price_oracle.functions.getUpdateFee(payloads).call()
        except Exception as ex:
            raise OracleRelayFailed(f"Failed to query price update fee: {ex}") from ex

        logger.info("Relaying %s price update(s) with fee %s wei", len(payloads), fee)
        try:
            result = self._send(self.price_oracle.functions.updatePriceFeeds(payloads), value=fee)
        except Exception as ex:
            raise OracleRelayFailed(f"Failed to relay price updates: {ex}") from ex

        logger.info(
            "Pushed %s price update(s) (tx: %s)", len(payloads), result.tx_hash
        )
        return result

    def simulate_start_auction(self, borrower: str) -> bytes:
        """
        Dry-run startAuction with eth_call. No state change.

        Returns:
            The auction handle the real call would produce.
        """
        auction_handle = self.liquidation_manager.functions.startAuction(borrower).call({"from": self.address})
        return bytes(auction_handle)

    def start_auction(self, borrower: str) -> Tuple[bytes, TransactionResult]:
        """
        Start a liquidation auction in two phases: a read-only simulation to learn the
        auction handle, then the real submission for the same borrower.

        Returns:
            Tuple of (auction_handle, confirmed transaction).

        Raises:
            StartFailed: either phase failed. Carries the handle when the simulation succeeded.
        """
        try:
            auction_handle = self.simulate_start_auction(borrower)
        except Exception as ex:
            raise StartFailed(f"startAuction simulation failed for {borrower}: {ex}") from ex

        logger.info(
            "Simulated startAuction for %s (id=%s), submitting",
            borrower, Web3.to_hex(auction_handle),
        )

        try:
            result = self._send(self.liquidation_manager.functions.startAuction(borrower))
        except Exception as ex:
            raise StartFailed(
                f"startAuction submission failed for {borrower} (id={Web3.to_hex(auction_handle)}): {ex}",
                auction_handle=auction_handle,
            ) from ex

        logger.info(
            "Started liquidation auction for %s (id=%s, tx=%s)",
            borrower, Web3.to_hex(auction_handle), result.tx_hash,
        )
        return auction_handle, result

    def execute_auction(self, auction_handle: bytes) -> TransactionResult:
        """
        Execute a liquidation for an auction started earlier in the same evaluation.

        Raises:
            ExecuteFailed: the submission or the confirmation failed.
        """
        try:
            result = self._send(self.liquidation_manager.functions.executeLiquidation(auction_handle))
        except Exception as ex:
            raise ExecuteFailed(
                f"executeLiquidation failed for auction {Web3.to_hex(auction_handle)}: {ex}"
            ) from ex

        logger.info(
            "Executed liquidation for auction %s (tx=%s)",
            Web3.to_hex(auction_handle), result.tx_hash,
        )
        return result

    def _send(self, contract_function, value: int = 0) -> TransactionResult:
        """Build, sign and send a transaction, then block until it is included in a block."""
        nonce = self.w3.eth.get_transaction_count(self.address, "pending")
        params = {
            "chainId": self.chain_id,
            "from": self.address,
            "nonce": nonce,
        }
        # web3 rejects a value field on non-payable functions
        if value:
            params["value"] = value
        tx = contract_function.build_transaction(params)

        signed_tx = self.w3.eth.account.sign_transaction(tx, self.private_key)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info("Transaction sent with nonce %s, hash: %s", nonce, tx_hash_hex)

        tx_receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if tx_receipt.get("status") == 0:
            raise TransactionFailed(f"Transaction {tx_hash_hex} reverted in block {tx_receipt.get('blockNumber')}")

        logger.debug(
            "Transaction %s included in block %s (gas used: %s)",
            tx_hash_hex, tx_receipt.get("blockNumber"), tx_receipt.get("gasUsed"),
        )
        return TransactionResult(tx_hash=tx_hash_hex, receipt=tx_receipt)
