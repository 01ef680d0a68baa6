"""
Client for the Pyth Hermes price attestation service.
"""

from typing import Iterable, List, Optional

import requests

from .exceptions import OracleEmptyResponse, OracleUnavailable
from .logging_config import setup_logger

logger = setup_logger("price_feed")


class PriceFeedClient:
    """
    Fetches signed price update payloads for a set of feeds.
    No retries: a failed fetch is picked up again on the next poll.
    """

    def __init__(self, hermes_url: str, timeout: int = 10, session: Optional[requests.Session] = None):
        self.hermes_url = hermes_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_latest_update(self, feed_ids: Iterable[str]) -> List[bytes]:
        """
        Fetch the latest price update payloads for all requested feeds in one request.

        Args:
            feed_ids: Price feed identifiers (hex strings).

        Returns:
            List of binary update payloads, in the order the oracle returned them.

        Raises:
            OracleUnavailable: transport failure, non-2xx status or malformed body.
            OracleEmptyResponse: the oracle returned no payloads.
        """
        feed_ids = list(feed_ids)
        if not feed_ids:
            logger.info("No price feeds configured, skipping fetch.")
            return []

        params = [("encoding", "hex")] + [("ids[]", feed_id) for feed_id in feed_ids]

        try:
            response = self.session.get(self.hermes_url, params=params, timeout=self.timeout)
        except requests.RequestException as ex:
            raise OracleUnavailable(f"Hermes request to {self.hermes_url} failed: {ex}") from ex

        if not response.ok:
            raise OracleUnavailable(
                f"Hermes request failed with status {response.status_code}: {response.reason}"
            )

        try:
            body = response.json()
        except ValueError as ex:
            raise OracleUnavailable(f"Hermes returned a non-JSON body: {ex}") from ex

        data = (body.get("binary") or {}).get("data") if isinstance(body, dict) else None
        if not data:
            raise OracleEmptyResponse("Hermes did not return any price update payloads")

        try:
            payloads = [bytes.fromhex(item[2:] if item.startswith("0x") else item) for item in data]
        except (AttributeError, ValueError) as ex:
            raise OracleUnavailable(f"Hermes returned a malformed payload: {ex}") from ex

        logger.debug("Fetched %s update payload(s) for %s feed(s)", len(payloads), len(feed_ids))
        return payloads
