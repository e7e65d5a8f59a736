"""DIRECT swappers: the provider executes, the service only checks status.

The deposit address is the correlation key for the provider status API.
A failed or timed-out status call is "unknown", never a failed swap: the
deposit is already on chain and must eventually resolve.
"""

import logging
from typing import Optional

import httpx

from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.quotes.models import Quote
from sendswap.swappers.types import SwapperName, SwapperType

logger = logging.getLogger(__name__)


class DirectStatusStrategy(SwapStrategy):
    """Polls a provider status endpoint by deposit address."""

    swapper_type = SwapperType.DIRECT
    provider_label: str = ""
    status_path: str = ""
    complete_statuses: frozenset[str] = frozenset({"complete"})

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        return {}

    async def _fetch_status(self, quote: Quote) -> dict:
        url = f"{self.base_url}{self.status_path}"
        params = {"depositAddress": quote.deposit_address}
        if self._client is not None:
            response = await self._client.get(
                url, params=params, headers=self._headers(), timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=self._headers())
        response.raise_for_status()
        return response.json()

    def _success_metadata(self, status: dict) -> dict:
        return {"swapId": status.get("swapId")}

    async def execute(self, quote: Quote) -> SwapExecutionResult:
        if not self.base_url:
            logger.warning(f"{self.provider_label} API URL not configured")
            return self.pending(
                f"{self.provider_label} API URL not configured - swap may still be processing"
            )

        try:
            status = await self._fetch_status(quote)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Could not check {self.provider_label} status for quote {quote.quote_id}: {e}")
            return self.pending(f"Unable to check {self.provider_label} swap status")

        raw_status = str(status.get("status", ""))
        output_tx_hash = status.get("outputTxHash")

        if raw_status.lower() in self.complete_statuses and output_tx_hash:
            logger.info(f"{self.provider_label} swap complete for quote {quote.quote_id}: {output_tx_hash}")
            return self.success(output_tx_hash, **self._success_metadata(status))

        logger.debug(f"{self.provider_label} swap pending for quote {quote.quote_id}: status={raw_status}")
        return self.failure(
            f"Swap still processing: {raw_status}",
            status=raw_status,
            swapId=status.get("swapId"),
        )


class ChainflipStrategy(DirectStatusStrategy):
    """Chainflip deposit channel status."""

    swapper_name = SwapperName.CHAINFLIP
    provider_label = "Chainflip"
    status_path = "/swaps/status"

    def _success_metadata(self, status: dict) -> dict:
        return {
            "swapId": status.get("swapId"),
            "depositAmount": status.get("depositAmount"),
            "outputAmount": status.get("expectedOutputAmount"),
        }


class NearIntentsStrategy(DirectStatusStrategy):
    """NEAR Intents 1Click status (JWT bearer auth)."""

    swapper_name = SwapperName.NEAR_INTENTS
    provider_label = "NEAR Intents"
    status_path = "/swap/status"
    # 1Click reports SUCCESS for settled swaps
    complete_statuses = frozenset({"complete", "success"})

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        super().__init__(base_url, client, timeout)
        self.api_key = api_key

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
