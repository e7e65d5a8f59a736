"""Minimal EVM JSON-RPC client over httpx."""

import logging
from typing import Any, Optional

import httpx

from sendswap.errors import ExternalUnavailableError

logger = logging.getLogger(__name__)


class EvmRpcClient:
    """JSON-RPC calls needed to sign and broadcast from a service account."""

    def __init__(self, rpc_url: str, timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client

    async def _call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
        try:
            if self._client is not None:
                response = await self._client.post(self.rpc_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalUnavailableError(f"RPC {method}", str(e)) from e
        except ValueError as e:
            raise ExternalUnavailableError(f"RPC {method}", "invalid JSON") from e

        if "error" in data and data["error"]:
            logger.error(f"RPC {method} error: {data['error']}")
            raise ExternalUnavailableError(f"RPC {method}", str(data["error"]))
        return data.get("result")

    async def get_nonce(self, address: str, block: str = "pending") -> int:
        """Get transaction count (nonce)."""
        return int(await self._call("eth_getTransactionCount", [address, block]) or "0x0", 16)

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        return int(await self._call("eth_gasPrice", []) or "0x0", 16)

    async def send_raw_transaction(self, raw_tx_hex: str) -> str:
        """Broadcast raw transaction and return its hash."""
        raw = raw_tx_hex if raw_tx_hex.startswith("0x") else f"0x{raw_tx_hex}"
        return await self._call("eth_sendRawTransaction", [raw])
