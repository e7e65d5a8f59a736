"""Solana JSON-RPC deposit scanner.

Lists recent signatures for the deposit address, then reads each
transaction (jsonParsed) and takes the lamport balance delta of the
deposit account.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from sendswap.chains import ChainConfig, ChainFamily
from sendswap.errors import ExternalUnavailableError
from sendswap.scanner.base import DepositScanner, TransactionInfo

logger = logging.getLogger(__name__)

SIGNATURE_LIMIT = 10


class SolanaScanner(DepositScanner):
    """Deposit scanner using the Solana JSON-RPC API."""

    def __init__(
        self,
        chain: ChainConfig,
        rpc_url: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(chain)
        if chain.family != ChainFamily.SOLANA:
            raise ValueError(f"SolanaScanner cannot scan {chain.symbol}")
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _rpc(self, method: str, params: list):
        client = await self._get_client()
        try:
            response = await client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalUnavailableError("Solana RPC", f"{method}: {e}") from e
        except ValueError as e:
            raise ExternalUnavailableError("Solana RPC", f"{method}: invalid JSON") from e

        if data.get("error"):
            raise ExternalUnavailableError("Solana RPC", f"{method}: {data['error']}")
        return data.get("result")

    async def get_deposits(
        self, address: str, since: Optional[datetime] = None
    ) -> list[TransactionInfo]:
        if not self.rpc_url:
            logger.debug("Solana RPC URL not configured, skipping check")
            return []

        signatures = await self._rpc(
            "getSignaturesForAddress", [address, {"limit": SIGNATURE_LIMIT}]
        ) or []

        deposits = []
        for sig in signatures:
            if sig.get("err"):
                continue
            block_time = (
                datetime.fromtimestamp(sig["blockTime"], tz=timezone.utc)
                if sig.get("blockTime")
                else None
            )
            if since and block_time and block_time < since:
                continue

            tx = await self._rpc(
                "getTransaction",
                [
                    sig["signature"],
                    {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0},
                ],
            )
            if not tx:
                continue

            received = self._received_lamports(tx, address)
            if received <= 0:
                continue

            deposits.append(
                TransactionInfo(
                    txid=sig["signature"],
                    chain_id=self.chain.chain_id,
                    to_address=address,
                    amount=received,
                    confirmations=self._confirmations(sig),
                    block_time=block_time,
                    asset_id=self.chain.native_asset_id,
                )
            )

        return deposits

    def _confirmations(self, sig: dict) -> int:
        # The RPC reports null confirmations once a slot is finalized
        if sig.get("confirmationStatus") == "finalized":
            return self.min_confirmations
        return int(sig.get("confirmations") or 0)

    @staticmethod
    def _received_lamports(tx: dict, address: str) -> int:
        """Balance delta of ``address`` in a parsed transaction."""
        meta = tx.get("meta") or {}
        pre = meta.get("preBalances") or []
        post = meta.get("postBalances") or []
        keys = ((tx.get("transaction") or {}).get("message") or {}).get("accountKeys") or []

        for i, key in enumerate(keys):
            pubkey = key.get("pubkey") if isinstance(key, dict) else key
            if pubkey == address and i < len(pre) and i < len(post):
                return int(post[i]) - int(pre[i])
        return 0
