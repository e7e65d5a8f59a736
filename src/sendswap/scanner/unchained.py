"""Unchained API scanner for EVM, UTXO and Cosmos-SDK chains.

Endpoint: GET {base_url}/api/v1/account/{address}/txs?pageSize=10

The transaction shape differs per family:
    EVM     tx.transfers[] with type "receive" and ``to`` == address; the
            leg's ``assetId`` (or token contract) names the asset
    UTXO    tx.vout[] whose ``addresses`` contain the address
    Cosmos  tx.messages[] of type "cosmos-sdk/MsgSend" with ``to`` == address
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from sendswap.chains import ChainConfig, ChainFamily
from sendswap.errors import ExternalUnavailableError
from sendswap.scanner.base import DepositScanner, TransactionInfo

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


def _block_time(tx: dict) -> Optional[datetime]:
    timestamp = tx.get("timestamp")
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


def _to_int(value) -> int:
    try:
        return int(str(value or "0"))
    except ValueError:
        return 0


class UnchainedScanner(DepositScanner):
    """Deposit scanner backed by an Unchained indexer."""

    def __init__(
        self,
        chain: ChainConfig,
        base_url: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Unchained scanner.

        Args:
            chain: Chain to scan (EVM, UTXO or Cosmos family)
            base_url: Unchained API root for the chain
            timeout: Per-request timeout in seconds
            client: Shared HTTP client (created lazily when omitted)
        """
        super().__init__(chain)
        if chain.family == ChainFamily.SOLANA:
            raise ValueError("Unchained scanner does not support Solana")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_deposits(
        self, address: str, since: Optional[datetime] = None
    ) -> list[TransactionInfo]:
        if not self.base_url:
            logger.debug(f"Unchained URL not configured for {self.chain.symbol}, skipping {address}")
            return []

        client = await self._get_client()
        url = f"{self.base_url}/api/v1/account/{address}/txs"

        try:
            response = await client.get(url, params={"pageSize": PAGE_SIZE}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalUnavailableError(f"Unchained {self.chain.symbol}", str(e)) from e
        except ValueError as e:
            raise ExternalUnavailableError(f"Unchained {self.chain.symbol}", f"invalid JSON: {e}") from e

        deposits = []
        for tx in data.get("txs") or []:
            for info in self._parse_transaction(tx, address):
                if self._after(info, since):
                    deposits.append(info)
        return deposits

    def _evm_asset_id(self, transfer: dict) -> str:
        if transfer.get("assetId"):
            return transfer["assetId"]
        contract = (transfer.get("token") or {}).get("contract") or transfer.get("contract")
        if contract:
            return f"{self.chain.chain_id}/erc20:{contract.lower()}"
        return self.chain.native_asset_id

    def _cosmos_asset_id(self, msg: dict) -> str:
        if msg.get("assetId"):
            return msg["assetId"]
        denom = (msg.get("value") or {}).get("denom")
        if not denom or denom == f"u{self.chain.native_symbol.lower()}":
            return self.chain.native_asset_id
        return f"{self.chain.chain_id}/denom:{denom}"

    def _parse_transaction(self, tx: dict, address: str) -> list[TransactionInfo]:
        """Extract the incoming transfers to ``address``, one per asset leg."""
        if not tx.get("txid"):
            return []

        family = self.chain.family
        target = address.lower()
        # (amount, asset_id, from_address)
        legs: list[tuple[int, str, Optional[str]]] = []
        default_confirmations = 0

        if family == ChainFamily.EVM:
            for transfer in tx.get("transfers") or []:
                if transfer.get("type") == "receive" and str(transfer.get("to", "")).lower() == target:
                    legs.append((_to_int(transfer.get("value")), self._evm_asset_id(transfer), transfer.get("from")))

        elif family == ChainFamily.UTXO:
            for output in tx.get("vout") or []:
                addresses = [a.lower() for a in output.get("addresses") or []]
                if target in addresses:
                    legs.append((_to_int(output.get("value")), self.chain.native_asset_id, None))
                    break

        elif family == ChainFamily.COSMOS:
            # Near-instant finality
            default_confirmations = 1
            for msg in tx.get("messages") or []:
                if msg.get("type") == "cosmos-sdk/MsgSend" and str(msg.get("to", "")).lower() == target:
                    amount = _to_int((msg.get("value") or {}).get("amount"))
                    legs.append((amount, self._cosmos_asset_id(msg), msg.get("from")))

        return [
            TransactionInfo(
                txid=tx["txid"],
                chain_id=self.chain.chain_id,
                to_address=address,
                amount=amount,
                confirmations=int(tx.get("confirmations") or default_confirmations),
                block_time=_block_time(tx),
                from_address=from_address,
                asset_id=asset_id,
            )
            for amount, asset_id, from_address in legs
        ]
