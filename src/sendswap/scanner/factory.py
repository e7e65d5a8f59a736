"""Factory for creating deposit scanners.

Supported scanners:
- EVM, UTXO, Cosmos-SDK chains: Unchained API
- Solana: JSON-RPC
- Dry-run: SimulatedScanner for every chain
"""

import logging
from typing import Optional

import httpx

from sendswap.chains import ChainFamily, get_chain
from sendswap.config import Settings
from sendswap.scanner.base import DepositScanner, SimulatedScanner
from sendswap.scanner.solana import SolanaScanner
from sendswap.scanner.unchained import UnchainedScanner

logger = logging.getLogger(__name__)


class ScannerFactory:
    """Builds and caches one scanner per chain."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client
        self._scanner_cache: dict[str, DepositScanner] = {}

    def get_scanner(self, chain_id: str) -> DepositScanner:
        """Get a deposit scanner for a chain.

        Raises:
            ValueError: If chain is not supported
        """
        if chain_id in self._scanner_cache:
            return self._scanner_cache[chain_id]

        chain = get_chain(chain_id)
        if chain is None:
            raise ValueError(f"Unsupported chain: {chain_id}")

        timeout = self.settings.external_call_timeout

        # In dry-run mode, use simulated scanner
        if self.settings.dry_run:
            scanner: DepositScanner = SimulatedScanner(chain)
        elif chain.family == ChainFamily.SOLANA:
            scanner = SolanaScanner(chain, self.settings.solana_rpc_url, timeout, self._client)
        else:
            url = self.settings.get_unchained_url(chain.symbol)
            if not url:
                logger.warning(f"No Unchained URL configured for {chain.symbol}; deposits will not be detected")
            scanner = UnchainedScanner(chain, url, timeout, self._client)

        self._scanner_cache[chain_id] = scanner
        return scanner

    def register(self, chain_id: str, scanner: DepositScanner) -> None:
        """Override the scanner for a chain."""
        self._scanner_cache[chain_id] = scanner

    async def close(self) -> None:
        for scanner in self._scanner_cache.values():
            await scanner.close()
        self._scanner_cache.clear()
