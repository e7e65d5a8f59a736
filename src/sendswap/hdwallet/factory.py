"""HD wallet manager.

Creates one wallet per supported chain from the configured seed phrase,
or simulated wallets when no seed is configured.
"""

import logging
from typing import Optional

from bip_utils import Bip39MnemonicValidator, Bip39SeedGenerator

from sendswap.chains import CHAINS, ChainFamily, get_chain
from sendswap.hdwallet.base import AddressInfo, HDWalletProvider, SimulatedHDWallet
from sendswap.hdwallet.seed import SeedHDWallet

logger = logging.getLogger(__name__)


class WalletManager:
    """Derives deposit addresses and signing keys for all supported chains."""

    def __init__(self, seed_phrase: Optional[str] = None, passphrase: str = ""):
        self._seed: Optional[bytes] = None
        self._wallet_cache: dict[str, HDWalletProvider] = {}

        if seed_phrase:
            mnemonic = " ".join(seed_phrase.split())
            if not Bip39MnemonicValidator().IsValid(mnemonic):
                raise ValueError("Invalid BIP39 seed phrase")
            self._seed = Bip39SeedGenerator(mnemonic).Generate(passphrase)
        else:
            logger.warning("No wallet seed phrase configured - using simulated deposit addresses")

    @property
    def is_simulated(self) -> bool:
        return self._seed is None

    def get_wallet(self, chain_id: str) -> HDWalletProvider:
        """Get HD wallet instance for a chain.

        Raises:
            ValueError: If chain is not supported
        """
        if chain_id in self._wallet_cache:
            return self._wallet_cache[chain_id]

        chain = get_chain(chain_id)
        if chain is None:
            raise ValueError(f"Unsupported chain: {chain_id}")

        if self._seed is None:
            wallet: HDWalletProvider = SimulatedHDWallet(chain)
        else:
            wallet = SeedHDWallet(self._seed, chain)

        self._wallet_cache[chain_id] = wallet
        return wallet

    def derive_address(self, chain_id: str, index: int) -> AddressInfo:
        """Derive the deposit address at ``index`` on ``chain_id``."""
        return self.get_wallet(chain_id).derive_address(index)

    def get_private_key(self, chain_id: str, index: int) -> bytes:
        """Signing key for a deposit account (EVM only)."""
        if self._seed is None:
            raise RuntimeError("Wallet is simulated - no signing keys available")
        return self.get_wallet(chain_id).get_private_key(index)

    def verify(self) -> dict[str, str]:
        """Derive index 0 on every non-EVM chain and on one EVM chain, and log it.

        Raises if any derivation fails, so a broken seed is caught at startup.
        """
        results = {}
        seen_families: set[ChainFamily] = set()
        for chain in CHAINS.values():
            if chain.family in seen_families and chain.family == ChainFamily.EVM:
                continue
            seen_families.add(chain.family)
            info = self.derive_address(chain.chain_id, 0)
            results[chain.symbol] = info.address
            logger.info(f"  {chain.symbol:<6} {info.derivation_path:<22} {info.address}")

        mode = "simulated" if self.is_simulated else "seed"
        logger.info(f"Wallet verification complete ({mode}): {len(results)} chains")
        return results

    def get_wallet_info(self, chain_id: str) -> dict:
        """Get information about the HD wallet for a chain."""
        wallet = self.get_wallet(chain_id)
        return {
            "chain_id": chain_id,
            "symbol": wallet.chain.symbol,
            "wallet_type": type(wallet).__name__,
            "is_simulated": isinstance(wallet, SimulatedHDWallet),
            "coin_type": wallet.coin_type,
            "purpose": wallet.purpose,
        }
