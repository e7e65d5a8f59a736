"""HD Wallet base interface.

Each provider derives deposit addresses for one chain from a single BIP39
seed. Quotes get a fresh child index per chain, so every quote has its own
deposit address.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sendswap.chains import ChainConfig, ChainFamily


@dataclass
class AddressInfo:
    """Information about a derived address."""

    address: str
    chain_id: str
    derivation_path: str
    index: int
    script_type: Optional[str] = None  # p2wpkh, p2pkh, ed25519, etc.


class HDWalletProvider(ABC):
    """Abstract base class for HD wallet providers.

    Usage:
        wallet = manager.get_wallet("eip155:1")
        addr = wallet.derive_address(index=0)
    """

    def __init__(self, chain: ChainConfig):
        self.chain = chain

    @property
    def chain_id(self) -> str:
        return self.chain.chain_id

    @property
    def coin_type(self) -> int:
        """BIP44 coin type number."""
        return self.chain.slip44

    @property
    @abstractmethod
    def purpose(self) -> int:
        """BIP purpose number (44, 84, etc.)."""
        pass

    @abstractmethod
    def derive_address(self, index: int) -> AddressInfo:
        """Derive the receiving address at the given index.

        Args:
            index: Child index (0, 1, 2, ...)

        Returns:
            AddressInfo with the derived address and metadata
        """
        pass

    def get_derivation_path(self, index: int) -> str:
        """Get the full derivation path for an index.

        Default format: m/purpose'/coin_type'/0'/0/index
        """
        if self.chain.family == ChainFamily.SOLANA:
            return f"m/{self.purpose}'/{self.coin_type}'/0'/0'/{index}'"
        return f"m/{self.purpose}'/{self.coin_type}'/0'/0/{index}"

    def get_private_key(self, index: int) -> bytes:
        """Raw private key for the address at ``index``.

        Only EVM wallets sign transactions.
        """
        raise NotImplementedError(f"Signing keys are not available for {self.chain.symbol}")


class SimulatedHDWallet(HDWalletProvider):
    """Simulated HD wallet for testing (no real derivation)."""

    @property
    def purpose(self) -> int:
        return 44

    def derive_address(self, index: int) -> AddressInfo:
        """Generate simulated address."""
        if self.chain.family == ChainFamily.EVM:
            # Keep the 0x + 40 hex shape so URIs and validation look real
            address = "0x" + f"{self.chain.slip44:04x}{index:036x}"
        else:
            address = f"sim:{self.chain.symbol.lower()}:{index:06d}"

        return AddressInfo(
            address=address,
            chain_id=self.chain_id,
            derivation_path=self.get_derivation_path(index),
            index=index,
            script_type="simulated",
        )
