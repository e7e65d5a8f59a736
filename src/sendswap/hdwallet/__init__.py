"""HD wallet derivation of per-quote deposit addresses."""

from sendswap.hdwallet.base import AddressInfo, HDWalletProvider, SimulatedHDWallet
from sendswap.hdwallet.factory import WalletManager
from sendswap.hdwallet.seed import SeedHDWallet

__all__ = [
    "AddressInfo",
    "HDWalletProvider",
    "SeedHDWallet",
    "SimulatedHDWallet",
    "WalletManager",
]
