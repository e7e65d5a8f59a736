"""Seed-based HD wallets using bip_utils.

Derivation paths:
    EVM chains      m/44'/60'/0'/0/i    (0x... checksum address)
    BTC, LTC        m/84'/c'/0'/0/i     (native segwit bech32)
    DOGE, BCH       m/44'/c'/0'/0/i     (legacy / cashaddr)
    ATOM, OSMO      m/44'/118'/0'/0/i   (bech32 with chain prefix)
    SOL             m/44'/501'/0'/0'/i' (SLIP-10 ed25519)
"""

import logging

from bip_utils import Bip44, Bip44Changes, Bip44Coins, Bip84, Bip84Coins

from sendswap.chains import ChainConfig, ChainFamily
from sendswap.hdwallet.base import AddressInfo, HDWalletProvider

logger = logging.getLogger(__name__)

# Chain symbol -> (BIP class, coin, script type)
BIP_COINS = {
    "ETH": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "AVAX": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "BSC": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "POLYGON": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "OPTIMISM": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "ARBITRUM": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "BASE": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "GNOSIS": (Bip44, Bip44Coins.ETHEREUM, "eoa"),
    "BTC": (Bip84, Bip84Coins.BITCOIN, "p2wpkh"),
    "LTC": (Bip84, Bip84Coins.LITECOIN, "p2wpkh"),
    "DOGE": (Bip44, Bip44Coins.DOGECOIN, "p2pkh"),
    "BCH": (Bip44, Bip44Coins.BITCOIN_CASH, "p2pkh"),
    "ATOM": (Bip44, Bip44Coins.COSMOS, "secp256k1"),
    "OSMO": (Bip44, Bip44Coins.OSMOSIS, "secp256k1"),
    "SOL": (Bip44, Bip44Coins.SOLANA, "ed25519"),
}


class SeedHDWallet(HDWalletProvider):
    """Derives addresses for one chain from a BIP39 seed.

    Example:
        seed = Bip39SeedGenerator(mnemonic).Generate()
        wallet = SeedHDWallet(seed, get_chain("eip155:1"))
        addr = wallet.derive_address(index=0)
    """

    def __init__(self, seed: bytes, chain: ChainConfig):
        super().__init__(chain)
        if chain.symbol not in BIP_COINS:
            raise ValueError(f"No derivation configured for {chain.symbol}")

        bip_class, coin, script_type = BIP_COINS[chain.symbol]
        self._bip_class = bip_class
        self._script_type = script_type
        # Cache the external chain node: m/purpose'/coin'/0'/0
        self._change_ctx = (
            bip_class.FromSeed(seed, coin).Purpose().Coin().Account(0).Change(Bip44Changes.CHAIN_EXT)
        )

    @property
    def purpose(self) -> int:
        return 84 if self._bip_class is Bip84 else 44

    def derive_address(self, index: int) -> AddressInfo:
        if index < 0:
            raise ValueError(f"Derivation index must be non-negative, got {index}")

        address = self._change_ctx.AddressIndex(index).PublicKey().ToAddress()
        if self.chain.symbol == "BCH":
            address = address.replace("bitcoincash:", "")

        return AddressInfo(
            address=address,
            chain_id=self.chain_id,
            derivation_path=self.get_derivation_path(index),
            index=index,
            script_type=self._script_type,
        )

    def get_private_key(self, index: int) -> bytes:
        if self.chain.family != ChainFamily.EVM:
            return super().get_private_key(index)
        return self._change_ctx.AddressIndex(index).PrivateKey().Raw().ToBytes()
