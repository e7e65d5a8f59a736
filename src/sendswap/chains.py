"""Supported chains and payment URI formatting.

Chains are keyed by their CAIP-2 id (the part of a CAIP-19 asset id before
the ``/``). Each chain belongs to a family that decides how deposit
addresses are derived, how deposits are scanned and which payment URI
scheme is used for the QR payload.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChainFamily(str, Enum):
    """Blockchain family."""

    EVM = "EVM"
    UTXO = "UTXO"
    COSMOS = "COSMOS"
    SOLANA = "SOLANA"


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain."""

    chain_id: str  # CAIP-2
    symbol: str
    name: str
    family: ChainFamily
    native_symbol: str
    native_name: str
    decimals: int
    uri_scheme: str
    min_confirmations: int
    slip44: int
    evm_chain_id: Optional[int] = None
    address_prefix: Optional[str] = None  # bech32 hrp for cosmos chains

    @property
    def native_asset_id(self) -> str:
        """CAIP-19 id of the chain's native asset."""
        return f"{self.chain_id}/slip44:{self.slip44}"


def _evm(chain_ref: int, symbol: str, name: str, native_symbol: str, native_name: str) -> ChainConfig:
    return ChainConfig(
        chain_id=f"eip155:{chain_ref}",
        symbol=symbol,
        name=name,
        family=ChainFamily.EVM,
        native_symbol=native_symbol,
        native_name=native_name,
        decimals=18,
        uri_scheme="ethereum",
        min_confirmations=12,
        slip44=60,
        evm_chain_id=chain_ref,
    )


# ======================
# Chain Configurations
# ======================

CHAINS: dict[str, ChainConfig] = {
    c.chain_id: c
    for c in [
        # EVM chains
        _evm(1, "ETH", "Ethereum", "ETH", "Ethereum"),
        _evm(43114, "AVAX", "Avalanche C-Chain", "AVAX", "Avalanche"),
        _evm(56, "BSC", "BNB Smart Chain", "BNB", "BNB"),
        _evm(137, "POLYGON", "Polygon", "POL", "Polygon"),
        _evm(10, "OPTIMISM", "Optimism", "ETH", "Ethereum"),
        _evm(42161, "ARBITRUM", "Arbitrum One", "ETH", "Ethereum"),
        _evm(8453, "BASE", "Base", "ETH", "Ethereum"),
        _evm(100, "GNOSIS", "Gnosis", "xDAI", "xDAI"),
        # UTXO chains
        ChainConfig(
            chain_id="bip122:000000000019d6689c085ae165831e93",
            symbol="BTC",
            name="Bitcoin",
            family=ChainFamily.UTXO,
            native_symbol="BTC",
            native_name="Bitcoin",
            decimals=8,
            uri_scheme="bitcoin",
            min_confirmations=3,
            slip44=0,
        ),
        ChainConfig(
            chain_id="bip122:12a765e31ffd4059bada1e25190f6e98",
            symbol="LTC",
            name="Litecoin",
            family=ChainFamily.UTXO,
            native_symbol="LTC",
            native_name="Litecoin",
            decimals=8,
            uri_scheme="litecoin",
            min_confirmations=3,
            slip44=2,
        ),
        ChainConfig(
            chain_id="bip122:1a91e3dace36e2be3bf030a65679fe82",
            symbol="DOGE",
            name="Dogecoin",
            family=ChainFamily.UTXO,
            native_symbol="DOGE",
            native_name="Dogecoin",
            decimals=8,
            uri_scheme="dogecoin",
            min_confirmations=3,
            slip44=3,
        ),
        ChainConfig(
            chain_id="bip122:000000000000000000651ef99cb9fcbe",
            symbol="BCH",
            name="Bitcoin Cash",
            family=ChainFamily.UTXO,
            native_symbol="BCH",
            native_name="Bitcoin Cash",
            decimals=8,
            uri_scheme="bitcoincash",
            min_confirmations=3,
            slip44=145,
        ),
        # Cosmos-SDK chains
        ChainConfig(
            chain_id="cosmos:cosmoshub-4",
            symbol="ATOM",
            name="Cosmos Hub",
            family=ChainFamily.COSMOS,
            native_symbol="ATOM",
            native_name="Cosmos",
            decimals=6,
            uri_scheme="cosmos",
            min_confirmations=1,
            slip44=118,
            address_prefix="cosmos",
        ),
        ChainConfig(
            chain_id="cosmos:osmosis-1",
            symbol="OSMO",
            name="Osmosis",
            family=ChainFamily.COSMOS,
            native_symbol="OSMO",
            native_name="Osmosis",
            decimals=6,
            uri_scheme="osmosis",
            min_confirmations=1,
            slip44=118,
            address_prefix="osmo",
        ),
        # Solana
        ChainConfig(
            chain_id="solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp",
            symbol="SOL",
            name="Solana",
            family=ChainFamily.SOLANA,
            native_symbol="SOL",
            native_name="Solana",
            decimals=9,
            uri_scheme="solana",
            min_confirmations=32,
            slip44=501,
        ),
    ]
}


def get_chain(chain_id: str) -> Optional[ChainConfig]:
    """Get chain configuration by CAIP-2 id."""
    return CHAINS.get(chain_id)


def get_chain_by_symbol(symbol: str) -> Optional[ChainConfig]:
    """Get chain configuration by chain symbol (ETH, BTC, ATOM, ...)."""
    for chain in CHAINS.values():
        if chain.symbol == symbol.upper():
            return chain
    return None


def resolve_chain(asset_id: str) -> Optional[ChainConfig]:
    """Resolve the chain of a CAIP-19 asset id (e.g. ``eip155:1/slip44:60``)."""
    chain_part = asset_id.split("/")[0] if asset_id else ""
    if not chain_part:
        return None
    return CHAINS.get(chain_part)


def supported_chains(family: Optional[ChainFamily] = None) -> list[ChainConfig]:
    """List supported chains, optionally filtered by family."""
    return [c for c in CHAINS.values() if family is None or c.family == family]


def format_base_units(amount_base_unit: str, decimals: int) -> str:
    """Format an integer base-unit amount as a decimal string without trailing zeros.

    >>> format_base_units("150000000", 8)
    '1.5'
    """
    amount = int(amount_base_unit)
    whole, remainder = divmod(amount, 10**decimals)
    if remainder == 0:
        return str(whole)
    fraction = str(remainder).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{fraction}"


def build_payment_uri(chain: ChainConfig, address: str, amount_base_unit: str) -> str:
    """Build a scheme-prefixed payment URI for the deposit QR code.

    EVM chains follow EIP-681 (value in wei, ``@chainId`` outside mainnet);
    other families carry the amount in whole units.
    """
    if chain.family == ChainFamily.EVM:
        target = address
        if chain.evm_chain_id and chain.evm_chain_id != 1:
            target = f"{address}@{chain.evm_chain_id}"
        return f"{chain.uri_scheme}:{target}?value={int(amount_base_unit)}"

    amount = format_base_units(amount_base_unit, chain.decimals)
    if chain.uri_scheme == "bitcoincash":
        address = address.replace("bitcoincash:", "")
    return f"{chain.uri_scheme}:{address}?amount={amount}"
