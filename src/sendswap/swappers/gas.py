"""Gas overhead estimates for service-wallet swaps.

When the service executes a swap from its own wallet it pays the network
fee, so quotes carry an overhead in the sell chain's base unit (wei,
satoshi, uatom, lamports). DIRECT swappers never carry one.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sendswap.chains import ChainFamily, get_chain
from sendswap.swappers.types import SwapperType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GasOverheadConfig:
    """Gas overhead for one chain."""

    base_overhead: int  # base units
    volatility_buffer: Decimal  # 1.2 = 20% on top
    description: str

    def buffered(self) -> int:
        percent = int((self.volatility_buffer * 100).to_integral_value())
        return self.base_overhead * percent // 100


GAS_OVERHEAD_BY_CHAIN: dict[str, GasOverheadConfig] = {
    # EVM (wei)
    "eip155:1": GasOverheadConfig(3_000_000_000_000_000, Decimal("1.2"), "Ethereum mainnet, volatile"),
    "eip155:43114": GasOverheadConfig(5_000_000_000_000_000, Decimal("1.15"), "Avalanche C-Chain"),
    "eip155:56": GasOverheadConfig(300_000_000_000_000, Decimal("1.1"), "BNB Smart Chain"),
    "eip155:137": GasOverheadConfig(10_000_000_000_000_000, Decimal("1.15"), "Polygon PoS, can spike"),
    "eip155:10": GasOverheadConfig(200_000_000_000_000, Decimal("1.1"), "Optimism L2"),
    "eip155:42161": GasOverheadConfig(200_000_000_000_000, Decimal("1.1"), "Arbitrum One L2"),
    "eip155:8453": GasOverheadConfig(150_000_000_000_000, Decimal("1.1"), "Base L2"),
    "eip155:100": GasOverheadConfig(100_000_000_000_000, Decimal("1.1"), "Gnosis Chain"),
    # UTXO (satoshi)
    "bip122:000000000019d6689c085ae165831e93": GasOverheadConfig(10_000, Decimal("1.3"), "Bitcoin, mempool dependent"),
    "bip122:12a765e31ffd4059bada1e25190f6e98": GasOverheadConfig(2_000, Decimal("1.1"), "Litecoin"),
    "bip122:1a91e3dace36e2be3bf030a65679fe82": GasOverheadConfig(100_000_000, Decimal("1.1"), "Dogecoin, 1 DOGE minimum fee"),
    "bip122:000000000000000000651ef99cb9fcbe": GasOverheadConfig(500, Decimal("1.1"), "Bitcoin Cash"),
    # Cosmos-SDK (micro denom)
    "cosmos:cosmoshub-4": GasOverheadConfig(5_000, Decimal("1.1"), "Cosmos Hub"),
    "cosmos:osmosis-1": GasOverheadConfig(2_500, Decimal("1.1"), "Osmosis"),
    # Solana (lamports, includes priority fee)
    "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp": GasOverheadConfig(10_000_000, Decimal("1.15"), "Solana"),
}

DEFAULT_GAS_OVERHEAD = GasOverheadConfig(
    5_000_000_000_000_000, Decimal("1.25"), "Conservative default for unknown chains"
)


class GasCalculator:
    """Computes the gas overhead attached to SERVICE_WALLET quotes."""

    def get_config(self, chain_id: str) -> GasOverheadConfig:
        config = GAS_OVERHEAD_BY_CHAIN.get(chain_id)
        if config is None:
            logger.warning(f"No gas overhead config for chain {chain_id}, using default")
            return DEFAULT_GAS_OVERHEAD
        return config

    def calculate(self, chain_id: str, swapper_type: SwapperType) -> str:
        """Gas overhead in base units for a chain, "0" for DIRECT swappers."""
        if swapper_type == SwapperType.DIRECT:
            return "0"

        config = self.get_config(chain_id)
        overhead = config.buffered()
        logger.debug(
            f"Gas overhead for {chain_id}: {overhead} "
            f"(base: {config.base_overhead}, buffer: {config.volatility_buffer}x)"
        )
        return str(overhead)

    def chain_family(self, chain_id: str) -> ChainFamily:
        chain = get_chain(chain_id)
        return chain.family if chain else ChainFamily.EVM

    def summary(self) -> dict[str, dict]:
        return {
            chain_id: {
                "overhead": str(config.buffered()),
                "family": self.chain_family(chain_id).value,
            }
            for chain_id, config in GAS_OVERHEAD_BY_CHAIN.items()
        }
