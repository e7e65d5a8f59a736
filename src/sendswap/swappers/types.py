"""Swapper names and classification types."""

from dataclasses import dataclass
from enum import Enum


class SwapperType(str, Enum):
    """How a swapper settles a send-swap.

    DIRECT swappers hand out their own deposit channel and settle natively,
    so the service only watches provider status. SERVICE_WALLET swappers
    need the service to receive funds first and sign the swap itself.
    """

    DIRECT = "DIRECT"
    SERVICE_WALLET = "SERVICE_WALLET"


class SwapperName(str, Enum):
    """Known swap providers."""

    # Direct execution
    CHAINFLIP = "Chainflip"
    NEAR_INTENTS = "NearIntents"

    # Service wallet
    THORCHAIN = "THORChain"
    JUPITER = "Jupiter"
    RELAY = "Relay"
    MAYACHAIN = "Mayachain"
    BUTTERSWAP = "ButterSwap"
    BEBOP = "Bebop"

    # No destination address support
    ZRX = "Zrx"
    COWSWAP = "CowSwap"
    ARBITRUM_BRIDGE = "ArbitrumBridge"
    PORTALS = "Portals"
    CETUS = "Cetus"
    SUNIO = "Sunio"
    AVNU = "Avnu"
    STONFI = "Stonfi"


@dataclass(frozen=True)
class SwapperConfig:
    """Static configuration of a swapper."""

    name: SwapperName
    type: SwapperType
    supports_destination_address: bool
    description: str

    def to_dict(self) -> dict:
        return {
            "name": self.name.value,
            "type": self.type.value,
            "supports_destination_address": self.supports_destination_address,
            "description": self.description,
        }
