"""Swapper registry.

Classifies providers as DIRECT or SERVICE_WALLET and filters out the ones
that cannot deliver to an external receive address. Adding a provider means
one entry in ``SWAPPER_CONFIGS`` plus one registered execution strategy.
"""

import logging
from typing import Iterable, Optional, Union

from sendswap.errors import InvalidSwapperError, UnknownSwapperError
from sendswap.swappers.types import SwapperConfig, SwapperName, SwapperType

logger = logging.getLogger(__name__)


def _config(name: SwapperName, type_: SwapperType, description: str, supported: bool = True) -> SwapperConfig:
    return SwapperConfig(
        name=name,
        type=type_,
        supports_destination_address=supported,
        description=description,
    )


SWAPPER_CONFIGS: dict[SwapperName, SwapperConfig] = {
    c.name: c
    for c in [
        # Provide their own deposit channel
        _config(SwapperName.CHAINFLIP, SwapperType.DIRECT, "Deposit channel with fill-or-kill parameters"),
        _config(SwapperName.NEAR_INTENTS, SwapperType.DIRECT, "1Click REST API with JWT authentication"),
        # Service receives funds and executes on behalf of the user
        _config(SwapperName.THORCHAIN, SwapperType.SERVICE_WALLET, "Memo-based routing through inbound vaults"),
        _config(SwapperName.JUPITER, SwapperType.SERVICE_WALLET, "Solana swap execution (Solana only)"),
        _config(SwapperName.RELAY, SwapperType.SERVICE_WALLET, "Cross-chain bridging"),
        _config(SwapperName.MAYACHAIN, SwapperType.SERVICE_WALLET, "Maya protocol memo swaps"),
        _config(SwapperName.BUTTERSWAP, SwapperType.SERVICE_WALLET, "Multi-chain swaps"),
        _config(SwapperName.BEBOP, SwapperType.SERVICE_WALLET, "Intent-based swaps"),
        # Excluded
        _config(SwapperName.ZRX, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.COWSWAP, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.ARBITRUM_BRIDGE, SwapperType.SERVICE_WALLET, "Disabled", supported=False),
        _config(SwapperName.PORTALS, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.CETUS, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.SUNIO, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.AVNU, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
        _config(SwapperName.STONFI, SwapperType.SERVICE_WALLET, "No receive address support", supported=False),
    ]
}


class SwapperRegistry:
    """Lookup and classification of swap providers."""

    def __init__(self, configs: Optional[dict[SwapperName, SwapperConfig]] = None):
        self._configs = dict(configs if configs is not None else SWAPPER_CONFIGS)

    @staticmethod
    def _parse(name: Union[str, SwapperName]) -> Optional[SwapperName]:
        if isinstance(name, SwapperName):
            return name
        try:
            return SwapperName(name)
        except ValueError:
            return None

    def get_config(self, name: Union[str, SwapperName]) -> Optional[SwapperConfig]:
        """Get swapper configuration, or None for unknown names."""
        parsed = self._parse(name)
        if parsed is None:
            return None
        return self._configs.get(parsed)

    def is_valid(self, name: Union[str, SwapperName]) -> bool:
        """Check if a swapper can be used for send-swaps."""
        config = self.get_config(name)
        return config is not None and config.supports_destination_address

    def is_excluded(self, name: Union[str, SwapperName]) -> bool:
        config = self.get_config(name)
        return config is not None and not config.supports_destination_address

    def classify(self, name: Union[str, SwapperName]) -> SwapperType:
        """Get the swapper type.

        Raises:
            UnknownSwapperError: name is unrecognized or excluded
        """
        config = self.get_config(name)
        if config is None or not config.supports_destination_address:
            raise UnknownSwapperError(str(getattr(name, "value", name)))
        return config.type

    def valid_swappers(self) -> list[SwapperName]:
        return [c.name for c in self._configs.values() if c.supports_destination_address]

    def direct_swappers(self) -> list[SwapperName]:
        return [
            c.name
            for c in self._configs.values()
            if c.supports_destination_address and c.type == SwapperType.DIRECT
        ]

    def service_wallet_swappers(self) -> list[SwapperName]:
        return [
            c.name
            for c in self._configs.values()
            if c.supports_destination_address and c.type == SwapperType.SERVICE_WALLET
        ]

    def excluded_swappers(self) -> list[SwapperName]:
        return [c.name for c in self._configs.values() if not c.supports_destination_address]

    def filter_valid(self, names: Iterable[Union[str, SwapperName]]) -> list[SwapperName]:
        """Keep only names that are known and support a destination address."""
        valid = []
        for name in names:
            if self.is_valid(name):
                valid.append(self._parse(name))
            else:
                logger.debug(f"Filtered out swapper {name}")
        return valid

    def validate_for_quote(self, name: Union[str, SwapperName]) -> SwapperName:
        """Validate a caller-preferred swapper before quote creation.

        Raises:
            InvalidSwapperError: swapper is unknown or does not support
                an external receive address
        """
        config = self.get_config(name)
        if config is None:
            raise InvalidSwapperError(str(name), f"Unknown swapper: {name}")
        if not config.supports_destination_address:
            raise InvalidSwapperError(
                config.name.value,
                f"Swapper {config.name.value} does not support destination addresses",
            )
        return config.name

    def summary(self) -> dict:
        """Classification summary for the HTTP listing."""
        return {
            "direct": [n.value for n in self.direct_swappers()],
            "service_wallet": [n.value for n in self.service_wallet_swappers()],
            "excluded": [n.value for n in self.excluded_swappers()],
            "swappers": [c.to_dict() for c in self._configs.values()],
        }

    def log_summary(self) -> None:
        """Log swapper classification at startup."""
        logger.info("Swapper configuration:")
        logger.info(f"  Direct: {', '.join(n.value for n in self.direct_swappers())}")
        logger.info(f"  Service wallet: {', '.join(n.value for n in self.service_wallet_swappers())}")
        logger.info(f"  Excluded: {', '.join(n.value for n in self.excluded_swappers())}")
