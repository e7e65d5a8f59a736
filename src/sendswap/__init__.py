"""SendSwap - cross-chain send-swap service."""

__version__ = "0.1.0"
