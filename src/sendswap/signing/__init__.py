"""Service wallet signing and EVM broadcast."""

from sendswap.signing.base import SignedTransaction, SignerBackend, SigningError
from sendswap.signing.local import LocalSigner
from sendswap.signing.rpc import EvmRpcClient

__all__ = ["EvmRpcClient", "LocalSigner", "SignedTransaction", "SignerBackend", "SigningError"]
