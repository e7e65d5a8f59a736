"""Base interfaces for service wallet transaction signing.

Signing flow:
1. Strategy builds an unsigned transaction
2. Signer derives the deposit account key and signs it
3. Strategy broadcasts the raw transaction
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class SigningError(Exception):
    """Raised when a transaction cannot be signed."""

    pass


@dataclass
class SignedTransaction:
    """A signed, ready-to-broadcast transaction."""

    chain_id: str
    sender: str
    raw_transaction: str  # 0x-prefixed hex
    tx_hash: str  # 0x-prefixed hex
    nonce: int


class SignerBackend(ABC):
    """Abstract base class for signing backends."""

    @abstractmethod
    def get_address(self, chain_id: str, key_index: int) -> str:
        """Address of the service account at ``key_index``."""
        pass

    @abstractmethod
    async def sign_transaction(self, chain_id: str, key_index: int, tx: dict) -> SignedTransaction:
        """Sign an EVM transaction dict for the account at ``key_index``.

        Raises:
            SigningError: key unavailable or transaction malformed
        """
        pass
