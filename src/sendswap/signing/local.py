"""Local signing backend.

Derives deposit account keys from the HD seed on demand and signs with
eth_account. Keys are never cached or logged.
"""

import logging

from eth_account import Account
from eth_utils import to_hex

from sendswap.hdwallet.factory import WalletManager
from sendswap.signing.base import SignedTransaction, SignerBackend, SigningError

logger = logging.getLogger(__name__)


class LocalSigner(SignerBackend):
    """Signs EVM transactions for HD-derived deposit accounts."""

    def __init__(self, wallets: WalletManager):
        self.wallets = wallets

    def _account(self, chain_id: str, key_index: int):
        try:
            private_key = self.wallets.get_private_key(chain_id, key_index)
        except (RuntimeError, NotImplementedError, ValueError) as e:
            raise SigningError(str(e)) from e
        return Account.from_key(private_key)

    def get_address(self, chain_id: str, key_index: int) -> str:
        return self._account(chain_id, key_index).address

    async def sign_transaction(self, chain_id: str, key_index: int, tx: dict) -> SignedTransaction:
        account = self._account(chain_id, key_index)
        try:
            signed = account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise SigningError(f"Invalid transaction for {chain_id}: {e}") from e

        tx_hash = to_hex(signed.hash)
        logger.debug(f"Signed tx {tx_hash} from {account.address} (nonce {tx.get('nonce')})")
        return SignedTransaction(
            chain_id=chain_id,
            sender=account.address,
            raw_transaction=to_hex(signed.raw_transaction),
            tx_hash=tx_hash,
            nonce=int(tx["nonce"]),
        )
