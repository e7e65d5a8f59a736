"""SERVICE_WALLET swaps through memo-based protocols (THORChain, Mayachain).

The deposit account itself is the sender: the service derives its key,
asks the protocol node for a swap quote bound to the user's receive
address, and sends the deposit (minus the gas overhead reserved on the
quote) to the returned inbound vault through the router contract.

A fresh deposit account only ever sends one transaction, so a non-zero
pending nonce means the swap was already broadcast and must not be
signed again.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from sendswap.chains import ChainConfig, ChainFamily, resolve_chain
from sendswap.errors import ExecutionError, ExternalUnavailableError
from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.quotes.models import Quote
from sendswap.signing.base import SignerBackend, SigningError
from sendswap.signing.rpc import EvmRpcClient
from sendswap.swappers.types import SwapperName, SwapperType
from sendswap.utils.locks import account_lock

logger = logging.getLogger(__name__)

# Must stay below the deposit monitor's 60s execution timeout
ACCOUNT_LOCK_TIMEOUT = 30.0

# Asset identifiers in protocol notation, keyed by CAIP-19 asset id.
# Format: CHAIN.SYMBOL-CONTRACT (e.g. BTC.BTC, ETH.USDT-0X...)
THORCHAIN_ASSETS = {
    "eip155:1/slip44:60": "ETH.ETH",
    "eip155:43114/slip44:60": "AVAX.AVAX",
    "eip155:56/slip44:60": "BSC.BNB",
    "eip155:8453/slip44:60": "BASE.ETH",
    "bip122:000000000019d6689c085ae165831e93/slip44:0": "BTC.BTC",
    "bip122:12a765e31ffd4059bada1e25190f6e98/slip44:2": "LTC.LTC",
    "bip122:1a91e3dace36e2be3bf030a65679fe82/slip44:3": "DOGE.DOGE",
    "bip122:000000000000000000651ef99cb9fcbe/slip44:145": "BCH.BCH",
    "cosmos:cosmoshub-4/slip44:118": "GAIA.ATOM",
    # Tokens (mainnet contract addresses)
    "eip155:1/erc20:0xdac17f958d2ee523a2206206994597c13d831ec7": "ETH.USDT-0XDAC17F958D2EE523A2206206994597C13D831EC7",
    "eip155:1/erc20:0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "ETH.USDC-0XA0B86991C6218B36C1D19D4A2E9EB0CE3606EB48",
    "eip155:1/erc20:0x2260fac5e5542a773aa44fbcfedf7c193bc2c599": "ETH.WBTC-0X2260FAC5E5542A773AA44FBCFEDF7C193BC2C599",
}

MAYACHAIN_ASSETS = {
    "eip155:1/slip44:60": "ETH.ETH",
    "eip155:42161/slip44:60": "ARB.ETH",
    "bip122:000000000019d6689c085ae165831e93/slip44:0": "BTC.BTC",
    "eip155:1/erc20:0xdac17f958d2ee523a2206206994597c13d831ec7": "ETH.USDT-0XDAC17F958D2EE523A2206206994597C13D831EC7",
    "eip155:1/erc20:0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "ETH.USDC-0XA0B86991C6218B36C1D19D4A2E9EB0CE3606EB48",
}

# Both protocols quote every asset with 8 decimals
PROTOCOL_DECIMALS = 8

DEPOSIT_WITH_EXPIRY = "depositWithExpiry(address,address,uint256,string,uint256)"
NATIVE_ASSET_ADDRESS = "0x0000000000000000000000000000000000000000"
ROUTER_GAS_LIMIT = 120_000
TRANSFER_GAS_LIMIT = 80_000


@dataclass
class MemoRoute:
    """Inbound details returned by the protocol node quote endpoint."""

    inbound_address: str
    memo: str
    router: Optional[str] = None
    expiry: int = 0
    expected_amount_out: str = "0"


def to_protocol_units(amount_base_unit: int, precision: int) -> int:
    """Convert a chain base-unit amount to the protocol's 8-decimal units."""
    if precision >= PROTOCOL_DECIMALS:
        return amount_base_unit // 10 ** (precision - PROTOCOL_DECIMALS)
    return amount_base_unit * 10 ** (PROTOCOL_DECIMALS - precision)


def encode_deposit_with_expiry(vault: str, amount: int, memo: str, expiry: int) -> str:
    """ABI-encode a native-asset ``depositWithExpiry`` router call."""
    selector = function_signature_to_4byte_selector(DEPOSIT_WITH_EXPIRY)
    args = encode(
        ["address", "address", "uint256", "string", "uint256"],
        [to_checksum_address(vault), NATIVE_ASSET_ADDRESS, amount, memo, expiry],
    )
    return "0x" + (selector + args).hex()


class MemoSwapStrategy(SwapStrategy):
    """Signs and broadcasts a vault deposit from the quote's deposit account."""

    swapper_type = SwapperType.SERVICE_WALLET
    protocol_label: str = ""
    node_prefix: str = ""
    assets: dict[str, str] = {}
    tolerance_bps: int = 300

    def __init__(
        self,
        node_url: str,
        signer: Optional[SignerBackend],
        rpc_clients: Optional[dict[str, EvmRpcClient]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        dry_run: bool = False,
        lock_timeout: float = ACCOUNT_LOCK_TIMEOUT,
    ):
        self.node_url = node_url.rstrip("/")
        self.signer = signer
        self.rpc_clients = rpc_clients or {}
        self.timeout = timeout
        self.lock_timeout = lock_timeout
        self.dry_run = dry_run
        self._client = client

    # ===================
    # Planning
    # ===================

    @staticmethod
    def swap_value(quote: Quote) -> int:
        """Amount forwarded to the vault: sell amount minus the reserved gas."""
        value = int(quote.sell_amount_base_unit) - int(quote.gas_overhead_base_unit or "0")
        if value <= 0:
            raise ExecutionError(
                f"Sell amount {quote.sell_amount_base_unit} does not cover gas overhead "
                f"{quote.gas_overhead_base_unit}",
                non_retryable=True,
            )
        return value

    def build_memo(self, to_asset: str, destination: str, limit: int = 0) -> str:
        """Swap memo in the ``=:ASSET:DEST:LIMIT`` form."""
        return f"=:{to_asset}:{destination}:{limit}"

    async def fetch_route(self, quote: Quote, from_asset: str, to_asset: str, swap_value: int) -> MemoRoute:
        params = {
            "from_asset": from_asset,
            "to_asset": to_asset,
            "amount": str(to_protocol_units(swap_value, quote.sell_asset.precision)),
            "destination": quote.receive_address,
            "tolerance_bps": str(self.tolerance_bps),
        }
        url = f"{self.node_url}{self.node_prefix}/quote/swap"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ExternalUnavailableError(f"{self.protocol_label} quote", str(e)) from e

        if response.status_code >= 500:
            raise ExternalUnavailableError(f"{self.protocol_label} quote", f"HTTP {response.status_code}")
        if response.status_code != 200:
            logger.error(f"{self.protocol_label} quote error: {response.text}")
            raise ExecutionError(f"{self.protocol_label} quote failed: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalUnavailableError(f"{self.protocol_label} quote", "invalid JSON") from e

        if "error" in data:
            raise ExecutionError(f"{self.protocol_label} quote failed: {data['error']}")

        inbound_address = data.get("inbound_address")
        memo = data.get("memo")
        if not inbound_address or not memo:
            raise ExecutionError(f"{self.protocol_label} quote missing inbound_address or memo")

        if data.get("warning"):
            logger.debug(f"{self.protocol_label} quote warning: {data['warning']}")

        return MemoRoute(
            inbound_address=inbound_address,
            memo=memo,
            router=data.get("router") or None,
            expiry=int(data.get("expiry") or 0),
            expected_amount_out=str(data.get("expected_amount_out", "0")),
        )

    def build_transaction(self, chain: ChainConfig, route: MemoRoute, value: int, nonce: int, gas_price: int) -> dict:
        """Router deposit when the protocol exposes one, plain memo transfer otherwise."""
        if route.router:
            to = to_checksum_address(route.router)
            data = encode_deposit_with_expiry(route.inbound_address, value, route.memo, route.expiry)
            gas = ROUTER_GAS_LIMIT
        else:
            to = to_checksum_address(route.inbound_address)
            data = "0x" + route.memo.encode().hex()
            gas = TRANSFER_GAS_LIMIT

        return {
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": gas,
            "to": to,
            "value": value,
            "data": data,
            "chainId": chain.evm_chain_id,
        }

    # ===================
    # Execution
    # ===================

    async def execute(self, quote: Quote) -> SwapExecutionResult:
        sell_chain = resolve_chain(quote.sell_asset.asset_id)
        if sell_chain is None:
            raise ExecutionError(f"Unsupported sell asset: {quote.sell_asset.asset_id}", non_retryable=True)

        from_asset = self.assets.get(quote.sell_asset.asset_id)
        to_asset = self.assets.get(quote.buy_asset.asset_id)
        if not from_asset or not to_asset:
            raise ExecutionError(
                f"{self.protocol_label} does not support "
                f"{quote.sell_asset.symbol} -> {quote.buy_asset.symbol}",
                non_retryable=True,
            )

        if sell_chain.family != ChainFamily.EVM:
            return self.not_implemented(quote, f"from {sell_chain.symbol}")
        if quote.sell_asset.asset_id != sell_chain.native_asset_id:
            # token deposits need an approve + router depositWithExpiry(token) flow
            return self.not_implemented(quote, f"for {quote.sell_asset.symbol} token deposits")

        value = self.swap_value(quote)

        if self.dry_run:
            tx_hash = f"0xdryrun{quote.quote_id.encode().hex()}"
            logger.info(f"[dry-run] {self.protocol_label} swap {from_asset} -> {to_asset} for {quote.quote_id}")
            return self.success(tx_hash, dryRun=True, memo=self.build_memo(to_asset, quote.receive_address))

        rpc = self.rpc_clients.get(sell_chain.chain_id)
        if rpc is None:
            logger.warning(f"No RPC configured for {sell_chain.name}, cannot execute {quote.quote_id}")
            return self.pending(f"RPC for {sell_chain.name} not configured - swap not broadcast")

        if self.signer is None:
            return self.pending("Service wallet signer not configured - swap not broadcast")

        route = await self.fetch_route(quote, from_asset, to_asset, value)
        return await self._sign_and_broadcast(quote, sell_chain, rpc, route, value)

    async def _sign_and_broadcast(
        self,
        quote: Quote,
        chain: ChainConfig,
        rpc: EvmRpcClient,
        route: MemoRoute,
        value: int,
    ) -> SwapExecutionResult:
        sender = quote.deposit_address
        try:
            signer_address = self.signer.get_address(chain.chain_id, quote.deposit_address_index)
        except SigningError as e:
            raise ExecutionError(f"Signing key unavailable: {e}") from e
        if signer_address.lower() != sender.lower():
            raise ExecutionError(
                f"Derived signing address {signer_address} does not match deposit address {sender}",
                non_retryable=True,
            )

        async with account_lock(
            chain.chain_id, sender, timeout=self.lock_timeout, operation=f"{self.protocol_label} swap"
        ):
            nonce = await rpc.get_nonce(sender, "pending")
            if nonce > 0:
                return self._already_broadcast(quote, nonce)

            gas_price = await rpc.get_gas_price()
            tx = self.build_transaction(chain, route, value, nonce, gas_price)
            fee = tx["gas"] * gas_price
            if fee > int(quote.gas_overhead_base_unit or "0"):
                logger.warning(
                    f"Network fee {fee} exceeds reserved gas overhead {quote.gas_overhead_base_unit} "
                    f"for {quote.quote_id}"
                )

            try:
                signed = await self.signer.sign_transaction(chain.chain_id, quote.deposit_address_index, tx)
            except SigningError as e:
                raise ExecutionError(f"Signing failed: {e}") from e

            try:
                tx_hash = await rpc.send_raw_transaction(signed.raw_transaction)
            except ExternalUnavailableError as e:
                logger.warning(f"Broadcast of {signed.tx_hash} unconfirmed for {quote.quote_id}: {e}")
                return self.pending(
                    f"{self.protocol_label} broadcast unconfirmed",
                    broadcastTxHash=signed.tx_hash,
                    nonce=signed.nonce,
                )

        tx_hash = tx_hash or signed.tx_hash
        logger.info(f"{self.protocol_label} swap broadcast for {quote.quote_id}: {tx_hash}")
        return self.success(
            tx_hash,
            memo=route.memo,
            inboundAddress=route.inbound_address,
            router=route.router,
            nonce=signed.nonce,
            expectedAmountOut=route.expected_amount_out,
        )

    def _already_broadcast(self, quote: Quote, nonce: int) -> SwapExecutionResult:
        known_hash = quote.metadata.get("broadcastTxHash")
        if known_hash:
            logger.info(f"{quote.quote_id} already broadcast as {known_hash} (nonce now {nonce})")
            return self.success(known_hash, nonce=nonce, recovered=True)
        logger.warning(f"{quote.deposit_address} already sent a transaction; not re-signing {quote.quote_id}")
        return self.pending(
            "Deposit account already has an outgoing transaction; not re-signing",
            nonce=nonce,
        )


class ThorchainStrategy(MemoSwapStrategy):
    swapper_name = SwapperName.THORCHAIN
    protocol_label = "THORChain"
    node_prefix = "/thorchain"
    assets = THORCHAIN_ASSETS


class MayachainStrategy(MemoSwapStrategy):
    swapper_name = SwapperName.MAYACHAIN
    protocol_label = "Mayachain"
    node_prefix = "/mayachain"
    assets = MAYACHAIN_ASSETS
