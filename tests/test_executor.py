"""Tests for swap strategies and the executor."""

import json
from dataclasses import replace
from datetime import timedelta

import httpx
import pytest

from sendswap.errors import ExecutionError
from sendswap.execution import (
    ChainflipStrategy,
    MayachainStrategy,
    NearIntentsStrategy,
    PlaceholderStrategy,
    SwapExecutor,
    ThorchainStrategy,
)
from sendswap.execution.base import SwapStrategy
from sendswap.execution.memo import ACCOUNT_LOCK_TIMEOUT, encode_deposit_with_expiry, to_protocol_units
from sendswap.quotes.models import AssetInfo, Quote, QuoteStatus
from sendswap.scanner.monitor import DEFAULT_EXECUTION_TIMEOUT
from sendswap.signing import EvmRpcClient, LocalSigner
from sendswap.swappers.types import SwapperName, SwapperType
from sendswap.utils.locks import account_lock

from conftest import BTC_ASSET_ID, BTC_RECEIVE_ADDRESS, ETH_ASSET_ID, NOW

INBOUND = "0x" + "11" * 20
ROUTER = "0x" + "22" * 20
GAS_OVERHEAD = "3600000000000000"


def _quote(
    swapper_name: str = "Chainflip",
    swapper_type: SwapperType = SwapperType.DIRECT,
    deposit_address: str = "0xdeposit",
    sell_asset: AssetInfo = AssetInfo(ETH_ASSET_ID, "ETH", "Ethereum", 18),
    buy_asset: AssetInfo = AssetInfo(BTC_ASSET_ID, "BTC", "Bitcoin", 8),
    **fields,
) -> Quote:
    quote = Quote(
        quote_id="quote_00112233aabbccdd",
        sell_asset=sell_asset,
        buy_asset=buy_asset,
        sell_amount_base_unit="1000000000000000000",
        expected_buy_amount_base_unit="3900000",
        deposit_address=deposit_address,
        deposit_chain_id=sell_asset.asset_id.split("/")[0],
        deposit_address_index=0,
        receive_address=BTC_RECEIVE_ADDRESS,
        swapper_name=swapper_name,
        swapper_type=swapper_type,
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=15),
        status=QuoteStatus.EXECUTING,
        deposit_tx_hash="0xdeposit_tx",
    )
    return replace(quote, **fields)


def _thor_quote(deposit_address: str, **fields) -> Quote:
    fields.setdefault("swapper_name", "THORChain")
    return _quote(
        swapper_type=SwapperType.SERVICE_WALLET,
        deposit_address=deposit_address,
        gas_overhead_base_unit=GAS_OVERHEAD,
        **fields,
    )


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class ChainStub:
    """THORNode and EVM JSON-RPC responses behind one mock transport."""

    def __init__(self, nonce: int = 0, broadcast_status: int = 200, node_status: int = 200):
        self.nonce = nonce
        self.broadcast_status = broadcast_status
        self.node_status = node_status
        self.node_params: dict = {}
        self.rpc_methods: list[str] = []
        self.raw_transactions: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "node.test":
            self.node_params = dict(request.url.params)
            if self.node_status != 200:
                return httpx.Response(self.node_status, text="node error")
            return httpx.Response(
                200,
                json={
                    "inbound_address": INBOUND,
                    "router": ROUTER,
                    "memo": f"=:BTC.BTC:{BTC_RECEIVE_ADDRESS}:0",
                    "expiry": 1768480000,
                    "expected_amount_out": "3850000",
                },
            )

        payload = json.loads(request.content)
        method = payload["method"]
        self.rpc_methods.append(method)
        if method == "eth_getTransactionCount":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": hex(self.nonce)})
        if method == "eth_gasPrice":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": hex(20 * 10**9)})
        if method == "eth_sendRawTransaction":
            self.raw_transactions.append(payload["params"][0])
            if self.broadcast_status != 200:
                return httpx.Response(self.broadcast_status, text="unavailable")
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0xbroadcast"})
        return httpx.Response(400)


def _thorchain(stub: ChainStub, wallets, dry_run: bool = False, **kwargs) -> ThorchainStrategy:
    client = _client(stub)
    rpc = EvmRpcClient("http://rpc.test", client=client)
    return ThorchainStrategy(
        "http://node.test",
        LocalSigner(wallets),
        rpc_clients={"eip155:1": rpc},
        client=client,
        dry_run=dry_run,
        **kwargs,
    )


class TestChainflipStrategy:
    """Tests for Chainflip status polling."""

    @pytest.mark.asyncio
    async def test_complete(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/swaps/status"
            assert request.url.params["depositAddress"] == "0xdeposit"
            return httpx.Response(
                200,
                json={
                    "status": "COMPLETE",
                    "outputTxHash": "0xout",
                    "swapId": "123",
                    "depositAmount": "1000000000000000000",
                    "expectedOutputAmount": "3880000",
                },
            )

        strategy = ChainflipStrategy("http://chainflip.test", _client(handler))
        result = await strategy.execute(_quote())

        assert result.success
        assert result.execution_tx_hash == "0xout"
        assert result.metadata["outputAmount"] == "3880000"
        assert result.swapper_type == SwapperType.DIRECT

    @pytest.mark.asyncio
    async def test_processing(self):
        def handler(request):
            return httpx.Response(200, json={"status": "PROCESSING", "swapId": "123"})

        result = await ChainflipStrategy("http://chainflip.test", _client(handler)).execute(_quote())

        assert not result.success
        assert result.error == "Swap still processing: PROCESSING"
        assert result.metadata["swapId"] == "123"
        assert not result.pending_external_check
        assert not result.non_retryable

    @pytest.mark.asyncio
    async def test_complete_without_output_hash_is_pending(self):
        def handler(request):
            return httpx.Response(200, json={"status": "complete"})

        result = await ChainflipStrategy("http://chainflip.test", _client(handler)).execute(_quote())
        assert not result.success

    @pytest.mark.asyncio
    async def test_api_error_is_unknown(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        result = await ChainflipStrategy("http://chainflip.test", _client(handler)).execute(_quote())

        assert not result.success
        assert result.pending_external_check
        assert result.error == "Unable to check Chainflip swap status"

    @pytest.mark.asyncio
    async def test_network_error_is_unknown(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await ChainflipStrategy("http://chainflip.test", _client(handler)).execute(_quote())
        assert result.pending_external_check

    @pytest.mark.asyncio
    async def test_missing_url(self):
        result = await ChainflipStrategy("").execute(_quote())
        assert result.pending_external_check
        assert "not configured" in result.error


class TestNearIntentsStrategy:
    """Tests for NEAR Intents status polling."""

    @pytest.mark.asyncio
    async def test_bearer_auth_and_success_status(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"status": "SUCCESS", "outputTxHash": "near_out"})

        strategy = NearIntentsStrategy("http://near.test", "jwt-token", _client(handler))
        result = await strategy.execute(_quote("NearIntents"))

        assert result.success
        assert result.execution_tx_hash == "near_out"
        assert seen == {"auth": "Bearer jwt-token", "path": "/swap/status"}

    @pytest.mark.asyncio
    async def test_no_key_no_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"status": "PENDING_DEPOSIT"})

        result = await NearIntentsStrategy("http://near.test", client=_client(handler)).execute(_quote("NearIntents"))

        assert seen["auth"] is None
        assert result.error == "Swap still processing: PENDING_DEPOSIT"


class TestMemoHelpers:
    def test_to_protocol_units(self):
        assert to_protocol_units(10**18, 18) == 10**8
        assert to_protocol_units(2_500_000, 6) == 250_000_000
        assert to_protocol_units(12345, 8) == 12345

    def test_encode_deposit_with_expiry(self):
        data = encode_deposit_with_expiry(INBOUND, 10**18, "=:BTC.BTC:bc1q:0", 1768480000)
        assert data.startswith("0x44bc937b")

    def test_build_memo(self):
        strategy = ThorchainStrategy("http://node.test", None)
        assert strategy.build_memo("BTC.BTC", "bc1qdest") == "=:BTC.BTC:bc1qdest:0"


class TestThorchainStrategy:
    """Tests for the memo-based service wallet strategy."""

    @pytest.mark.asyncio
    async def test_dry_run(self):
        strategy = ThorchainStrategy("http://node.test", None, dry_run=True)
        quote = _thor_quote("0xdeposit")

        result = await strategy.execute(quote)

        assert result.success
        assert result.execution_tx_hash == "0xdryrun" + quote.quote_id.encode().hex()
        assert result.metadata["memo"] == f"=:BTC.BTC:{BTC_RECEIVE_ADDRESS}:0"

    @pytest.mark.asyncio
    async def test_non_evm_sell_needs_implementation(self):
        strategy = ThorchainStrategy("http://node.test", None, dry_run=True)
        quote = _thor_quote(
            "bc1qdeposit",
            sell_asset=AssetInfo(BTC_ASSET_ID, "BTC", "Bitcoin", 8),
            buy_asset=AssetInfo(ETH_ASSET_ID, "ETH", "Ethereum", 18),
        )

        result = await strategy.execute(quote)

        assert not result.success
        assert result.needs_implementation
        assert result.error == "THORChain swap execution from BTC not yet implemented"
        assert result.metadata["receiveAddress"] == BTC_RECEIVE_ADDRESS

    @pytest.mark.asyncio
    async def test_token_sell_needs_implementation(self):
        usdt = "eip155:1/erc20:0xdac17f958d2ee523a2206206994597c13d831ec7"
        strategy = ThorchainStrategy("http://node.test", None, dry_run=True)
        result = await strategy.execute(_thor_quote("0xdeposit", sell_asset=AssetInfo(usdt, "USDT", "Tether", 6)))
        assert result.needs_implementation

    @pytest.mark.asyncio
    async def test_unsupported_pair_is_permanent(self):
        sol = AssetInfo("solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp/slip44:501", "SOL", "Solana", 9)
        strategy = MayachainStrategy("http://node.test", None, dry_run=True)

        with pytest.raises(ExecutionError) as exc_info:
            await strategy.execute(_thor_quote("0xdeposit", swapper_name="Mayachain", buy_asset=sol))
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_amount_below_gas_is_permanent(self):
        strategy = ThorchainStrategy("http://node.test", None, dry_run=True)
        with pytest.raises(ExecutionError) as exc_info:
            await strategy.execute(_thor_quote("0xdeposit", sell_amount_base_unit="1000"))
        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_missing_signer_is_pending(self):
        rpc = EvmRpcClient("http://rpc.test")
        strategy = ThorchainStrategy("http://node.test", None, rpc_clients={"eip155:1": rpc})
        result = await strategy.execute(_thor_quote("0xdeposit"))
        assert result.pending_external_check

    @pytest.mark.asyncio
    async def test_missing_rpc_is_pending(self, seed_wallets):
        strategy = ThorchainStrategy("http://node.test", LocalSigner(seed_wallets))
        result = await strategy.execute(_thor_quote("0xdeposit"))
        assert result.pending_external_check
        assert "RPC" in result.error

    @pytest.mark.asyncio
    async def test_sign_and_broadcast(self, seed_wallets):
        stub = ChainStub()
        deposit = seed_wallets.derive_address("eip155:1", 0).address

        result = await _thorchain(stub, seed_wallets).execute(_thor_quote(deposit))

        assert result.success, result.error
        assert result.execution_tx_hash == "0xbroadcast"
        assert result.metadata["router"] == ROUTER
        assert result.metadata["nonce"] == 0
        assert stub.node_params == {
            "from_asset": "ETH.ETH",
            "to_asset": "BTC.BTC",
            # (1 ETH - gas overhead) in 8-decimal units
            "amount": "99640000",
            "destination": BTC_RECEIVE_ADDRESS,
            "tolerance_bps": "300",
        }
        assert stub.rpc_methods == ["eth_getTransactionCount", "eth_gasPrice", "eth_sendRawTransaction"]
        assert len(stub.raw_transactions) == 1

    @pytest.mark.asyncio
    async def test_already_broadcast_with_known_hash(self, seed_wallets):
        stub = ChainStub(nonce=1)
        deposit = seed_wallets.derive_address("eip155:1", 0).address
        quote = _thor_quote(deposit, metadata={"broadcastTxHash": "0xearlier"})

        result = await _thorchain(stub, seed_wallets).execute(quote)

        assert result.success
        assert result.execution_tx_hash == "0xearlier"
        assert stub.raw_transactions == []

    @pytest.mark.asyncio
    async def test_already_broadcast_without_hash_does_not_resign(self, seed_wallets):
        stub = ChainStub(nonce=1)
        deposit = seed_wallets.derive_address("eip155:1", 0).address

        result = await _thorchain(stub, seed_wallets).execute(_thor_quote(deposit))

        assert not result.success
        assert result.pending_external_check
        assert stub.raw_transactions == []

    @pytest.mark.asyncio
    async def test_unconfirmed_broadcast_records_hash(self, seed_wallets):
        stub = ChainStub(broadcast_status=503)
        deposit = seed_wallets.derive_address("eip155:1", 0).address

        result = await _thorchain(stub, seed_wallets).execute(_thor_quote(deposit))

        assert not result.success
        assert result.pending_external_check
        assert result.metadata["broadcastTxHash"].startswith("0x")

    @pytest.mark.asyncio
    async def test_signer_mismatch_is_permanent(self, seed_wallets):
        stub = ChainStub()
        with pytest.raises(ExecutionError) as exc_info:
            await _thorchain(stub, seed_wallets).execute(_thor_quote("0x" + "ab" * 20))
        assert exc_info.value.non_retryable
        assert stub.raw_transactions == []


class TestSwapExecutor:
    """Tests for strategy dispatch and error folding."""

    class Exploding(SwapStrategy):
        swapper_name = SwapperName.RELAY
        swapper_type = SwapperType.SERVICE_WALLET

        def __init__(self, error: Exception):
            self.error = error

        async def execute(self, quote):
            raise self.error

    @pytest.mark.asyncio
    async def test_unknown_swapper_is_permanent(self):
        result = await SwapExecutor().execute_swap(_quote("Chainflip"))
        assert not result.success
        assert result.non_retryable
        assert result.error == "Unsupported swapper: Chainflip"

    @pytest.mark.asyncio
    async def test_placeholder(self):
        executor = SwapExecutor([PlaceholderStrategy(SwapperName.BEBOP)])
        result = await executor.execute_swap(_quote("Bebop", SwapperType.SERVICE_WALLET))
        assert result.needs_implementation
        assert result.error == "Bebop swap execution not yet implemented"
        assert not result.non_retryable

    @pytest.mark.asyncio
    async def test_already_executed_service_wallet(self):
        executor = SwapExecutor([PlaceholderStrategy(SwapperName.RELAY)])
        quote = _quote("Relay", SwapperType.SERVICE_WALLET, execution_tx_hash="0xdone")
        result = await executor.execute_swap(quote)
        assert result.success
        assert result.metadata["alreadyExecuted"] is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_retryable(self):
        executor = SwapExecutor([self.Exploding(KeyError("inbound"))])
        result = await executor.execute_swap(_quote("Relay", SwapperType.SERVICE_WALLET))
        assert not result.success
        assert not result.non_retryable
        assert result.error.startswith("Relay execution error")

    @pytest.mark.asyncio
    async def test_execution_error_flags(self):
        executor = SwapExecutor([self.Exploding(ExecutionError("bad pair", non_retryable=True))])
        result = await executor.execute_swap(_quote("Relay", SwapperType.SERVICE_WALLET))
        assert result.non_retryable
        assert result.error == "bad pair"

    @pytest.mark.asyncio
    async def test_node_outage_is_pending(self, seed_wallets):
        stub = ChainStub(node_status=503)
        deposit = seed_wallets.derive_address("eip155:1", 0).address
        executor = SwapExecutor([_thorchain(stub, seed_wallets)])

        result = await executor.execute_swap(_thor_quote(deposit))

        assert result.pending_external_check
        assert not result.non_retryable

    @pytest.mark.asyncio
    async def test_node_rejection_is_retryable(self, seed_wallets):
        stub = ChainStub(node_status=400)
        deposit = seed_wallets.derive_address("eip155:1", 0).address
        executor = SwapExecutor([_thorchain(stub, seed_wallets)])

        result = await executor.execute_swap(_thor_quote(deposit))

        assert not result.success
        assert not result.non_retryable
        assert "THORChain quote failed" in result.error

    @pytest.mark.asyncio
    async def test_busy_account_is_pending(self, seed_wallets):
        """Lock contention is reported as such, not as an execution timeout."""
        stub = ChainStub()
        deposit = seed_wallets.derive_address("eip155:1", 0).address
        executor = SwapExecutor([_thorchain(stub, seed_wallets, lock_timeout=0.05)])

        async with account_lock("eip155:1", deposit):
            result = await executor.execute_swap(_thor_quote(deposit))

        assert result.pending_external_check
        assert "Could not acquire lock" in result.error
        assert stub.raw_transactions == []

    def test_lock_timeout_below_execution_timeout(self):
        assert ACCOUNT_LOCK_TIMEOUT < DEFAULT_EXECUTION_TIMEOUT

    def test_is_swap_pending(self):
        executor = SwapExecutor()
        assert executor.is_swap_pending(_quote())
        assert not executor.is_swap_pending(_quote(execution_tx_hash="0x1"))
        assert not executor.is_swap_pending(_quote(status=QuoteStatus.FAILED))

    def test_registered(self):
        executor = SwapExecutor([ChainflipStrategy(""), PlaceholderStrategy(SwapperName.JUPITER)])
        assert executor.registered == ["Chainflip", "Jupiter"]
        assert executor.get_strategy("Zrx") is None
