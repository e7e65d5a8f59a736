"""Quote endpoints."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from sendswap.api.deps import get_container
from sendswap.container import ServiceContainer
from sendswap.errors import InvalidTransitionError, QuoteNotFoundError, ValidationError
from sendswap.quotes.models import AssetInfo, Quote, QuoteRequest, QuoteStatus
from sendswap.quotes.service import parse_base_units, quote_qr_data

logger = logging.getLogger(__name__)

router = APIRouter()


class AssetPayload(BaseModel):
    """Asset descriptor supplied by the client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    asset_id: Optional[str] = None
    symbol: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    precision: int = Field(..., ge=0, le=36)


class CreateQuoteRequest(BaseModel):
    """Request body for quote creation (snake_case or camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sell_asset_id: str = Field(..., min_length=3, max_length=200)
    buy_asset_id: str = Field(..., min_length=3, max_length=200)
    sell_amount_base_unit: str = Field(..., description="Sell amount in base units")
    receive_address: str = Field(..., min_length=1, max_length=200)
    swapper_name: Optional[str] = Field(None, description="Preferred swapper")
    expected_buy_amount_base_unit: Optional[str] = None
    sell_asset: Optional[AssetPayload] = None
    buy_asset: Optional[AssetPayload] = None

    @field_validator("expected_buy_amount_base_unit")
    @classmethod
    def validate_expected(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            return str(parse_base_units(v, "expected buy amount", allow_zero=True))
        except ValidationError as e:
            raise ValueError(str(e)) from e

    def to_domain(self) -> QuoteRequest:
        def asset(payload: Optional[AssetPayload], asset_id: str) -> Optional[AssetInfo]:
            if payload is None:
                return None
            return AssetInfo(
                asset_id=payload.asset_id or asset_id,
                symbol=payload.symbol,
                name=payload.name,
                precision=payload.precision,
            )

        return QuoteRequest(
            sell_asset_id=self.sell_asset_id,
            buy_asset_id=self.buy_asset_id,
            sell_amount_base_unit=self.sell_amount_base_unit,
            receive_address=self.receive_address,
            swapper_name=self.swapper_name,
            expected_buy_amount_base_unit=self.expected_buy_amount_base_unit,
            sell_asset=asset(self.sell_asset, self.sell_asset_id),
            buy_asset=asset(self.buy_asset, self.buy_asset_id),
        )


class AssetResponse(BaseModel):
    asset_id: str
    symbol: str
    name: str
    precision: int


class QuoteResponse(BaseModel):
    """Quote as returned to clients."""

    quote_id: str
    status: str
    deposit_address: str
    receive_address: str
    sell_asset: AssetResponse
    buy_asset: AssetResponse
    sell_amount_base_unit: str
    expected_buy_amount_base_unit: str
    swapper_name: str
    swapper_type: str
    gas_overhead_base_unit: Optional[str] = None
    expires_at: datetime
    created_at: datetime
    deposit_tx_hash: Optional[str] = None
    execution_tx_hash: Optional[str] = None
    qr_data: str

    @classmethod
    def from_quote(cls, quote: Quote) -> "QuoteResponse":
        return cls(
            quote_id=quote.quote_id,
            status=quote.status.value,
            deposit_address=quote.deposit_address,
            receive_address=quote.receive_address,
            sell_asset=AssetResponse(**quote.sell_asset.to_dict()),
            buy_asset=AssetResponse(**quote.buy_asset.to_dict()),
            sell_amount_base_unit=quote.sell_amount_base_unit,
            expected_buy_amount_base_unit=quote.expected_buy_amount_base_unit,
            swapper_name=quote.swapper_name,
            swapper_type=quote.swapper_type.value,
            gas_overhead_base_unit=quote.gas_overhead_base_unit,
            expires_at=quote.expires_at,
            created_at=quote.created_at,
            deposit_tx_hash=quote.deposit_tx_hash,
            execution_tx_hash=quote.execution_tx_hash,
            qr_data=quote_qr_data(quote),
        )


class ExecutionResultResponse(BaseModel):
    success: bool
    execution_tx_hash: Optional[str] = None
    error: Optional[str] = None
    swapper_name: str
    swapper_type: str
    metadata: dict = Field(default_factory=dict)


class RetryResponse(BaseModel):
    quote: QuoteResponse
    result: ExecutionResultResponse


@router.post("/quotes", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    payload: CreateQuoteRequest,
    container: ServiceContainer = Depends(get_container),
):
    """Create a send-swap quote with a fresh deposit address."""
    try:
        quote = await container.quotes.create_quote(payload.to_domain())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return QuoteResponse.from_quote(quote)


@router.get("/quotes/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: str, container: ServiceContainer = Depends(get_container)):
    """Get a quote and its current status."""
    try:
        quote = await container.quotes.get_quote(quote_id)
    except QuoteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return QuoteResponse.from_quote(quote)


@router.post("/quotes/{quote_id}/retry", response_model=RetryResponse)
async def retry_quote(quote_id: str, container: ServiceContainer = Depends(get_container)):
    """Re-run execution for a quote whose deposit was received."""
    try:
        quote = await container.quotes.get_quote(quote_id)
    except QuoteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    awaiting = quote.status in (QuoteStatus.DEPOSIT_RECEIVED, QuoteStatus.EXECUTING)
    if not awaiting or not container.executor.is_swap_pending(quote):
        raise HTTPException(
            status_code=409,
            detail=f"Quote {quote_id} is not awaiting execution (status: {quote.status.value})",
        )

    result = await container.executor.retry_swap(quote)
    try:
        updated = await container.quotes.apply_execution_result(quote, result)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Manual retry for {quote_id}: success={result.success} status={updated.status.value}")
    return RetryResponse(
        quote=QuoteResponse.from_quote(updated),
        result=ExecutionResultResponse(**result.to_dict()),
    )
