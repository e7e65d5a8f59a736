"""Swapper registry endpoints."""

from fastapi import APIRouter, Depends

from sendswap.api.deps import get_container
from sendswap.container import ServiceContainer

router = APIRouter()


@router.get("/swappers")
async def list_swappers(container: ServiceContainer = Depends(get_container)):
    """Swapper classification (DIRECT / SERVICE_WALLET / excluded)."""
    return container.registry.summary()


@router.get("/swappers/gas")
async def gas_overheads(container: ServiceContainer = Depends(get_container)):
    """Gas overhead reserved per chain for SERVICE_WALLET quotes."""
    return container.gas.summary()
