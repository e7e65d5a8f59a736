"""Health check endpoints."""

from fastapi import APIRouter, Depends

from sendswap import __version__
from sendswap.api.deps import get_container
from sendswap.container import ServiceContainer

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "sendswap"}


@router.get("/health/detailed")
async def detailed_health(container: ServiceContainer = Depends(get_container)):
    """Detailed health check with configuration info (secrets redacted)."""
    return {
        "status": "healthy",
        "service": "sendswap",
        "version": __version__,
        "config": container.settings.get_safe_dict(),
        "wallet": "simulated" if container.wallets.is_simulated else "seed",
        "strategies": container.executor.registered,
        "quotes": await container.quotes.stats(),
    }
