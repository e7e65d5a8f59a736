"""FastAPI application factory."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sendswap import __version__
from sendswap.config import Settings, get_settings
from sendswap.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the services when the app runs standalone (``uvicorn --factory sendswap.api.app:create_app``).

    A container passed to ``create_app`` is owned by the caller and is left
    alone here.
    """
    if getattr(app.state, "container", None) is not None:
        yield
        return

    settings: Settings = app.state.settings
    container = build_container(settings)
    await container.init()
    app.state.container = container

    monitor_task = None
    if settings.monitor_enabled:
        monitor_task = asyncio.create_task(container.monitor.run())

    yield

    container.monitor.stop()
    if monitor_task is not None:
        await monitor_task
    await container.close()
    app.state.container = None


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app(
    container: Optional[ServiceContainer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (container.settings if container else get_settings())

    app = FastAPI(
        title="SendSwap API",
        description="Cross-chain send-swap quotes and execution",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Register routes
    from sendswap.api.routes import health, quotes, swappers

    app.include_router(health.router, tags=["Health"])
    app.include_router(quotes.router, tags=["Quotes"])
    app.include_router(swappers.router, tags=["Swappers"])

    return app
