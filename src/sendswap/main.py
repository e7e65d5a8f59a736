"""Main entry point - runs the API and the deposit monitor."""

import asyncio
import logging
import signal
from typing import Optional

import uvicorn

from sendswap.api.app import create_app
from sendswap.config import get_settings
from sendswap.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)


class Application:
    """Main application that runs the API server and the monitor loop."""

    def __init__(self):
        self.settings = get_settings()
        self.container: Optional[ServiceContainer] = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        # Configure logging
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting SendSwap...")
        logger.info(f"Environment: {self.settings.environment} (dry_run={self.settings.dry_run})")

        self.container = build_container(self.settings)
        await self.container.init()
        logger.info("Database initialized")

        self.container.registry.log_summary()
        logger.info("Verifying wallet derivation...")
        self.container.wallets.verify()

        tasks = [asyncio.create_task(self._run_api())]
        logger.info("API task created")

        if self.settings.monitor_enabled:
            tasks.append(asyncio.create_task(self._run_monitor()))
            logger.info("Monitor task created")
        else:
            logger.warning("MONITOR_ENABLED is false - deposits will not be processed")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

        self.container.monitor.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app(self.container)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _run_monitor(self):
        try:
            await self.container.monitor.run()
        except asyncio.CancelledError:
            logger.info("Monitor cancelled")

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")
        if self.container is not None:
            await self.container.close()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    app = Application()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
