"""Main entry point - runs the API and the swap runner."""

import asyncio
import logging
import signal
from datetime import timedelta

import uvicorn

from teleswap.api.app import create_app
from teleswap.config import get_settings
from teleswap.errors import ConfigurationError
from teleswap.ledger.database import close_db, init_db
from teleswap.runner import SwapRunner

logger = logging.getLogger(__name__)


class Application:
    """Main application that runs both the API and the runner."""

    def __init__(self):
        self.settings = get_settings()
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting TeleSwap...")
        logger.info(f"Environment: {self.settings.environment}")
        logger.info(f"Network: {self.settings.teleswap_network.value}")

        await init_db()
        logger.info("Database initialized")

        tasks = [asyncio.create_task(self._run_api())]
        logger.info("API task created")

        try:
            from teleswap.factory import create_provider

            runner = SwapRunner(
                create_provider(self.settings),
                interval=self.settings.poll_interval_seconds,
                receive_alert_after=timedelta(hours=self.settings.receive_alert_after_hours),
            )
            tasks.append(asyncio.create_task(runner.run()))
            logger.info("Runner task created")
        except ConfigurationError as e:
            logger.warning(f"Swap runner disabled: {e}")

        await self._shutdown_event.wait()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app()
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

    async def _cleanup(self):
        logger.info("Cleaning up...")
        await close_db()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

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
