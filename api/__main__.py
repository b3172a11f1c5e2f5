"""Command line interface for running the API server."""
import asyncio
import logging
import signal
import sys
import uvicorn

from config import get_settings, SettingsError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, app_path: str = "api:app", host: str = "0.0.0.0", port: int = 8000):
        self.config = uvicorn.Config(
            app_path,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server in a way that can be stopped."""
        await self.server.serve()

    def stop(self):
        """Stop the server."""
        self.server.should_exit = True

async def main():
    """Run the API server until a shutdown signal arrives."""
    try:
        settings = get_settings()
    except SettingsError as e:
        logger.error(str(e))
        sys.exit(1)

    server = UvicornServer(host=settings['api_host'], port=settings['api_port'])

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, server.stop)

    logger.info(f"Starting marketplace API on {settings['api_host']}:{settings['api_port']}")
    await server.run()
    logger.info("Shutdown complete.")

if __name__ == "__main__":
    asyncio.run(main())
