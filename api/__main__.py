"""Command line interface for running the API server."""
import argparse
import asyncio
import logging

import uvicorn

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
        """Run the server; uvicorn handles SIGINT and SIGTERM."""
        await self.server.serve()

async def main(host: str, port: int):
    """Run the API server."""
    logger.info(f"Starting API server on {host}:{port}")
    await UvicornServer(host=host, port=port).run()
    logger.info("API server stopped.")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the marketplace API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    asyncio.run(main(args.host, args.port))
