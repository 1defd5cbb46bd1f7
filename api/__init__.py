"""REST API module for the marketplace.

This module provides read-only HTTP endpoints for:
- Browsing active listings with filters, sorting and pagination
- Collections with floor prices and stats
- Marketplace activity (sales, listings, cancellations)
- NFTs held by an account
- System health monitoring
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings_conf
from proxy import client as proxy_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info(f"Initializing API (default network: {settings_conf['default_network']})...")
    yield
    logger.info("Shutting down API...")
    await proxy_client.close()

# Create FastAPI app
app = FastAPI(
    title="Klever NFT Marketplace API",
    description="Read-only REST API over Klever marketplace orders, assets and activity",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Import and include all routers
from .listings import router as listings_router
from .activity import router as activity_router
from .assets import router as assets_router
from .system import router as system_router

app.include_router(listings_router)
app.include_router(activity_router)
app.include_router(assets_router)
app.include_router(system_router)
