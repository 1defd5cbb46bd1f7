"""System health endpoints."""

from fastapi import APIRouter, HTTPException, status
from typing import List
from pydantic import BaseModel
import logging
import psutil

from config import settings_conf, network_conf

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    uptime: float
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    default_network: str
    networks: List[str]

@router.get("/health")
async def get_system_health() -> SystemHealth:
    """Get system health status.

    Returns:
        SystemHealth object containing system metrics
    """
    try:
        cpu_percent = psutil.cpu_percent()
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')

        return SystemHealth(
            status="healthy" if cpu_percent < 80 else "degraded",
            uptime=psutil.boot_time(),
            cpu_usage=cpu_percent,
            memory_usage=memory.percent,
            disk_usage=disk.percent,
            default_network=settings_conf['default_network'],
            networks=sorted(network_conf),
        )
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

__all__ = ['router']
