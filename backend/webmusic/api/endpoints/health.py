from fastapi import APIRouter, Depends
import logging

from ...core.config import settings
from ...core.schemas import HealthResponse
from ...services.aggregator import MusicAggregator, get_aggregator

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
def health_check(aggregator: MusicAggregator = Depends(get_aggregator)):
    """Liveness check listing the registered providers"""
    return HealthResponse(
        status="healthy",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        providers=aggregator.available_sources,
    )
