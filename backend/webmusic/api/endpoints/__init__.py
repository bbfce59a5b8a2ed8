"""
API endpoints package initialization
"""
from . import search, songs, health

# Export all routers
__all__ = ['search', 'songs', 'health', 'router']

from fastapi import APIRouter

# Import routers for direct access
from .search import router as search_router
from .songs import router as songs_router
from .health import router as health_router

# Combined router, mounted under the API prefix by the app
router = APIRouter()
router.include_router(search_router, tags=["search"])
router.include_router(songs_router, tags=["songs"])
router.include_router(health_router, tags=["health"])
