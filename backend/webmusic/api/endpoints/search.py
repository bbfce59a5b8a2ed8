from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from ...core.schemas import SearchResponse
from ...services.aggregator import MusicAggregator, get_aggregator, parse_sources

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/search", response_model=SearchResponse, response_model_exclude_none=True)
def search_songs(
    keyword: Optional[str] = Query(None, description="Search keyword"),
    sources: Optional[str] = Query(None, description="Comma separated provider list, e.g. qq,netease"),
    aggregator: MusicAggregator = Depends(get_aggregator),
):
    """
    Search every requested provider in turn and return the merged song list
    """
    if not keyword or not keyword.strip():
        raise HTTPException(status_code=400, detail="Missing keyword parameter")

    try:
        songs = aggregator.search(keyword.strip(), parse_sources(sources))
    except Exception as e:
        logger.error(f"Search failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Search failed")

    return SearchResponse.from_songs(songs)
