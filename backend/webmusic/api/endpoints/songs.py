from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from ...core.exceptions import WebMusicError
from ...core.schemas import SongURLResponse
from ...services.aggregator import MusicAggregator, get_aggregator

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/song", response_model=SongURLResponse, response_model_exclude_none=True)
def get_song_url(
    id: Optional[str] = Query(None, description="Provider-specific song id"),
    source: Optional[str] = Query(None, description="Provider tag: qq, netease or kuwo"),
    aggregator: MusicAggregator = Depends(get_aggregator),
):
    """
    Resolve a playable stream URL. Failures are reported in the body's ``code``
    field so the player can tell an unplayable track from a broken request.
    """
    id = (id or "").strip()
    source = (source or "").strip().lower()
    if not id or not source:
        raise HTTPException(status_code=400, detail="Missing required parameters")

    try:
        url = aggregator.get_song_url(id, source)
    except WebMusicError as e:
        logger.error(f"Failed to get song URL: {e}", extra={"song_id": id, "source": source})
        return SongURLResponse(url="", code=500, msg="Failed to get song URL")

    return SongURLResponse(url=url, code=200)
