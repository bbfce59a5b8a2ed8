from typing import Optional, List
from pydantic import BaseModel, Field
from webmusic.models.song import Song

class SearchResponse(BaseModel):
    songs: List[Song] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def from_songs(cls, songs: List[Song]) -> "SearchResponse":
        return cls(songs=songs, total=len(songs))

class SongURLResponse(BaseModel):
    url: str = ""
    code: int
    msg: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    providers: List[str]
