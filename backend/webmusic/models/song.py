from pydantic import BaseModel, field_validator
from typing import Optional, Tuple

class Song(BaseModel):
    """A track as returned to API consumers, whichever provider supplied it."""
    id: str
    title: str
    artist: str = ""
    album: Optional[str] = None
    cover: Optional[str] = None
    source: str
    url: Optional[str] = None

    @field_validator("album", "cover", "url", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def key(self) -> Tuple[str, str]:
        return self.source, self.id
