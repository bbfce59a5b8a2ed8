import re
import math
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from ...core.config import settings
from ...core.exceptions import (
    EndpointsExhaustedError,
    ProviderError,
    ProviderRequestError,
    ProviderResponseError,
)
from ...models.song import Song

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
MOBILE_USER_AGENT = "Mozilla/5.0 (iPhone; CPU iPhone OS 13_2_3 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/13.0.3 Mobile/15E148 Safari/604.1"
ANDROID_USER_AGENT = "Mozilla/5.0 (Linux; Android 11; Pixel 4) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Mobile Safari/537.36"

ANSI_ESCAPE = re.compile(rb"\x1b\[[0-9;]*[a-zA-Z]")

Attempt = Tuple[str, Callable[[], Any]]


def clean_ansi(data: bytes) -> bytes:
    return ANSI_ESCAPE.sub(b"", data)


def format_id(value: Any) -> Optional[str]:
    """Render a provider id as a string; numbers lose their decimal part."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def join_artists(items: Any) -> str:
    """Join the ``name`` of each artist object with ", "."""
    if not isinstance(items, list):
        return ""
    names = [item["name"] for item in items
             if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"]]
    return ", ".join(names)


def get_path(data: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
    return data


def run_fallback_chain(attempts: Sequence[Attempt], what: str) -> Any:
    """
    Try each ``(label, callable)`` in order and return the first truthy result.

    Provider errors and empty results both move on to the next attempt. When
    nothing is left an EndpointsExhaustedError carries the collected errors.
    """
    errors: List[ProviderError] = []
    for label, attempt in attempts:
        try:
            result = attempt()
        except ProviderError as e:
            logger.warning(f"{what} via {label} failed: {e}")
            errors.append(e)
            continue
        if result:
            return result
        logger.info(f"{what} via {label} returned nothing usable, trying next endpoint")

    raise EndpointsExhaustedError(
        f"{what} failed on every endpoint",
        errors=errors,
        attempts=len(attempts),
        details={"endpoints": [label for label, _ in attempts]},
    )


class MusicProvider(ABC):
    """A third-party catalog: one HTTP session plus its search and URL chains."""

    name: str = ""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.limit = settings.SEARCH_LIMIT

    @abstractmethod
    def search(self, keyword: str) -> List[Song]:
        """Search the catalog and return normalized songs."""

    @abstractmethod
    def get_song_url(self, song_id: str) -> str:
        """Resolve a playable stream URL for a provider-specific id."""

    def warm_up(self) -> None:
        """Prime session state (cookies, tokens) before the first request."""

    def close(self) -> None:
        self.session.close()

    def request(self, method: str, url: str, *, what: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ProviderRequestError(
                f"{what}: request failed: {e}",
                details={"source": self.name, "url": url, "original_error": repr(e)},
            ) from e
        return response

    def request_json(self, method: str, url: str, *, what: str, clean: bool = False, **kwargs) -> Dict[str, Any]:
        response = self.request(method, url, what=what, **kwargs)
        return self.decode_json(response.content, what=what, clean=clean)

    def decode_json(self, body: bytes, *, what: str, clean: bool = False) -> Dict[str, Any]:
        if clean:
            body = clean_ansi(body).strip(b"\x00\x1b\x1f \t\r\n")
        if not body:
            raise ProviderResponseError(f"{what}: empty response body", details={"source": self.name})
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProviderResponseError(
                f"{what}: invalid JSON: {e}",
                details={"source": self.name, "body": body[:200].decode("utf-8", "replace")},
            ) from e
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{what}: unexpected JSON payload", details={"source": self.name})
        return data

    def search_chain(self, attempts: Sequence[Attempt], keyword: str) -> List[Song]:
        """Run a search fallback chain; a keyword nobody matched is not an error."""
        try:
            return run_fallback_chain(attempts, f"{self.name} search '{keyword}'")
        except EndpointsExhaustedError as e:
            if e.all_failed:
                raise
            logger.info(f"{self.name} search returned no results for '{keyword}'")
            return []

    def make_song(self, song_id: Any, title: Any, artist: str = "", album: Any = None,
                  cover: Any = None) -> Optional[Song]:
        song_id = format_id(song_id)
        if not song_id or not isinstance(title, str) or not title:
            return None
        return Song(
            id=song_id,
            title=title,
            artist=artist if isinstance(artist, str) else "",
            album=album if isinstance(album, str) else None,
            cover=cover if isinstance(cover, str) else None,
            source=self.name,
        )

    def parse_netease_songs(self, songs: Iterable[Any]) -> List[Song]:
        """Normalize NetEase-shaped song objects (``ar``/``al`` or ``artists``/``album``)."""
        if not isinstance(songs, list):
            return []
        results = []
        for item in songs:
            if not isinstance(item, dict) or not isinstance(item.get("id"), (int, float)):
                continue
            album = item.get("al") if isinstance(item.get("al"), dict) else item.get("album")
            album = album if isinstance(album, dict) else {}
            song = self.make_song(
                item.get("id"),
                item.get("name"),
                artist=join_artists(item.get("ar") if "ar" in item else item.get("artists")),
                album=album.get("name"),
                cover=album.get("picUrl"),
            )
            if song:
                results.append(song)
        return results
