import time
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ...core.config import settings
from ...core.exceptions import ProviderRequestError, ProviderResponseError
from ...models.song import Song
from .base import DESKTOP_USER_AGENT, MOBILE_USER_AGENT, MusicProvider, get_path, run_fallback_chain

logger = logging.getLogger(__name__)

WWW_URL = "http://www.kuwo.cn"
TOKEN_URL = WWW_URL + "/search/key"
SEARCH_URL = WWW_URL + "/api/www/search/searchMusicBykeyWord"
PLAY_URL = WWW_URL + "/api/v1/www/music/playUrl"
MOBILE_SEARCH_URL = "http://search.kuwo.cn/r.s"
ANTISERVER_URL = "http://antiserver.kuwo.cn/anti.s"
TOKEN_COOKIE = "kw_token"
MUSIC_PREFIX = "MUSIC_"


def clean_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.replace("&nbsp;", " ").strip()
    return value


def strip_music_prefix(value: Any) -> Any:
    if isinstance(value, str) and value.startswith(MUSIC_PREFIX):
        return value[len(MUSIC_PREFIX):]
    return value


class KuwoProvider(MusicProvider):
    """Kuwo Music. The web API wants a ``kw_token`` cookie echoed back as a csrf header."""

    name = "kuwo"

    def __init__(self, session=None, timeout: Optional[float] = None, token_ttl: Optional[int] = None,
                 default_token: Optional[str] = None, backup_api: Optional[str] = None):
        super().__init__(session, timeout)
        self.token_ttl = token_ttl if token_ttl is not None else settings.KUWO_TOKEN_TTL
        self.default_token = default_token or settings.KUWO_DEFAULT_TOKEN
        self.backup_api = (backup_api or settings.NETEASE_BACKUP_API).rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def warm_up(self) -> None:
        self.refresh_token()

    def refresh_token(self) -> str:
        """Fetch a fresh ``kw_token``; falls back to the configured default token."""
        logger.info("Refreshing Kuwo token")
        token = None
        try:
            self.request("GET", TOKEN_URL, what="Kuwo token", headers={
                "User-Agent": DESKTOP_USER_AGENT,
                "Referer": WWW_URL + "/",
                "Accept": "*/*",
                "Accept-Language": "zh-CN,zh;q=0.9",
            })
            for cookie in self.session.cookies:
                if cookie.name == TOKEN_COOKIE and cookie.value:
                    token = cookie.value
                    break
        except ProviderRequestError as e:
            logger.warning(f"Failed to refresh Kuwo token: {e}")

        if not token:
            logger.info("Kuwo token cookie not issued, using default token")
            token = self.default_token

        self._token = token
        self._token_expires_at = time.monotonic() + self.token_ttl
        return token

    @property
    def token(self) -> str:
        if not self._token or time.monotonic() >= self._token_expires_at:
            return self.refresh_token()
        return self._token

    def _web_headers(self, referer: str) -> Dict[str, str]:
        token = self.token
        return {
            "User-Agent": DESKTOP_USER_AGENT,
            "Referer": referer,
            "csrf": token,
            "Cookie": f"{TOKEN_COOKIE}={token}",
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": "zh-CN,zh;q=0.9",
        }

    def search(self, keyword: str) -> List[Song]:
        logger.info(f"Searching Kuwo: {keyword}")
        return self.search_chain(
            [
                ("web", lambda: self._search_web(keyword)),
                ("mobile", lambda: self._search_mobile(keyword)),
                ("backup", lambda: self._search_backup(keyword)),
            ],
            keyword,
        )

    def _search_web(self, keyword: str) -> List[Song]:
        what = "Kuwo search"
        params = {"key": keyword, "pn": 1, "rn": self.limit}
        headers = self._web_headers(f"{WWW_URL}/search/list?key={quote(keyword)}")
        data = self.request_json("GET", SEARCH_URL, what=what, params=params, headers=headers)
        if data.get("code") != 200:
            raise ProviderResponseError(f"{what}: API returned error code {data.get('code')}")

        items = get_path(data, "data", "list")
        songs = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                continue
            song_id = item.get("rid")
            if song_id in (None, "", 0):
                song_id = strip_music_prefix(item.get("musicrid"))
            song = self.make_song(
                song_id,
                clean_text(item.get("name")),
                artist=clean_text(item.get("artist")) or "",
                album=clean_text(item.get("album")),
                cover=item.get("pic"),
            )
            if song:
                songs.append(song)
        return songs

    def _search_mobile(self, keyword: str) -> List[Song]:
        what = "Kuwo mobile search"
        params = {
            "correct": 1, "vipver": 1, "stype": "comprehensive", "encoding": "utf8",
            "rformat": "json", "mobi": 1, "show_copyright_off": 1, "searchapi": 6,
            "all": keyword, "rn": self.limit,
        }
        data = self.request_json("GET", MOBILE_SEARCH_URL, what=what, params=params,
                                 headers={"User-Agent": MOBILE_USER_AGENT})
        items = data.get("abslist")
        if items is None:
            items = get_path(data, "content", 1, "musicpage", "abslist")

        songs = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                continue
            artist = clean_text(item.get("ARTIST"))
            song = self.make_song(
                strip_music_prefix(item.get("MUSICRID")),
                clean_text(item.get("SONGNAME")),
                artist=artist.replace("&", ", ") if isinstance(artist, str) else "",
                album=clean_text(item.get("ALBUM")),
            )
            if song:
                songs.append(song)
        return songs

    def _search_backup(self, keyword: str) -> List[Song]:
        what = "Kuwo backup search"
        params = {"keywords": keyword, "type": 1002, "limit": self.limit}
        data = self.request_json("GET", f"{self.backup_api}/search", what=what, params=params,
                                 headers={"User-Agent": MOBILE_USER_AGENT})
        return self.parse_netease_songs(get_path(data, "result", "songs"))

    def get_song_url(self, song_id: str) -> str:
        logger.info(f"Resolving Kuwo URL: {song_id}")
        song_id = strip_music_prefix(song_id)
        return run_fallback_chain(
            [
                ("web", lambda: self._url_web(song_id)),
                ("antiserver", lambda: self._url_antiserver(song_id)),
                ("backup", lambda: self._url_backup(song_id)),
            ],
            f"Kuwo URL for {song_id}",
        )

    def _url_web(self, song_id: str) -> str:
        what = "Kuwo URL"
        params = {"mid": song_id, "type": "convert_url3", "br": "320kmp3"}
        data = self.request_json("GET", PLAY_URL, what=what, params=params,
                                 headers=self._web_headers(WWW_URL + "/"))
        if data.get("code") != 200:
            raise ProviderResponseError(f"{what}: API returned error code {data.get('code')}")
        url = get_path(data, "data", "url")
        if not isinstance(url, str) or not url:
            raise ProviderResponseError(f"{what}: no playable URL for this song")
        return url

    def _url_antiserver(self, song_id: str) -> str:
        what = "Kuwo antiserver URL"
        params = {"type": "convert_url", "format": "mp3", "response": "url", "rid": MUSIC_PREFIX + song_id}
        response = self.request("GET", ANTISERVER_URL, what=what, params=params,
                                headers={"User-Agent": MOBILE_USER_AGENT})
        url = response.text.strip()
        if not url.startswith("http"):
            raise ProviderResponseError(f"{what}: unexpected response {url[:100]!r}")
        return url

    def _url_backup(self, song_id: str) -> str:
        what = "Kuwo backup URL"
        data = self.request_json("GET", f"{self.backup_api}/song/url", what=what,
                                 params={"id": song_id, "source": "kuwo"},
                                 headers={"User-Agent": MOBILE_USER_AGENT})
        if data.get("code") != 200:
            raise ProviderResponseError(f"{what}: API returned error code {data.get('code')}")
        url = get_path(data, "data", 0, "url")
        if not isinstance(url, str) or not url:
            raise ProviderResponseError(f"{what}: no playable URL for this song")
        return url
