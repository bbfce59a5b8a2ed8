import logging
from typing import Any, Dict, List, Optional

from ...core.config import settings
from ...core.exceptions import ProviderRequestError, ProviderResponseError
from ...models.song import Song
from ..crypto import weapi_encrypt
from .base import DESKTOP_USER_AGENT, MOBILE_USER_AGENT, MusicProvider, get_path, run_fallback_chain

logger = logging.getLogger(__name__)

HOME_URL = "https://music.163.com"
WEAPI_URL = HOME_URL + "/weapi"
API_URL = HOME_URL + "/api"
CSRF_COOKIE = "__csrf"


class NeteaseProvider(MusicProvider):
    """NetEase Cloud Music: encrypted weapi first, then the plain API, then a public mirror."""

    name = "netease"

    def __init__(self, session=None, timeout: Optional[float] = None, backup_api: Optional[str] = None):
        super().__init__(session, timeout)
        self.backup_api = (backup_api or settings.NETEASE_BACKUP_API).rstrip("/")
        self.session.headers.update({"User-Agent": DESKTOP_USER_AGENT})

    def warm_up(self) -> None:
        """Visit the home page once so the cookie jar holds the session cookies."""
        try:
            self.request("GET", HOME_URL, what="NetEase session init")
            logger.info("NetEase session initialized")
        except ProviderRequestError as e:
            logger.warning(f"Failed to initialize NetEase session: {e}")

    @property
    def csrf_token(self) -> str:
        for cookie in self.session.cookies:
            if cookie.name == CSRF_COOKIE:
                return cookie.value or ""
        return ""

    def _weapi(self, path: str, payload: Dict[str, Any], what: str) -> Dict[str, Any]:
        payload = dict(payload, csrf_token=self.csrf_token)
        headers = {
            "Referer": HOME_URL + "/",
            "Origin": HOME_URL,
            "Content-Type": "application/x-www-form-urlencoded",
        }
        return self.request_json(
            "POST", f"{WEAPI_URL}{path}", what=what,
            params={"csrf_token": payload["csrf_token"]},
            data=weapi_encrypt(payload), headers=headers,
        )

    @staticmethod
    def _check_code(data: Dict[str, Any], what: str) -> None:
        if data.get("code") != 200:
            raise ProviderResponseError(f"{what}: API returned error code {data.get('code')}")

    def search(self, keyword: str) -> List[Song]:
        logger.info(f"Searching NetEase: {keyword}")
        return self.search_chain(
            [
                ("weapi", lambda: self._search_weapi(keyword)),
                ("api", lambda: self._search_api(keyword)),
                ("backup", lambda: self._search_backup(keyword)),
            ],
            keyword,
        )

    def _songs_from(self, data: Dict[str, Any], what: str) -> List[Song]:
        self._check_code(data, what)
        return self.parse_netease_songs(get_path(data, "result", "songs"))

    def _search_weapi(self, keyword: str) -> List[Song]:
        what = "NetEase weapi search"
        payload = {"s": keyword, "type": "1", "limit": str(self.limit), "offset": "0"}
        return self._songs_from(self._weapi("/cloudsearch/get/web", payload, what), what)

    def _search_api(self, keyword: str) -> List[Song]:
        what = "NetEase search"
        params = {"s": keyword, "type": 1, "limit": self.limit, "offset": 0}
        headers = {"Referer": HOME_URL + "/", "Accept": "application/json"}
        data = self.request_json("GET", f"{API_URL}/search/get", what=what, params=params, headers=headers)
        return self._songs_from(data, what)

    def _search_backup(self, keyword: str) -> List[Song]:
        what = "NetEase backup search"
        params = {"keywords": keyword, "limit": self.limit}
        data = self.request_json("GET", f"{self.backup_api}/search", what=what, params=params,
                                 headers={"User-Agent": MOBILE_USER_AGENT})
        return self._songs_from(data, what)

    def get_song_url(self, song_id: str) -> str:
        logger.info(f"Resolving NetEase URL: {song_id}")
        return run_fallback_chain(
            [
                ("weapi", lambda: self._url_weapi(song_id)),
                ("api", lambda: self._url_api(song_id)),
                ("backup", lambda: self._url_backup(song_id)),
            ],
            f"NetEase URL for {song_id}",
        )

    def _url_from(self, data: Dict[str, Any], what: str) -> str:
        self._check_code(data, what)
        url = get_path(data, "data", 0, "url")
        if not isinstance(url, str) or not url:
            raise ProviderResponseError(f"{what}: no playable URL for this song")
        return url

    def _url_weapi(self, song_id: str) -> str:
        what = "NetEase weapi URL"
        payload = {"ids": f"[{song_id}]", "level": "standard", "encodeType": "mp3"}
        return self._url_from(self._weapi("/song/enhance/player/url/v1", payload, what), what)

    def _url_api(self, song_id: str) -> str:
        what = "NetEase URL"
        params = {"ids": f"[{song_id}]", "br": 320000}
        data = self.request_json("GET", f"{API_URL}/song/enhance/player/url", what=what, params=params,
                                 headers={"Referer": HOME_URL + "/"})
        return self._url_from(data, what)

    def _url_backup(self, song_id: str) -> str:
        what = "NetEase backup URL"
        data = self.request_json("GET", f"{self.backup_api}/song/url", what=what, params={"id": song_id},
                                 headers={"User-Agent": MOBILE_USER_AGENT})
        return self._url_from(data, what)
