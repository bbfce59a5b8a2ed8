import json
import logging
from typing import Any, Dict, List, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from ...core.config import settings
from ...core.exceptions import ProviderError, ProviderResponseError
from ...models.song import Song
from .base import (
    ANDROID_USER_AGENT,
    DESKTOP_USER_AGENT,
    MOBILE_USER_AGENT,
    MusicProvider,
    get_path,
    join_artists,
    run_fallback_chain,
)

logger = logging.getLogger(__name__)

MUSICU_URL = "https://u.y.qq.com/cgi-bin/musicu.fcg"
MUSICS_URL = "https://u.y.qq.com/cgi-bin/musics.fcg"
COVER_URL = "https://y.gtimg.cn/music/photo_new/T002R300x300M000{album_mid}.jpg"

SEARCH_TYPE_SONG = 0


class QQMusicProvider(MusicProvider):
    name = "qq"

    def __init__(self, session=None, timeout: Optional[float] = None,
                 retries: Optional[int] = None, retry_wait: Optional[float] = None,
                 fallback_api: Optional[str] = None):
        super().__init__(session, timeout if timeout is not None else settings.QQ_TIMEOUT)
        self.retries = retries if retries is not None else settings.QQ_SEARCH_RETRIES
        self.retry_wait = retry_wait if retry_wait is not None else settings.QQ_RETRY_WAIT
        self.fallback_api = fallback_api or settings.QQ_FALLBACK_API

    def _headers(self, user_agent: str = DESKTOP_USER_AGENT) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": user_agent,
            "Referer": "https://y.qq.com/",
            "Origin": "https://y.qq.com",
            "Accept": "application/json",
        }

    def search(self, keyword: str) -> List[Song]:
        """Search QQ Music, retrying the whole request with a growing pause."""
        retrying = Retrying(
            stop=stop_after_attempt(max(self.retries, 1)),
            wait=wait_incrementing(start=self.retry_wait, increment=self.retry_wait),
            retry=retry_if_exception_type(ProviderError),
            before_sleep=lambda state: logger.warning(
                f"QQ Music search failed, retrying ({state.attempt_number}/{self.retries}): "
                f"{state.outcome.exception()}"
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self._search_once(keyword)
        return []

    def _search_once(self, keyword: str) -> List[Song]:
        logger.info(f"Searching QQ Music: {keyword}")
        body = {
            "req_0": {
                "module": "music.search.SearchCgiService",
                "method": "DoSearchForQQMusicDesktop",
                "param": {
                    "query": keyword,
                    "num_per_page": self.limit,
                    "page_num": 1,
                    "search_type": SEARCH_TYPE_SONG,
                },
            }
        }
        data = self.request_json("POST", MUSICU_URL, what="QQ search", json=body, headers=self._headers())

        req0 = data.get("req_0")
        if not isinstance(req0, dict) or req0.get("code") != 0:
            code = req0.get("code") if isinstance(req0, dict) else None
            logger.warning(f"QQ Music search API returned error code: {code}")
            return []

        songs = self.parse_search_results(get_path(req0, "data", "body", "song", "list"))
        if not songs:
            logger.info(f"QQ Music search returned no results: {keyword}")
        return songs

    def parse_search_results(self, items: Any) -> List[Song]:
        songs = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                continue
            album = item.get("album") if isinstance(item.get("album"), dict) else {}
            album_mid = album.get("mid")
            cover = COVER_URL.format(album_mid=album_mid) if isinstance(album_mid, str) and album_mid else None
            song = self.make_song(
                item.get("mid"),
                item.get("title"),
                artist=join_artists(item.get("singer")),
                album=album.get("name"),
                cover=cover,
            )
            if song:
                songs.append(song)
        return songs

    def get_song_url(self, song_id: str) -> str:
        logger.info(f"Resolving QQ Music URL: {song_id}")
        return run_fallback_chain(
            [
                ("vkey", lambda: self._url_from_vkey(song_id)),
                ("musics.fcg", lambda: self._url_from_musics(song_id)),
                ("third-party", lambda: self._url_from_third_party(song_id)),
            ],
            f"QQ URL for {song_id}",
        )

    def _vkey_param(self, song_id: str, h5: bool = True) -> Dict[str, Any]:
        param = {
            "guid": "10000",
            "songmid": [song_id],
            "songtype": [0],
            "uin": "0",
            "loginflag": 1,
            "platform": "20",
        }
        if h5:
            param.update({
                "h5platform": "Android",
                "h5uin": "0",
                "h5guid": "10000",
                "h5channel": "mqq",
                "h5version": "1.0",
                "h5from": "mqq",
                "h5tag": "mqq",
            })
        return {"req_0": {"module": "vkey.GetVkeyServer", "method": "CgiGetVkey", "param": param}}

    def _extract_vkey_url(self, data: Dict[str, Any], what: str) -> str:
        req0 = data.get("req_0")
        if not isinstance(req0, dict):
            raise ProviderResponseError(f"{what}: malformed response")
        if req0.get("code") != 0:
            raise ProviderResponseError(f"{what}: API returned error code {req0.get('code')}")

        base = get_path(req0, "data", "sip", 0)
        purl = get_path(req0, "data", "midurlinfo", 0, "purl")
        if not isinstance(base, str) or not base:
            raise ProviderResponseError(f"{what}: no URL base in response")
        if not isinstance(purl, str) or not purl:
            raise ProviderResponseError(f"{what}: no playable file for this song")

        url = base + purl
        if not url.startswith("http"):
            raise ProviderResponseError(f"{what}: unusable URL {url!r}")
        return url

    def _url_from_vkey(self, song_id: str) -> str:
        what = "QQ vkey"
        headers = self._headers(ANDROID_USER_AGENT)
        headers["Accept-Language"] = "zh-CN,zh;q=0.9"
        data = self.request_json("POST", MUSICU_URL, what=what, json=self._vkey_param(song_id),
                                 headers=headers, clean=True)
        return self._extract_vkey_url(data, what)

    def _url_from_musics(self, song_id: str) -> str:
        what = "QQ musics.fcg"
        params = {
            "format": "json",
            "data": json.dumps(self._vkey_param(song_id, h5=False), separators=(",", ":")),
        }
        headers = {
            "User-Agent": MOBILE_USER_AGENT,
            "Accept": "*/*",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
            "Accept-Encoding": "identity",
        }
        data = self.request_json("GET", MUSICS_URL, what=what, params=params, headers=headers,
                                 clean=True, timeout=settings.HTTP_TIMEOUT)
        return self._extract_vkey_url(data, what)

    def _url_from_third_party(self, song_id: str) -> str:
        what = "QQ third-party"
        params = {"callback": "jQuery", "types": "url", "id": song_id}
        headers = {
            "User-Agent": MOBILE_USER_AGENT,
            "Accept": "*/*",
            "Referer": "https://y.qq.com/",
            "Accept-Encoding": "identity",
        }
        response = self.request("GET", self.fallback_api, what=what, params=params, headers=headers,
                                timeout=settings.HTTP_TIMEOUT)
        body = response.content.strip()
        if body.startswith(b"jQuery(") and body.endswith(b")"):
            body = body[len(b"jQuery("):-1]
        data = self.decode_json(body, what=what)

        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ProviderResponseError(f"{what}: no URL in response")
        return url
