import pytest
import requests

from webmusic.core.exceptions import EndpointsExhaustedError
from webmusic.services.providers import kuwo
from webmusic.services.providers.kuwo import KuwoProvider


WEB_SEARCH_PAYLOAD = {
    "code": 200,
    "data": {"total": "2", "list": [
        {
            "rid": 228908,
            "name": "晴天&nbsp;(Live)",
            "artist": "周杰伦",
            "album": "叶惠美",
            "pic": "https://img1.kuwo.cn/star/albumcover/300/1.jpg",
        },
        {"rid": "", "musicrid": "MUSIC_440615", "name": "稻香", "artist": "周杰伦"},
        {"name": "no id"},
    ]},
}


@pytest.fixture
def provider():
    provider = KuwoProvider(session=requests.Session(), token_ttl=60, backup_api="https://backup.example")
    # Pretend a token is already cached
    provider._token = "cachedtoken"
    provider._token_expires_at = float("inf")
    return provider


def test_search_web(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", return_value=make_response(WEB_SEARCH_PAYLOAD))

    songs = provider.search("晴天")

    assert [(s.id, s.title) for s in songs] == [("228908", "晴天 (Live)"), ("440615", "稻香")]
    assert songs[0].cover == "https://img1.kuwo.cn/star/albumcover/300/1.jpg"
    assert songs[1].album is None
    assert all(s.source == "kuwo" for s in songs)

    headers = request.call_args.kwargs["headers"]
    assert headers["csrf"] == "cachedtoken"
    assert headers["Cookie"] == "kw_token=cachedtoken"
    assert request.call_args.kwargs["params"]["key"] == "晴天"


def test_search_falls_back_to_mobile(provider, mocker, make_response):
    mobile = {"content": [{}, {"musicpage": {"abslist": [
        {"MUSICRID": "MUSIC_228908", "SONGNAME": "晴天", "ARTIST": "周杰伦&五月天", "ALBUM": "叶惠美"},
    ]}}]}
    request = mocker.patch.object(provider.session, "request", side_effect=[
        make_response({"code": 403, "msg": "token invalid"}),
        make_response(mobile),
    ])

    songs = provider.search("晴天")

    assert [(s.id, s.artist, s.album) for s in songs] == [("228908", "周杰伦, 五月天", "叶惠美")]
    assert request.call_args.args == ("GET", "http://search.kuwo.cn/r.s")


def test_search_falls_back_to_backup(provider, mocker, make_response):
    backup = {"code": 200, "result": {"songs": [
        {"id": 99, "name": "晴天", "ar": [{"name": "周杰伦"}], "al": {"name": "叶惠美", "picUrl": "http://c.jpg"}},
    ]}}
    mocker.patch.object(provider.session, "request", side_effect=[
        requests.Timeout("slow"),
        make_response(text="<html>blocked</html>"),
        make_response(backup),
    ])

    songs = provider.search("晴天")

    assert [(s.id, s.source, s.cover) for s in songs] == [("99", "kuwo", "http://c.jpg")]


def test_search_skips_malformed_web_list(provider, mocker, make_response):
    mobile = {"content": [{}, {"musicpage": {"abslist": [
        {"MUSICRID": "MUSIC_228908", "SONGNAME": "晴天", "ARTIST": 7},
    ]}}]}
    mocker.patch.object(provider.session, "request", side_effect=[
        make_response({"code": 200, "data": {"list": 7}}),
        make_response(mobile),
    ])

    songs = provider.search("晴天")

    assert [(s.id, s.artist) for s in songs] == [("228908", "")]


def test_refresh_token_reads_cookie(mocker, make_response):
    provider = KuwoProvider(session=requests.Session(), token_ttl=60)

    def issue_cookie(method, url, **kwargs):
        provider.session.cookies.set("kw_token", "FRESHTOKEN", domain="www.kuwo.cn")
        return make_response(text="ok")

    mocker.patch.object(provider.session, "request", side_effect=issue_cookie)

    assert provider.token == "FRESHTOKEN"
    # Cached until the TTL runs out
    assert provider.token == "FRESHTOKEN"
    assert provider.session.request.call_count == 1


def test_refresh_token_falls_back_to_default(mocker):
    provider = KuwoProvider(session=requests.Session(), default_token="DEFAULT")
    mocker.patch.object(provider.session, "request", side_effect=requests.ConnectionError("offline"))

    assert provider.refresh_token() == "DEFAULT"


def test_expired_token_is_refreshed(provider, mocker):
    provider._token_expires_at = 0.0
    refresh = mocker.patch.object(provider, "refresh_token", return_value="NEWTOKEN")

    assert provider.token == "NEWTOKEN"
    refresh.assert_called_once()


def test_get_song_url_web(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", return_value=make_response(
        {"code": 200, "data": {"url": "http://er.sycdn.kuwo.cn/a.mp3"}}
    ))

    assert provider.get_song_url("MUSIC_228908") == "http://er.sycdn.kuwo.cn/a.mp3"
    assert request.call_args.kwargs["params"]["mid"] == "228908"


def test_get_song_url_antiserver(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", side_effect=[
        make_response({"code": -1, "msg": "failed"}),
        make_response(text="http://other.kuwo.cn/b.mp3\n"),
    ])

    assert provider.get_song_url("228908") == "http://other.kuwo.cn/b.mp3"
    assert request.call_args.args == ("GET", kuwo.ANTISERVER_URL)
    assert request.call_args.kwargs["params"]["rid"] == "MUSIC_228908"


def test_get_song_url_backup(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", side_effect=[
        make_response({"code": 200, "data": {}}),
        make_response(text="res not found"),
        make_response({"code": 200, "data": [{"url": "https://backup.example/c.mp3"}]}),
    ])

    assert provider.get_song_url("228908") == "https://backup.example/c.mp3"
    assert request.call_args.kwargs["params"] == {"id": "228908", "source": "kuwo"}


def test_get_song_url_exhausted(provider, mocker, make_response):
    mocker.patch.object(provider.session, "request", return_value=make_response(status_code=403))
    with pytest.raises(EndpointsExhaustedError) as exc_info:
        provider.get_song_url("228908")
    assert exc_info.value.all_failed
