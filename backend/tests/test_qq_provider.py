import json

import pytest
import requests

from webmusic.core.config import settings
from webmusic.core.exceptions import EndpointsExhaustedError, ProviderRequestError
from webmusic.services.providers.qq import QQMusicProvider


SEARCH_PAYLOAD = {
    "req_0": {
        "code": 0,
        "data": {"body": {"song": {"list": [
            {
                "mid": "003OUlho2HcRHC",
                "title": "晴天",
                "singer": [{"name": "周杰伦"}],
                "album": {"name": "叶惠美", "mid": "000MkMni19ClKG"},
            },
            {
                "mid": "0039MnYb0qxYhV",
                "title": "Duet",
                "singer": [{"name": "A"}, {"name": "B"}, {"title": "no name"}],
                "album": {"name": "", "mid": ""},
            },
            {"mid": "", "title": "missing mid"},
            "not a song",
        ]}}},
    }
}


@pytest.fixture
def provider():
    return QQMusicProvider(session=requests.Session(), retries=3, retry_wait=0)


def test_search_parses_songs(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", return_value=make_response(SEARCH_PAYLOAD))

    songs = provider.search("晴天")

    assert [song.id for song in songs] == ["003OUlho2HcRHC", "0039MnYb0qxYhV"]
    first, second = songs
    assert first.title == "晴天"
    assert first.artist == "周杰伦"
    assert first.album == "叶惠美"
    assert first.cover == "https://y.gtimg.cn/music/photo_new/T002R300x300M000000MkMni19ClKG.jpg"
    assert first.source == "qq"
    assert second.artist == "A, B"
    assert second.album is None
    assert second.cover is None

    method, url = request.call_args.args
    assert method == "POST"
    assert url == "https://u.y.qq.com/cgi-bin/musicu.fcg"
    body = request.call_args.kwargs["json"]
    assert body["req_0"]["param"]["query"] == "晴天"
    assert body["req_0"]["param"]["search_type"] == 0


def test_search_error_code_returns_empty(provider, mocker, make_response):
    mocker.patch.object(provider.session, "request", return_value=make_response({"req_0": {"code": 500}}))
    assert provider.search("x") == []


def test_search_retries_then_succeeds(provider, mocker, make_response):
    request = mocker.patch.object(provider.session, "request", side_effect=[
        requests.ConnectionError("boom"),
        make_response(text="not json"),
        make_response(SEARCH_PAYLOAD),
    ])

    songs = provider.search("晴天")

    assert len(songs) == 2
    assert request.call_count == 3


def test_search_gives_up_after_retries(provider, mocker):
    request = mocker.patch.object(provider.session, "request", side_effect=requests.Timeout("slow"))

    with pytest.raises(ProviderRequestError):
        provider.search("晴天")
    assert request.call_count == 3


def test_search_waits_longer_between_retries(mocker):
    provider = QQMusicProvider(session=requests.Session(), retries=3, retry_wait=2)
    mocker.patch.object(provider.session, "request", side_effect=requests.ConnectionError("offline"))
    sleep = mocker.patch("time.sleep")

    with pytest.raises(ProviderRequestError):
        provider.search("晴天")
    assert [c.args[0] for c in sleep.call_args_list] == [2, 4]


def test_retry_settings_default_to_config():
    provider = QQMusicProvider(session=requests.Session())
    assert provider.retries == settings.QQ_SEARCH_RETRIES
    assert provider.retry_wait == settings.QQ_RETRY_WAIT


def vkey_payload(purl, sip="http://ws.stream.qqmusic.qq.com/"):
    return {"req_0": {"code": 0, "data": {"sip": [sip], "midurlinfo": [{"purl": purl}]}}}


def test_get_song_url_from_vkey(provider, mocker, make_response):
    body = b"\x1b[0m" + json.dumps(vkey_payload("C400abc.m4a?vkey=1")).encode()
    request = mocker.patch.object(provider.session, "request", return_value=make_response(content=body))

    url = provider.get_song_url("003OUlho2HcRHC")

    assert url == "http://ws.stream.qqmusic.qq.com/C400abc.m4a?vkey=1"
    assert request.call_count == 1
    param = request.call_args.kwargs["json"]["req_0"]["param"]
    assert param["songmid"] == ["003OUlho2HcRHC"]
    assert param["h5platform"] == "Android"


def test_get_song_url_falls_back_to_musics(provider, mocker, make_response):
    padded = b"\x00\x1f" + json.dumps(vkey_payload("C400def.m4a")).encode() + b"\x00"
    request = mocker.patch.object(provider.session, "request", side_effect=[
        make_response(vkey_payload("")),
        make_response(content=padded),
    ])

    assert provider.get_song_url("mid") == "http://ws.stream.qqmusic.qq.com/C400def.m4a"
    method, url = request.call_args.args
    assert (method, url) == ("GET", "https://u.y.qq.com/cgi-bin/musics.fcg")
    data = json.loads(request.call_args.kwargs["params"]["data"])
    assert data["req_0"]["param"]["songmid"] == ["mid"]


def test_get_song_url_falls_back_to_third_party(provider, mocker, make_response):
    mocker.patch.object(provider.session, "request", side_effect=[
        requests.ConnectionError("down"),
        make_response(vkey_payload("", sip="")),
        make_response(text='jQuery({"url": "https://example.com/song.mp3"})'),
    ])

    assert provider.get_song_url("mid") == "https://example.com/song.mp3"


def test_get_song_url_exhausted(provider, mocker, make_response):
    mocker.patch.object(provider.session, "request", side_effect=[
        make_response({"req_0": {"code": 104003}}),
        make_response(status_code=500),
        make_response(text='jQuery({"url": ""})'),
    ])

    with pytest.raises(EndpointsExhaustedError) as exc_info:
        provider.get_song_url("mid")
    assert len(exc_info.value.errors) == 3
