import json
import os

import pytest
import requests

# Keep the app from touching the network on startup
os.environ["WARM_UP_SESSIONS"] = "false"

from fastapi.testclient import TestClient
from webmusic.main import app
from webmusic.services.aggregator import get_aggregator


def build_response(payload=None, text=None, content=None, status_code=200, url="http://test.local/"):
    """Build a real requests.Response carrying the given body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.encoding = "utf-8"
    if payload is not None:
        content = json.dumps(payload).encode("utf-8")
    elif text is not None:
        content = text.encode("utf-8")
    response._content = content or b""
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_aggregator(mocker):
    """A MusicAggregator stand-in wired into the app's dependency."""
    aggregator = mocker.MagicMock()
    aggregator.available_sources = ["qq", "netease", "kuwo"]
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    yield aggregator
    app.dependency_overrides.pop(get_aggregator, None)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
