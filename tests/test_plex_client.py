from __future__ import annotations

import httpx
import pytest

from plex_to_letterboxd.errors import DecodeError, HttpStatusError, TransportError
from plex_to_letterboxd.plex_client import HISTORY_PATH, PlexClient

from conftest import BASE_URL, TOKEN, FakePlex, make_metadata, make_record


def test_library_sections_request_and_decode(fake_plex: FakePlex) -> None:
    with fake_plex.client() as client:
        sections = client.get_library_sections()
    assert [s.title for s in sections] == ["Movies", "TV Shows"]
    assert sections[0].location_id == "7"

    (req,) = fake_plex.requests
    assert str(req.url) == f"{BASE_URL}/library/sections"
    assert req.headers["X-Plex-Token"] == TOKEN
    assert req.headers["Accept"] == "application/json"
    assert "X-Plex-Container-Start" not in req.headers


def test_history_page_splits_cursor_headers_from_filter_params() -> None:
    fake = FakePlex(history=[make_record(i) for i in range(5)])
    client = fake.client()
    page = client.get_history_page(2, 2, "7")
    assert [r.title for r in page.metadata] == ["Movie 2", "Movie 3"]

    (req,) = fake.requests_to(HISTORY_PATH)
    assert req.headers["X-Plex-Container-Start"] == "2"
    assert req.headers["X-Plex-Container-Size"] == "2"
    assert req.headers["X-Plex-Token"] == TOKEN
    params = dict(req.url.params)
    assert params == {"sort": "viewedAt:desc", "librarySectionID": "7", "accountID": "1"}


def test_history_page_rejects_bad_cursor(fake_plex: FakePlex) -> None:
    client = fake_plex.client()
    with pytest.raises(ValueError):
        client.get_history_page(-1, 100, "7")
    with pytest.raises(ValueError):
        client.get_history_page(0, 0, "7")
    assert fake_plex.requests == []


def test_media_item_metadata_path() -> None:
    fake = FakePlex(metadata={"1234": make_metadata("imdb://tt0111161")})
    item = fake.client().get_media_item_metadata("1234")
    assert item.imdb_id == "tt0111161"
    assert fake.requests[0].url.path == "/library/metadata/1234"


def test_non_2xx_is_http_status_error(fake_plex: FakePlex) -> None:
    with pytest.raises(HttpStatusError) as ei:
        fake_plex.client().get_media_item_metadata("404404")
    assert ei.value.status == 404
    assert ei.value.endpoint == "/library/metadata/404404"


def test_unauthorized_history_is_http_status_error() -> None:
    fake = FakePlex(history=[make_record(0)])
    fake.history_status[0] = 401
    with pytest.raises(HttpStatusError) as ei:
        fake.client().get_history_page(0, 100, "7")
    assert ei.value.status == 401
    assert ei.value.endpoint == HISTORY_PATH


def test_connection_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = PlexClient(BASE_URL, TOKEN, transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError) as ei:
        client.get_library_sections()
    assert ei.value.endpoint == "/library/sections"
    assert isinstance(ei.value.__cause__, httpx.ConnectError)


def test_html_body_is_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Plex is starting</html>")

    client = PlexClient(BASE_URL, TOKEN, transport=httpx.MockTransport(handler))
    with pytest.raises(DecodeError):
        client.get_library_sections()


def test_trailing_slash_and_empty_token() -> None:
    assert PlexClient(BASE_URL + "/", TOKEN).base_url == BASE_URL
    with pytest.raises(ValueError):
        PlexClient(BASE_URL, "")
