from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from plex_to_letterboxd.plex_client import HISTORY_PATH, PlexClient  # noqa: E402

BASE_URL = "http://plex.test:32400"
TOKEN = "secret-token"
# 2023-11-14T22:13:20Z
BASE_TS = 1700000000


def make_record(i: int, **overrides: Any) -> Dict[str, Any]:
    rec: Dict[str, Any] = {
        "title": f"Movie {i}",
        "ratingKey": str(1000 + i),
        "librarySectionID": "1",
        "viewedAt": BASE_TS - i * 86400,
    }
    rec.update(overrides)
    return rec


def make_metadata(*guids: str) -> Dict[str, Any]:
    item: Dict[str, Any] = {"ratingKey": "1", "title": "Some Movie"}
    if guids:
        item["Guid"] = [{"id": g} for g in guids]
    return {"MediaContainer": {"size": 1, "Metadata": [item]}}


class FakePlex:
    """In-process stand-in for a Plex server, served through httpx.MockTransport."""

    def __init__(
        self,
        history: Optional[List[Dict[str, Any]]] = None,
        sections: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.history = history or []
        self.sections = sections or []
        self.metadata = metadata or {}
        self.history_status: Dict[int, int] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == HISTORY_PATH:
            start = int(request.headers["X-Plex-Container-Start"])
            size = int(request.headers["X-Plex-Container-Size"])
            if start in self.history_status:
                return httpx.Response(self.history_status[start])
            page = self.history[start:start + size]
            container: Dict[str, Any] = {"size": len(page), "totalSize": len(self.history)}
            if page:
                container["Metadata"] = page
            return httpx.Response(200, json={"MediaContainer": container})
        if path == "/library/sections":
            return httpx.Response(200, json={"MediaContainer": {"size": len(self.sections), "Directory": self.sections}})
        if path.startswith("/library/metadata/"):
            key = path.rsplit("/", 1)[-1]
            if key not in self.metadata:
                return httpx.Response(404)
            return httpx.Response(200, json=self.metadata[key])
        return httpx.Response(404)

    def client(self, **kwargs: Any) -> PlexClient:
        return PlexClient(BASE_URL, TOKEN, transport=httpx.MockTransport(self.handler), **kwargs)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def history_offsets(self) -> List[int]:
        return [int(r.headers["X-Plex-Container-Start"]) for r in self.requests_to(HISTORY_PATH)]


MOVIES_SECTION = {"title": "Movies", "key": "1", "type": "movie", "Location": [{"id": 7, "path": "/data/movies"}]}
SHOWS_SECTION = {"title": "TV Shows", "key": "2", "type": "show", "Location": [{"id": 9, "path": "/data/tv"}]}


@pytest.fixture()
def fake_plex() -> FakePlex:
    return FakePlex(sections=[MOVIES_SECTION, SHOWS_SECTION])
