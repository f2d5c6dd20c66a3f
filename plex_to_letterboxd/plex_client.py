from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type, TypeVar

import httpx

from plex_to_letterboxd.errors import HttpStatusError, TransportError
from plex_to_letterboxd.history import DEFAULT_PAGE_SIZE, WatchHistory
from plex_to_letterboxd.models import (
    HistoryPage,
    LibrarySection,
    LibrarySections,
    MediaItem,
    MediaItemMetadata,
    decode_envelope,
)


logger = logging.getLogger("plex")

T = TypeVar("T")

SECTIONS_PATH = "/library/sections"
METADATA_PATH = "/library/metadata/{rating_key}"
HISTORY_PATH = "/status/sessions/history/all"

# Newest first keeps offsets stable while new plays are being recorded.
HISTORY_SORT = "viewedAt:desc"
# The server owner's account.
ACCOUNT_ID = "1"


class PlexClient:
    """Minimal Plex Media Server API client (read-only, blocking)."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not token:
            raise ValueError("Plex token must not be empty")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "PlexClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get(
        self,
        path: str,
        payload_type: Type[T],
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> T:
        url = f"{self.base_url}{path}"
        req_headers = {"X-Plex-Token": self.token, "Accept": "application/json"}
        if headers:
            req_headers.update(headers)
        try:
            r = self._http.get(url, headers=req_headers, params=params)
        except httpx.RequestError as exc:
            raise TransportError(f"Request to {path} failed: {exc}", path) from exc
        if not r.is_success:
            raise HttpStatusError(path, r.status_code)
        return decode_envelope(r.content, payload_type, path)

    def get_library_sections(self) -> List[LibrarySection]:
        """Every library section (directory) known to the server."""
        return self._get(SECTIONS_PATH, LibrarySections).directories

    def get_media_item_metadata(self, rating_key: str) -> MediaItemMetadata:
        path = METADATA_PATH.format(rating_key=rating_key)
        return self._get(path, MediaItem).item

    def get_history_page(self, offset: int, page_size: int, section_id: str) -> HistoryPage:
        """Fetch one page of watch history for a library section.

        The cursor (offset, page size) goes in the X-Plex-Container-* headers;
        the filters go in the query string.
        """
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        logger.debug("Plex: history page offset=%d size=%d section=%s", offset, page_size, section_id)
        return self._get(
            HISTORY_PATH,
            HistoryPage,
            params={"sort": HISTORY_SORT, "librarySectionID": section_id, "accountID": ACCOUNT_ID},
            headers={"X-Plex-Container-Start": str(offset), "X-Plex-Container-Size": str(page_size)},
        )

    def watch_history(self, section_id: str, page_size: int = DEFAULT_PAGE_SIZE) -> WatchHistory:
        """Lazily iterate over the whole watch history of a section, newest first."""
        return WatchHistory(self, section_id, page_size=page_size)
