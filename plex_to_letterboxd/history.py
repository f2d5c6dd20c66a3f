from __future__ import annotations

import enum
import logging
from typing import List, Protocol

from plex_to_letterboxd.models import HistoryPage, HistoryRecord


logger = logging.getLogger("plex")

DEFAULT_PAGE_SIZE = 100


class State(enum.Enum):
    NOT_STARTED = "not_started"
    HAS_BUFFERED_ITEMS = "has_buffered_items"
    AWAITING_PAGE = "awaiting_page"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


TERMINAL_STATES = (State.EXHAUSTED, State.FAILED)


class HistoryPageFetcher(Protocol):
    def get_history_page(self, offset: int, page_size: int, section_id: str) -> HistoryPage:
        ...


class WatchHistory:
    """Pull-based iterator over a section's watch history, one page at a time.

    Pages are requested strictly in order. The offset only ever moves by the
    number of records the server actually returned. A page with fewer records
    than requested is the last one; an empty page also ends the sequence.

    If a page fetch fails, that `next()` call raises the error and the iterator
    is finished: later calls raise StopIteration without touching the server.
    Not rewindable and not thread-safe; build a new one to start over.
    """

    def __init__(self, fetcher: HistoryPageFetcher, section_id: str, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._fetcher = fetcher
        self.section_id = section_id
        self.page_size = page_size
        self.offset = 0
        self.pages_fetched = 0
        self.state = State.NOT_STARTED
        self._buffer: List[HistoryRecord] = []
        self._cursor = 0
        self._last_page = False

    def __iter__(self) -> "WatchHistory":
        return self

    def __next__(self) -> HistoryRecord:
        if self.state in TERMINAL_STATES:
            raise StopIteration
        if self._cursor >= len(self._buffer):
            if self._last_page:
                self._finish()
                raise StopIteration
            self._fetch_next_page()
            if self.state is State.EXHAUSTED:
                raise StopIteration

        record = self._buffer[self._cursor]
        self._cursor += 1
        if self._cursor < len(self._buffer):
            self.state = State.HAS_BUFFERED_ITEMS
        elif self._last_page:
            self._finish()
        else:
            self.state = State.AWAITING_PAGE
        return record

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _fetch_next_page(self) -> None:
        self.state = State.AWAITING_PAGE
        try:
            page = self._fetcher.get_history_page(self.offset, self.page_size, self.section_id)
        except Exception:
            self.state = State.FAILED
            self._buffer = []
            self._cursor = 0
            logger.debug("Plex: history page at offset %d failed; sequence stopped", self.offset)
            raise
        self.pages_fetched += 1

        received = len(page.metadata)
        logger.debug("Plex: history page %d at offset %d returned %d item(s)", self.pages_fetched, self.offset, received)
        if received == 0:
            self._finish()
            return

        self._buffer = list(page.metadata)
        self._cursor = 0
        if received < self.page_size:
            self._last_page = True
        self.offset += received
        self.state = State.HAS_BUFFERED_ITEMS

    def _finish(self) -> None:
        self.state = State.EXHAUSTED
        self._buffer = []
        self._cursor = 0
