from __future__ import annotations

from dataclasses import dataclass, field
from typing import List
import time

from plex_to_letterboxd.models import LibrarySection


@dataclass
class Cache:
    """
    Minimal in-memory cache for the Plex library sections.
    """
    last_refresh_ts: float = 0.0
    sections: List[LibrarySection] = field(default_factory=list)

    def is_stale(self, refresh_minutes: int) -> bool:
        if self.last_refresh_ts <= 0:
            return True
        return (time.time() - self.last_refresh_ts) > (refresh_minutes * 60)

    def update(self, sections: List[LibrarySection]) -> None:
        self.sections = list(sections)
        self.last_refresh_ts = time.time()
