from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

from plex_to_letterboxd.history import DEFAULT_PAGE_SIZE


DEFAULT_PLEX_URL = "http://localhost:32400"
DEFAULT_LIBRARY = "Movies"
DEFAULT_OUTPUT_CSV = "plex_watch_history.csv"

N = TypeVar("N", int, float)


def _number(env: Mapping[str, str], name: str, default: N, cast: Callable[[str], N]) -> N:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise RuntimeError(f"Invalid value for {name}: {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    plex_url: str = DEFAULT_PLEX_URL
    plex_token: str = ""
    library: str = DEFAULT_LIBRARY
    output_csv: str = DEFAULT_OUTPUT_CSV
    timeout: float = 30.0
    page_size: int = DEFAULT_PAGE_SIZE
    refresh_minutes: int = 30

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        page_size = _number(env, "PAGE_SIZE", DEFAULT_PAGE_SIZE, int)
        if page_size <= 0:
            raise RuntimeError(f"Invalid value for PAGE_SIZE: {page_size}")
        return cls(
            plex_url=(env.get("PLEX_URL", "").strip() or DEFAULT_PLEX_URL).rstrip("/"),
            plex_token=env.get("PLEX_TOKEN", "").strip(),
            library=env.get("PLEX_LIBRARY", "").strip() or DEFAULT_LIBRARY,
            output_csv=env.get("OUTPUT_CSV", "").strip() or DEFAULT_OUTPUT_CSV,
            timeout=_number(env, "PLEX_TIMEOUT", 30.0, float),
            page_size=page_size,
            refresh_minutes=_number(env, "REFRESH_MINUTES", 30, int),
        )

    def require_token(self) -> None:
        if not self.plex_token:
            raise RuntimeError("Missing required env vars: PLEX_TOKEN")
