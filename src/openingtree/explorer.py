"""Lichess opening-explorer client.

ALL network I/O lives in this module.  The lookup is a plain callable
``fen -> BookResult | None`` as far as the rest of the package is concerned,
so it can be swapped for another backend (or a stub in tests).

Database note
-------------
We query the Lichess *lichess* endpoint, which indexes rated games played on
Lichess, filtered by the configured rating bands and time controls.  Nothing
is cached: results live only on the in-memory graph.
"""

from __future__ import annotations

import time
from typing import Any, Sequence

import requests

from .config import DEFAULT_BOOK_RATINGS, DEFAULT_BOOK_SPEEDS, DEFAULT_EXPLORER_URL
from .models import BookMove, BookResult
from .position import DEFAULT_VARIANT, board_class

_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "openingtree/0.1.0",
}

# python-chess uci_variant -> Lichess explorer variant key
_LICHESS_VARIANTS = {
    "chess": "standard",
    "kingofthehill": "kingOfTheHill",
    "3check": "threeCheck",
    "racingkings": "racingKings",
}


class LichessBook:
    """Fetches per-move book statistics for a position.

    HTTP 429 responses are retried with exponential back-off.  Any other
    failure yields ``None``.
    """

    def __init__(
        self,
        url: str = DEFAULT_EXPLORER_URL,
        variant: str = DEFAULT_VARIANT,
        ratings: Sequence[int] = tuple(DEFAULT_BOOK_RATINGS),
        speeds: Sequence[str] = tuple(DEFAULT_BOOK_SPEEDS),
    ) -> None:
        self._url = url
        uci_variant = board_class(variant).uci_variant
        self._variant = _LICHESS_VARIANTS.get(uci_variant, uci_variant)
        self._ratings = ",".join(str(r) for r in ratings)
        self._speeds = ",".join(speeds)
        self._session = requests.Session()
        self._session.headers.update(_HEADERS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_data(self, fen: str) -> BookResult | None:
        """Return book statistics for *fen*, or None if the lookup failed."""
        raw = self._fetch(fen)
        if raw is None:
            return None
        return self._parse(raw)

    __call__ = get_data

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, fen: str, max_retries: int = 5) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "variant": self._variant,
            "fen": fen,
            "topGames": 0,
            "recentGames": 0,
        }
        if self._ratings:
            params["ratings"] = self._ratings
        if self._speeds:
            params["speeds"] = self._speeds

        for attempt in range(max_retries):
            try:
                resp = self._session.get(self._url, params=params, timeout=10)
                if resp.status_code == 200:
                    return resp.json()
                if resp.status_code == 429:
                    time.sleep(2 ** attempt)
                    continue
                return None
            except requests.RequestException:
                if attempt < max_retries - 1:
                    time.sleep(2 ** attempt)
        return None

    @staticmethod
    def _parse(data: dict[str, Any]) -> BookResult:
        moves: list[BookMove] = []
        for m in data.get("moves", []):
            moves.append(
                BookMove(
                    san=m.get("san", ""),
                    uci=m.get("uci", ""),
                    white=int(m.get("white", 0)),
                    draws=int(m.get("draws", 0)),
                    black=int(m.get("black", 0)),
                    average_rating=int(m.get("averageRating", 0) or 0),
                )
            )
        return BookResult(
            white=int(data.get("white", 0)),
            draws=int(data.get("draws", 0)),
            black=int(data.get("black", 0)),
            moves=moves,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "LichessBook":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
