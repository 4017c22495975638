"""Opening-book results: normalization and background fetching.

Book statistics come from an external lookup (see
:mod:`openingtree.explorer`).  :func:`normalize_book_result` reshapes a raw
:class:`~openingtree.models.BookResult` into the same
:class:`~openingtree.models.MoveCandidate` shape the graph produces for the
player's own moves.  When a repertoire colour is set, only moves for that
side are kept: the book is there to suggest the player's moves, not the
opponent's.

:class:`BookFetcher` runs lookups on a thread pool.  At most one lookup per
position key is outstanding; requesting a key again cancels the previous
lookup.  Results are applied on the owner's thread by :meth:`BookFetcher.drain`,
and a lookup that was cancelled is never applied, even if it finished.
"""

from __future__ import annotations

import sys
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

import chess

from .graph import RepertoireLookup, level_for
from .models import (
    FETCH_FAILED,
    FETCH_PENDING,
    FETCH_SUCCESS,
    BookNode,
    BookResult,
    Details,
    MoveCandidate,
)
from .position import position_key, side_to_move

BookLookup = Callable[[str], Optional[BookResult]]
BookApply = Callable[[str, Optional[BookResult]], None]


def normalize_book_result(
    fen: str,
    result: BookResult | None,
    repertoire_color: chess.Color | None = None,
    repertoire: RepertoireLookup | None = None,
) -> BookNode:
    """Filter and reshape *result* for the position *fen*.

    ``None`` (a failed lookup) becomes a node with the ``failed`` status.
    """
    if result is None:
        return BookNode(fetch=FETCH_FAILED)

    mover = side_to_move(fen)
    moves = [
        m for m in result.moves
        if repertoire_color is None or mover == repertoire_color
    ]
    max_count = max((m.total for m in moves), default=0)
    recommended = repertoire(position_key(fen)) if repertoire is not None else None

    return BookNode(
        fetch=FETCH_SUCCESS,
        moves=tuple(
            MoveCandidate(
                san=m.san,
                details=Details(
                    has_data=True,
                    white_wins=m.white,
                    black_wins=m.black,
                    draws=m.draws,
                    count=m.total,
                    average_elo=m.average_rating or None,
                ),
                count=m.total,
                level=level_for(m.total, max_count),
                is_recommended=m.san == recommended,
                uci=m.uci or None,
            )
            for m in moves
        ),
    )


# ---------------------------------------------------------------------------
# Background fetching
# ---------------------------------------------------------------------------


@dataclass
class _Fetch:
    fen: str
    future: Future
    cancelled: threading.Event


class BookFetcher:
    """Background book lookups, applied on the caller's thread.

    Parameters
    ----------
    lookup:
        ``fen -> BookResult | None``; runs on a worker thread.
    apply:
        ``(fen, result) -> None``; called from :meth:`drain` only, so it may
        mutate single-owner structures such as the graph.
    max_workers:
        Worker threads for concurrent lookups of different positions.
    """

    def __init__(
        self,
        lookup: BookLookup,
        apply: BookApply,
        max_workers: int = 2,
        verbose: bool = True,
    ) -> None:
        self._lookup = lookup
        self._apply = apply
        self._verbose = verbose
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._pending: dict[str, _Fetch] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request(self, fen: str) -> None:
        """Start a lookup for *fen*, cancelling one already in flight."""
        key = position_key(fen)
        self.cancel(key)
        cancelled = threading.Event()
        future = self._executor.submit(self._run, fen, cancelled)
        self._pending[key] = _Fetch(fen=fen, future=future, cancelled=cancelled)

    def cancel(self, fen: str) -> bool:
        """Cancel the outstanding lookup for *fen*; True if there was one."""
        fetch = self._pending.pop(position_key(fen), None)
        if fetch is None:
            return False
        fetch.cancelled.set()
        fetch.future.cancel()
        return True

    def status(self, fen: str) -> str | None:
        """``'pending'`` while a lookup for *fen* is outstanding, else None."""
        return FETCH_PENDING if position_key(fen) in self._pending else None

    def drain(self, wait: bool = False) -> int:
        """Apply finished lookups; with *wait*, block for all outstanding ones.

        Returns the number of results applied.
        """
        applied = 0
        for key, fetch in list(self._pending.items()):
            if not wait and not fetch.future.done():
                continue
            try:
                result = fetch.future.result()
            except CancelledError:
                continue
            except Exception as exc:  # noqa: BLE001
                if self._verbose:
                    print(f"[book] Warning: lookup failed – {exc}",
                          file=sys.stderr, flush=True)
                result = None
            if fetch.cancelled.is_set() or self._pending.get(key) is not fetch:
                continue
            del self._pending[key]
            self._apply(fetch.fen, result)
            applied += 1
        return applied

    def close(self) -> None:
        """Cancel outstanding lookups, stop the pool and close the lookup."""
        for key in list(self._pending):
            self.cancel(key)
        self._executor.shutdown(wait=False, cancel_futures=True)
        close_lookup = getattr(self._lookup, "close", None)
        if callable(close_lookup):
            close_lookup()

    def __enter__(self) -> "BookFetcher":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, fen: str, cancelled: threading.Event) -> BookResult | None:
        if cancelled.is_set():
            return None
        return self._lookup(fen)
