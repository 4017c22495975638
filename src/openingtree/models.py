"""Shared data-model types used across all modules."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Union

import chess


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GameRecord:
    """One processed game.

    Records are append-only: the graph assigns ``index`` on insertion and
    aggregates refer to the record by that index from then on.
    """

    result: str                   # "1-0", "0-1" or a draw marker
    white_elo: int | None         # None when the header is unknown ("?")
    black_elo: int | None
    date: datetime.date | None
    number_of_plys: int
    white: str = "?"
    black: str = "?"
    site: str = ""
    event: str = ""
    time_control: str = ""
    index: int = -1

    def opponent_elo(self, player_color: chess.Color) -> int | None:
        """Elo of the side *not* played by *player_color*."""
        return self.black_elo if player_color == chess.WHITE else self.white_elo

    def score_for(self, player_color: chess.Color) -> int:
        """+1 win, -1 loss, 0 draw from *player_color*'s perspective."""
        if self.result == "1-0":
            return 1 if player_color == chess.WHITE else -1
        if self.result == "0-1":
            return 1 if player_color == chess.BLACK else -1
        return 0


Transition = tuple[str, str, str]  # (source key, target key, SAN)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregateDetails:
    """Stored per-position aggregate: counts, sums and game indices only."""

    white_wins: int = 0
    black_wins: int = 0
    draws: int = 0
    total_opponent_elo: int = 0
    rated_games: int = 0          # games whose opponent elo is known
    best_win: int | None = None
    worst_loss: int | None = None
    last_played: int | None = None
    longest_game: int | None = None
    shortest_game: int | None = None


@dataclass(frozen=True)
class EmptySlot:
    """No game has reached the position yet."""


@dataclass(frozen=True)
class IndexSlot:
    """Exactly one game reached the position; aggregation is deferred."""

    index: int


@dataclass(frozen=True)
class AggregateSlot:
    details: AggregateDetails


StatsSlot = Union[EmptySlot, IndexSlot, AggregateSlot]

EMPTY_SLOT = EmptySlot()


@dataclass(frozen=True)
class Details:
    """Read-only statistics view for one position.

    Everything below ``count`` is derived at query time from the stored
    :class:`AggregateDetails`.
    """

    has_data: bool = False
    white_wins: int = 0
    black_wins: int = 0
    draws: int = 0
    total_opponent_elo: int = 0
    count: int = 0
    average_opponent_elo: int | None = None
    average_elo: int | None = None   # book moves: average rating of all players
    player_color: chess.Color = chess.WHITE
    best_win: GameRecord | None = None
    best_win_elo: int | None = None
    worst_loss: GameRecord | None = None
    worst_loss_elo: int | None = None
    last_played: GameRecord | None = None
    longest_game: GameRecord | None = None
    shortest_game: GameRecord | None = None

    @classmethod
    def empty(cls) -> "Details":
        return _EMPTY_DETAILS

    @property
    def player_wins(self) -> int:
        return self.white_wins if self.player_color == chess.WHITE else self.black_wins

    @property
    def player_losses(self) -> int:
        return self.black_wins if self.player_color == chess.WHITE else self.white_wins

    @property
    def score_percentage(self) -> float | None:
        """Player score in percent (draws count half); None without games."""
        if not self.count:
            return None
        return (self.player_wins + self.draws / 2) * 100 / self.count

    @property
    def results(self) -> str:
        return f"+{self.player_wins}-{self.player_losses}={self.draws}"


_EMPTY_DETAILS = Details()


# ---------------------------------------------------------------------------
# Move candidates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MoveCandidate:
    """A move from a position, annotated for display."""

    san: str
    details: Details
    count: int
    level: int                  # frequency tier 1..3
    is_recommended: bool = False
    uci: str | None = None      # None when python-chess could not replay it


# ---------------------------------------------------------------------------
# Opening book
# ---------------------------------------------------------------------------


@dataclass
class BookMove:
    """Per-move statistics returned by the opening-book lookup."""

    san: str
    uci: str
    white: int
    draws: int
    black: int
    average_rating: int = 0

    @property
    def total(self) -> int:
        return self.white + self.draws + self.black


@dataclass
class BookResult:
    """Full opening-book response for a position."""

    white: int
    draws: int
    black: int
    moves: list[BookMove] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.white + self.draws + self.black


FETCH_PENDING = "pending"
FETCH_SUCCESS = "success"
FETCH_FAILED = "failed"


@dataclass(frozen=True)
class BookNode:
    """Normalized book moves stored on the graph for one position."""

    fetch: str
    moves: tuple[MoveCandidate, ...] = ()


# ---------------------------------------------------------------------------
# Repertoire comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Deviation:
    at_move: int                     # 1-based half-move index
    played_move: str
    repertoire_line: tuple[str, ...]  # repertoire continuation from that point


@dataclass
class Comparison:
    matches: list[str] = field(default_factory=list)
    deviation: Deviation | None = None

    @property
    def in_repertoire(self) -> bool:
        return self.deviation is None
