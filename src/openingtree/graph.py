"""Position graph with lazy per-position statistics.

Every distinct position key reached by a processed game owns a
:class:`GraphNode`.  A node counts the moves played from it and keeps a
*stats slot* describing the games that reached it.

Lazy aggregation
----------------
Most positions deep in an opening are reached by a single game, so the slot
starts out holding just that game's index (:class:`IndexSlot`).  The full
:class:`AggregateDetails` record is only built when a second game arrives;
from then on each new game is folded into it.  The promotion is one-way::

    EmptySlot --1st game--> IndexSlot --2nd game--> AggregateSlot

The root position is the exception: it is created directly in aggregate form
because every game passes through it.

All stored fields are counts, sums and indices into the graph's game list;
averages and resolved game records are computed by :meth:`details_for`.
"""

from __future__ import annotations

import dataclasses
import datetime
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import chess

from .errors import IllegalMoveError
from .models import (
    EMPTY_SLOT,
    AggregateDetails,
    AggregateSlot,
    BookNode,
    Details,
    EmptySlot,
    GameRecord,
    IndexSlot,
    MoveCandidate,
    StatsSlot,
    Transition,
)
from .position import DEFAULT_VARIANT, make_board, play_san, position_key, root_fen

RepertoireLookup = Callable[[str], Optional[str]]


# ---------------------------------------------------------------------------
# Frequency tiers
# ---------------------------------------------------------------------------


def level_for(count: int, max_count: int) -> int:
    """Coarse 1-3 tier of *count* relative to the most-played move."""
    if max_count <= 0:
        return 3
    ratio = count / max_count
    if ratio > 0.8:
        return 3
    if ratio > 0.3:
        return 2
    return 1


# ---------------------------------------------------------------------------
# Merge algorithm
# ---------------------------------------------------------------------------


def fold_record(
    slot: StatsSlot,
    record: GameRecord,
    games: Sequence[GameRecord],
    player_color: chess.Color,
) -> StatsSlot:
    """Fold *record* into *slot* and return the new slot.

    An empty slot only remembers the record's index.  A single-index slot is
    first expanded by folding the indexed game into an empty aggregate.  The
    result of folding into anything but an empty slot is always an
    :class:`AggregateSlot`.
    """
    if isinstance(slot, EmptySlot):
        return IndexSlot(record.index)
    if isinstance(slot, IndexSlot):
        slot = fold_record(
            AggregateSlot(AggregateDetails()), games[slot.index], games, player_color
        )
    return AggregateSlot(_fold(slot.details, record, games, player_color))


def _fold(
    details: AggregateDetails,
    record: GameRecord,
    games: Sequence[GameRecord],
    player_color: chess.Color,
) -> AggregateDetails:
    score = record.score_for(player_color)
    opponent_elo = record.opponent_elo(player_color)

    changes: dict[str, object] = {
        "white_wins": details.white_wins + (record.result == "1-0"),
        "black_wins": details.black_wins + (record.result == "0-1"),
        "draws": details.draws + (record.result not in ("1-0", "0-1")),
    }
    if opponent_elo is not None:
        changes["total_opponent_elo"] = details.total_opponent_elo + opponent_elo
        changes["rated_games"] = details.rated_games + 1

    def elo_key(g: GameRecord, sign: int) -> tuple:
        elo = g.opponent_elo(player_color)
        return (elo is not None, sign * (elo or 0), -g.index)

    if score == 1:
        changes["best_win"] = _pick(details.best_win, record, games, lambda g: elo_key(g, 1))
    elif score == -1:
        changes["worst_loss"] = _pick(details.worst_loss, record, games, lambda g: elo_key(g, -1))
    changes["last_played"] = _pick(details.last_played, record, games, _date_key)
    changes["longest_game"] = _pick(
        details.longest_game, record, games, lambda g: (g.number_of_plys, -g.index)
    )
    changes["shortest_game"] = _pick(
        details.shortest_game, record, games, lambda g: (-g.number_of_plys, -g.index)
    )
    return dataclasses.replace(details, **changes)


def _pick(
    current: int | None,
    record: GameRecord,
    games: Sequence[GameRecord],
    key: Callable[[GameRecord], tuple],
) -> int:
    """Index of whichever game ranks strictly higher under *key*."""
    if current is None or key(record) > key(games[current]):
        return record.index
    return current


def _date_key(g: GameRecord) -> tuple:
    # Undated games rank below every dated one.
    return (g.date is not None, g.date or datetime.date.min, -g.index)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


@dataclass
class GraphNode:
    key: str
    played_move_counts: dict[str, int] = field(default_factory=dict)
    played_move_max: int = 0
    targets: dict[str, str] = field(default_factory=dict)  # SAN -> target key
    game_result_indices: list[int] = field(default_factory=list)
    stats_slot: StatsSlot = EMPTY_SLOT


class OpeningGraph:
    """Per-position statistics for one player's games, all of one colour.

    Games played with the other colour belong in a separate graph.
    """

    def __init__(self, variant: str = DEFAULT_VARIANT, verbose: bool = True) -> None:
        self.variant = variant
        self.verbose = verbose
        self._root_key = position_key(root_fen(variant))
        self.clear()

    def clear(self) -> None:
        self._nodes: dict[str, GraphNode] = {}
        self._games: list[GameRecord] = []
        self._book: dict[str, BookNode] = {}
        self.player_color: chess.Color | None = None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_game(
        self,
        record: GameRecord,
        transitions: Sequence[Transition],
        final_key: str,
        player_color: chess.Color,
    ) -> GameRecord:
        """Append *record* and fold it into every position it touched.

        *transitions* are ``(source, target, san)`` triples; source and
        target may be full FENs or position keys.  Returns the stored record
        carrying its assigned index.

        A game that repeats a position is still one game there: each node
        and each played move is counted at most once per game.
        """
        if self._games and player_color != self.player_color:
            raise ValueError(
                "graph already tracks the other colour; use a separate graph"
            )
        self.player_color = player_color
        record = dataclasses.replace(record, index=len(self._games))
        self._games.append(record)

        folded = {self._root_key}  # the root is folded once, below
        played: set[tuple[str, str]] = set()
        for source, target, san in transitions:
            source_node = self._node(position_key(source), create=True)
            target_node = self._node(position_key(target), create=True)
            source_node.targets[san] = target_node.key

            if (source_node.key, san) not in played:
                played.add((source_node.key, san))
                count = source_node.played_move_counts.get(san, 0) + 1
                source_node.played_move_counts[san] = count
                source_node.played_move_max = max(source_node.played_move_max, count)

            if target_node.key not in folded:
                folded.add(target_node.key)
                target_node.stats_slot = fold_record(
                    target_node.stats_slot, record, self._games, player_color
                )

        self._node(position_key(final_key), create=True).game_result_indices.append(
            record.index
        )

        root = self._node(self._root_key, create=True)
        if isinstance(root.stats_slot, EmptySlot):
            root.stats_slot = AggregateSlot(AggregateDetails())
        root.stats_slot = fold_record(root.stats_slot, record, self._games, player_color)
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def has_moves(self) -> bool:
        return bool(self._games)

    @property
    def games(self) -> tuple[GameRecord, ...]:
        return tuple(self._games)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, fen: str) -> bool:
        return position_key(fen) in self._nodes

    def details_for(self, fen: str, commit: bool = False) -> Details:
        """Statistics for the position; :meth:`Details.empty` when unseen.

        A single-index slot is expanded on the fly.  With ``commit=True``
        the expanded aggregate is stored back on the node.
        """
        node = self._nodes.get(position_key(fen))
        if node is None or isinstance(node.stats_slot, EmptySlot):
            return Details.empty()
        slot = node.stats_slot
        if isinstance(slot, IndexSlot):
            slot = fold_record(
                AggregateSlot(AggregateDetails()),
                self._games[slot.index],
                self._games,
                self._color(),
            )
            if commit:
                node.stats_slot = slot
        return self._resolve(slot.details)

    def moves_for(
        self, fen: str, repertoire: RepertoireLookup | None = None
    ) -> list[MoveCandidate]:
        """Move candidates from the position, in the order first played.

        *repertoire* maps a position key to the recommended move, if any.
        A recommended move nobody has played yet is appended with a zero
        count, provided python-chess accepts it in this position.
        """
        key = position_key(fen)
        recommended = repertoire(key) if repertoire is not None else None
        node = self._nodes.get(key)

        candidates: list[MoveCandidate] = []
        if node is not None:
            for san, count in node.played_move_counts.items():
                if count <= 0:
                    continue
                candidates.append(
                    MoveCandidate(
                        san=san,
                        details=self.details_for(node.targets[san]),
                        count=count,
                        level=level_for(count, node.played_move_max),
                        is_recommended=san == recommended,
                        uci=self._uci_for(fen, san),
                    )
                )

        if recommended and all(c.san != recommended for c in candidates):
            board = make_board(self.variant, fen)
            try:
                played = play_san(board, recommended)
            except IllegalMoveError as exc:
                if self.verbose:
                    print(f"[graph] Warning: recommended move dropped – {exc}",
                          file=sys.stderr, flush=True)
            else:
                candidates.append(
                    MoveCandidate(
                        san=played.san,
                        details=Details.empty(),
                        count=0,
                        level=3,
                        is_recommended=True,
                        uci=played.uci,
                    )
                )
        return candidates

    def game_results_for(self, fen: str) -> list[GameRecord]:
        """Games whose final position is *fen*, in insertion order."""
        node = self._nodes.get(position_key(fen))
        if node is None:
            return []
        return [self._games[i] for i in node.game_result_indices]

    # ------------------------------------------------------------------
    # Opening book
    # ------------------------------------------------------------------

    def merge_book_result(self, fen: str, book: BookNode) -> None:
        """Store the normalized book moves for the position."""
        self._book[position_key(fen)] = book

    def book_for(self, fen: str) -> BookNode | None:
        return self._book.get(position_key(fen))

    def clear_book(self) -> None:
        self._book = {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _node(self, key: str, create: bool = False) -> GraphNode | None:
        node = self._nodes.get(key)
        if node is None and create:
            node = GraphNode(key=key)
            self._nodes[key] = node
        return node

    def _color(self) -> chess.Color:
        return chess.WHITE if self.player_color is None else self.player_color

    def _uci_for(self, fen: str, san: str) -> str | None:
        try:
            return play_san(make_board(self.variant, fen), san).uci
        except IllegalMoveError:
            return None

    def _resolve(self, details: AggregateDetails) -> Details:
        games = self._games
        color = self._color()

        def game(index: int | None) -> GameRecord | None:
            return games[index] if index is not None else None

        best_win = game(details.best_win)
        worst_loss = game(details.worst_loss)
        count = details.white_wins + details.black_wins + details.draws
        return Details(
            has_data=count > 0,
            white_wins=details.white_wins,
            black_wins=details.black_wins,
            draws=details.draws,
            total_opponent_elo=details.total_opponent_elo,
            count=count,
            average_opponent_elo=(
                round(details.total_opponent_elo / details.rated_games)
                if details.rated_games else None
            ),
            player_color=color,
            best_win=best_win,
            best_win_elo=best_win.opponent_elo(color) if best_win else None,
            worst_loss=worst_loss,
            worst_loss_elo=worst_loss.opponent_elo(color) if worst_loss else None,
            last_played=game(details.last_played),
            longest_game=game(details.longest_game),
            shortest_game=game(details.shortest_game),
        )
