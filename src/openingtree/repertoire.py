"""Opening repertoire: a move trie plus a position index.

A repertoire is the set of lines a player intends to follow with one
colour.  Lines (usually produced by :func:`~openingtree.flatten.flatten_pgn`)
are replayed through python-chess and stored two ways:

  1. A trie keyed by canonical SAN, rooted at the initial position.  It
     drives :meth:`Repertoire.compare`, which walks a played game down the
     trie and reports the first deviation.

  2. A position-key -> move index holding, for every position where the
     repertoire colour is to move, the move the repertoire plays there.
     It backs :meth:`Repertoire.recommended_move`, so transpositions into a
     prepared position are still recognised.

Loading is all-or-nothing: the new trie and index are built completely
before they replace the current ones.
"""

from __future__ import annotations

import sys
from typing import Iterable, Iterator, Sequence

import chess

from .config import MAX_MOVES_TO_COMPARE
from .errors import EmptyRepertoireError, IllegalMoveError
from .flatten import flatten_pgn
from .models import Comparison, Deviation
from .position import DEFAULT_VARIANT, make_board, parse_color, play_san, position_key


class RepertoireNode:
    """One trie node.  Children are owned top-down; there are no back edges."""

    __slots__ = ("children", "recommended")

    def __init__(self) -> None:
        self.children: dict[str, RepertoireNode] = {}
        self.recommended: str | None = None  # first move recorded here

    def add_line(self, moves: Iterable[str]) -> None:
        node = self
        for san in moves:
            child = node.children.get(san)
            if child is None:
                child = node.children[san] = RepertoireNode()
            if node.recommended is None:
                node.recommended = san
            node = child

    def has_move(self, san: str) -> bool:
        return san in self.children

    def child(self, san: str) -> RepertoireNode | None:
        return self.children.get(san)

    def main_line(self) -> tuple[str, ...]:
        """Continuation following the first-recorded move at every node."""
        moves: list[str] = []
        node = self
        while node.recommended is not None:
            moves.append(node.recommended)
            node = node.children[node.recommended]
        return tuple(moves)

    def lines(self) -> Iterator[tuple[str, ...]]:
        """Every root-to-leaf path below this node."""
        if not self.children:
            yield ()
            return
        for san, child in self.children.items():
            for rest in child.lines():
                yield (san,) + rest

    def __len__(self) -> int:
        return 1 + sum(len(c) for c in self.children.values())


class Repertoire:
    """The most recently loaded repertoire for one colour."""

    def __init__(
        self,
        variant: str = DEFAULT_VARIANT,
        max_moves_to_compare: int = MAX_MOVES_TO_COMPARE,
        verbose: bool = True,
    ) -> None:
        self.variant = variant
        self.max_moves_to_compare = max_moves_to_compare
        self.verbose = verbose
        self.root = RepertoireNode()
        self.color: chess.Color | None = None
        self._positions: dict[str, str] = {}

    @property
    def is_loaded(self) -> bool:
        return self.color is not None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_pgn(self, text: str, color: str | chess.Color) -> int:
        """Flatten repertoire PGN *text* and :meth:`load` its lines."""
        return self.load(flatten_pgn(text), color)

    def load(self, variations: Iterable[Sequence[str]], color: str | chess.Color) -> int:
        """Replace the repertoire with *variations*; return the lines kept.

        A line containing an illegal move is cut at that move.  Raises
        :class:`EmptyRepertoireError`, keeping the previous repertoire, if
        no line has a single playable move.
        """
        color = parse_color(color)
        root = RepertoireNode()
        positions: dict[str, str] = {}
        loaded = 0

        for line in variations:
            board = make_board(self.variant)
            canonical: list[str] = []
            for san in line:
                key = position_key(board.fen())
                mover = board.turn
                try:
                    played = play_san(board, san)
                except IllegalMoveError as exc:
                    if self.verbose:
                        print(f"[repertoire] Warning: line cut short – {exc}",
                              file=sys.stderr, flush=True)
                    break
                if mover == color:
                    positions[key] = played.san
                canonical.append(played.san)
            if canonical:
                root.add_line(canonical)
                loaded += 1

        if not loaded:
            raise EmptyRepertoireError("no playable lines found in repertoire")

        self.root, self.color, self._positions = root, color, positions
        if self.verbose:
            print(f"[repertoire] Loaded {loaded} lines, "
                  f"{len(positions)} prepared positions.", flush=True)
        return loaded

    def clear(self) -> None:
        self.root = RepertoireNode()
        self.color = None
        self._positions = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def recommended_move(self, fen: str) -> str | None:
        """The repertoire's move in the position, if one is prepared."""
        return self._positions.get(position_key(fen))

    def compare(self, played_moves: Sequence[str]) -> Comparison:
        """Walk *played_moves* down the trie and report the first deviation.

        Only the first ``max_moves_to_compare`` half-moves are examined.
        Reaching the end of a prepared line is not a deviation.
        """
        result = Comparison()
        if not self.is_loaded:
            return result

        node = self.root
        board = make_board(self.variant)
        for i, move in enumerate(played_moves[: self.max_moves_to_compare]):
            if not node.children:
                break
            mover = board.turn
            try:
                san = play_san(board, move).san
            except IllegalMoveError:
                san = move
            child = node.child(san)
            if child is None:
                result.deviation = Deviation(
                    at_move=i + 1,
                    played_move=san,
                    repertoire_line=node.main_line(),
                )
                break
            if mover == self.color:
                result.matches.append(san)
            node = child
        return result
