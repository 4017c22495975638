"""Position keys and the python-chess move-legality adapter.

Graph nodes are keyed by a *position key*: the piece-placement and
side-to-move fields of a FEN.  Castling rights, the en-passant square and
the move counters are dropped, so transpositions that differ only in those
fields land on the same node::

    rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1
    -> rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b

All chess rules live in python-chess.  The helpers below are the only place
the rest of the package touches a board object.
"""

from __future__ import annotations

from dataclasses import dataclass

import chess
import chess.variant

from .errors import FormatError, IllegalMoveError

DEFAULT_VARIANT = "chess"


def position_key(fen: str) -> str:
    """Return the position key (placement + side to move) for *fen*."""
    fields = fen.split()
    if len(fields) < 2:
        raise FormatError(f"expected at least 2 FEN fields, got {fen!r}")
    return f"{fields[0]} {fields[1]}"


def side_to_move(fen: str) -> chess.Color:
    """Side to move for a FEN or a position key."""
    turn = position_key(fen).split(" ")[1]
    if turn == "w":
        return chess.WHITE
    if turn == "b":
        return chess.BLACK
    raise FormatError(f"invalid side-to-move field {turn!r} in {fen!r}")


def parse_color(color: str | chess.Color) -> chess.Color:
    """Accept ``'white'``/``'black'`` or a ``chess.Color``."""
    if isinstance(color, bool):
        return color
    if color not in ("white", "black"):
        raise ValueError(f"color must be 'white' or 'black', got {color!r}")
    return chess.WHITE if color == "white" else chess.BLACK


# ---------------------------------------------------------------------------
# Boards and variants
# ---------------------------------------------------------------------------


def board_class(variant: str = DEFAULT_VARIANT) -> type[chess.Board]:
    try:
        return chess.variant.find_variant(variant)
    except ValueError as exc:
        raise FormatError(f"unknown variant {variant!r}") from exc


def root_fen(variant: str = DEFAULT_VARIANT) -> str:
    """Full FEN of the starting position of *variant*."""
    return board_class(variant).starting_fen


def make_board(variant: str = DEFAULT_VARIANT, fen: str | None = None) -> chess.Board:
    """Build a board for *variant*.

    *fen* may be a full FEN or a bare position key.  A key carries no
    castling field, so rights are inferred from the king and rook squares;
    the en-passant field is empty and the counters are fresh.
    """
    cls = board_class(variant)
    if fen is None:
        return cls()
    is_key = len(fen.split()) == 2
    if is_key:
        fen = f"{fen} KQkq - 0 1"
    try:
        board = cls(fen)
    except ValueError as exc:
        raise FormatError(f"invalid FEN {fen!r}: {exc}") from exc
    if is_key:
        board.castling_rights = board.clean_castling_rights()
    return board


@dataclass(frozen=True)
class PlayedMove:
    """A move replayed by python-chess, in canonical notation."""

    san: str
    uci: str
    from_square: str
    to_square: str
    fen: str  # full FEN *after* the move


def play_san(board: chess.Board, san: str) -> PlayedMove:
    """Push *san* onto *board* and describe the move.

    Raises :class:`IllegalMoveError` (leaving *board* untouched) when the
    move is not legal in the current position.
    """
    try:
        move = board.parse_san(san)
    except ValueError as exc:
        fen = board.fen()
        raise IllegalMoveError(
            f"illegal move {san!r} in position {fen!r}", move=san, fen=fen
        ) from exc
    canonical = board.san(move)
    board.push(move)
    return PlayedMove(
        san=canonical,
        uci=move.uci(),
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        fen=board.fen(),
    )
