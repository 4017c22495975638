"""Flatten PGN move text with nested variations into independent lines.

A repertoire PGN usually stores its alternatives as parenthesised
variations::

    1. e4 e5 (1... c5 2. Nf3) 2. Nf3

Each variation replaces the move immediately before the ``(``.  Flattening
turns that into one complete line per branch, each starting from the
initial position::

    (e4, e5, Nf3)     # main line, always first
    (e4, c5, Nf3)

Algorithm
---------
1. Strip tag pairs, ``{}`` and ``;`` comments, ``$n`` NAGs and annotation
   glyphs.  Result markers end a game, so a file holding several games is
   flattened game by game.
2. Tokenize into move numbers, SAN moves and parentheses.
3. Walk the tokens with a stack of immutable snapshots.  ``(`` pushes the
   current line and steps back one ply; ``)`` emits the variation and
   restores the snapshot of its *immediate* parent, so nested variations
   resume at the right level.

Identical lines collapse into one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from .errors import FormatError
from .position import DEFAULT_VARIANT, make_board, play_san, position_key

_TAG_RE = re.compile(r'\[\s*\w+\s+"[^"]*"\s*\]')
_COMMENT_RE = re.compile(r"\{[^}]*\}|;[^\n]*")
_NAG_RE = re.compile(r"\$\d+")
_TOKEN_RE = re.compile(r"[()]|\d+\.(?:\.\.)?|[^\s()]+")
_MOVE_NUMBER_RE = re.compile(r"^\d+\.(\.\.)?$")
_SAN_RE = re.compile(
    r"^(?:[KQRBN][a-h]?[1-8]?x?[a-h][1-8]"
    r"|[a-h](?:x[a-h])?[1-8](?:=?[QRBN])?"
    r"|[QRBNP]@[a-h][1-8]"
    r"|O-O(?:-O)?)[+#]?$"
)
_RESULTS = frozenset({"1-0", "0-1", "1/2-1/2", "*"})
# Non-letter annotation symbols; they may also trail a move ("e4±").
_GLYPH_CHARS = "!?±∓∞⩲⩱□⇆→↑Δ⌓⨀"
_NOVELTY = "N"

Line = tuple[str, ...]


@dataclass(frozen=True)
class _Snapshot:
    moves: Line
    white_to_move: bool


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def flatten_pgn(text: str) -> list[Line]:
    """Return every line in *text*: main line first, then the variations."""
    lines: list[Line] = []
    for game_tokens in _split_games(tokenize(text)):
        lines.extend(_flatten_game(game_tokens))
    return list(dict.fromkeys(line for line in lines if line))


def tokenize(text: str) -> list[str]:
    """Clean *text* and split it into move-text tokens."""
    text = _TAG_RE.sub(" ", text)
    text = _COMMENT_RE.sub(" ", text)
    text = _NAG_RE.sub(" ", text)
    tokens: list[str] = []
    for raw in _TOKEN_RE.findall(text):
        token = raw.rstrip(_GLYPH_CHARS)
        if not token or token == _NOVELTY or set(token) <= set(".+-=/#"):
            continue  # bare glyphs such as "!!", "±", "+-", "=/+", "N"
        token = token.replace("½-½", "1/2-1/2")
        token = token.replace("0-0-0", "O-O-O").replace("0-0", "O-O")
        if token in ("(", ")") or token in _RESULTS or _MOVE_NUMBER_RE.match(token):
            tokens.append(token)
        elif _SAN_RE.match(token):
            tokens.append(token)
        else:
            raise FormatError(f"unexpected token in move text: {raw!r}")
    return tokens


def format_line(moves: Sequence[str], white_first: bool = True) -> str:
    """Render *moves* with move numbers, e.g. ``1. e4 e5 2. Nf3``."""
    parts: list[str] = []
    number = 1
    white = white_first
    for i, san in enumerate(moves):
        if white:
            parts.append(f"{number}.")
        elif i == 0:
            parts.append(f"{number}...")
        parts.append(san)
        if not white:
            number += 1
        white = not white
    return " ".join(parts)


def line_positions(moves: Sequence[str], variant: str = DEFAULT_VARIANT) -> list[str]:
    """Position keys along *moves*: one before each half-move, plus the last.

    Raises :class:`~openingtree.errors.IllegalMoveError` at the first move
    python-chess refuses.
    """
    board = make_board(variant)
    keys = [position_key(board.fen())]
    for san in moves:
        keys.append(position_key(play_san(board, san).fen))
    return keys


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _split_games(tokens: Iterable[str]) -> Iterator[list[str]]:
    game: list[str] = []
    for token in tokens:
        if token in _RESULTS:
            yield game
            game = []
        else:
            game.append(token)
    if game:
        yield game


def _flatten_game(tokens: Sequence[str]) -> list[Line]:
    stack: list[_Snapshot] = []
    variations: list[Line] = []
    working: Line = ()
    white_to_move = not (tokens and tokens[0].endswith("..."))

    for token in tokens:
        if token == "(":
            if not working:
                raise FormatError("variation opened before any move")
            stack.append(_Snapshot(working, white_to_move))
            # The variation replaces the last move, so it is that mover's turn.
            working = working[:-1]
            white_to_move = not white_to_move
        elif token == ")":
            if not stack:
                raise FormatError("unmatched ')' in move text")
            variations.append(working)
            parent = stack.pop()
            working, white_to_move = parent.moves, parent.white_to_move
        elif _MOVE_NUMBER_RE.match(token):
            if token.endswith("...") == white_to_move:
                side = "white" if white_to_move else "black"
                raise FormatError(f"move number {token!r} but {side} is to move")
        else:
            working = working + (token,)
            white_to_move = not white_to_move

    if stack:
        raise FormatError("unclosed '(' in move text")
    return [working] + variations
