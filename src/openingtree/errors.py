"""Exception types raised by the opening-tree core."""

from __future__ import annotations


class FormatError(ValueError):
    """Malformed input: a position string, PGN text or header value."""


class IllegalMoveError(ValueError):
    """A recorded move cannot be replayed against the stated position."""

    def __init__(self, message: str, move: str | None = None, fen: str | None = None) -> None:
        super().__init__(message)
        self.move = move
        self.fen = fen


class EmptyRepertoireError(ValueError):
    """A repertoire load produced no usable lines."""
