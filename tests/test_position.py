"""Tests for position keys and the python-chess adapter."""

from __future__ import annotations

import chess
import pytest

from openingtree.errors import FormatError, IllegalMoveError
from openingtree.position import (
    make_board,
    parse_color,
    play_san,
    position_key,
    root_fen,
    side_to_move,
)

_POST_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
_POST_E4_KEY = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b"


# ---------------------------------------------------------------------------
# position_key
# ---------------------------------------------------------------------------


def test_key_keeps_placement_and_side_only() -> None:
    assert position_key(_POST_E4_FEN) == _POST_E4_KEY


def test_key_is_idempotent() -> None:
    assert position_key(position_key(_POST_E4_FEN)) == _POST_E4_KEY


def test_key_ignores_castling_en_passant_and_counters() -> None:
    other = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b - - 7 42"
    assert position_key(other) == position_key(_POST_E4_FEN)


def test_key_distinguishes_side_to_move() -> None:
    white = "8/8/8/8/8/8/8/K6k w - - 0 1"
    black = "8/8/8/8/8/8/8/K6k b - - 0 1"
    assert position_key(white) != position_key(black)


def test_key_rejects_single_field() -> None:
    with pytest.raises(FormatError):
        position_key("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR")


def test_side_to_move() -> None:
    assert side_to_move(chess.STARTING_FEN) == chess.WHITE
    assert side_to_move(_POST_E4_KEY) == chess.BLACK


def test_side_to_move_rejects_garbage() -> None:
    with pytest.raises(FormatError):
        side_to_move("8/8/8/8/8/8/8/K6k x")


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------


def test_parse_color() -> None:
    assert parse_color("white") == chess.WHITE
    assert parse_color("black") == chess.BLACK
    assert parse_color(chess.BLACK) == chess.BLACK


def test_parse_color_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="color must be"):
        parse_color("red")


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


def test_root_fen_standard() -> None:
    assert root_fen() == chess.STARTING_FEN
    assert root_fen("horde") != chess.STARTING_FEN


def test_unknown_variant_is_format_error() -> None:
    with pytest.raises(FormatError):
        root_fen("not-a-variant")


def test_make_board_accepts_position_key() -> None:
    board = make_board("chess", _POST_E4_KEY)
    assert board.turn == chess.BLACK
    assert position_key(board.fen()) == _POST_E4_KEY


def test_make_board_infers_castling_from_key() -> None:
    start = make_board("chess", position_key(chess.STARTING_FEN))
    assert start.castling_rights == chess.BB_CORNERS

    rook_home = make_board("chess", "4k3/8/8/8/8/8/8/4K2R w")
    assert rook_home.has_kingside_castling_rights(chess.WHITE)
    assert not rook_home.has_queenside_castling_rights(chess.WHITE)

    king_moved = make_board("chess", "4k3/8/8/8/8/8/8/5K1R w")
    assert not king_moved.has_castling_rights(chess.WHITE)


def test_make_board_keeps_full_fen_castling() -> None:
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w - - 0 1"
    assert make_board("chess", fen).castling_rights == chess.BB_EMPTY


def test_make_board_rejects_bad_fen() -> None:
    with pytest.raises(FormatError):
        make_board("chess", "not a fen at all")


def test_play_san_returns_canonical_move() -> None:
    board = chess.Board()
    played = play_san(board, "Nf3")
    assert played.san == "Nf3"
    assert played.uci == "g1f3"
    assert (played.from_square, played.to_square) == ("g1", "f3")
    assert played.fen == board.fen()
    assert board.turn == chess.BLACK


def test_play_san_illegal_leaves_board_untouched() -> None:
    board = chess.Board()
    with pytest.raises(IllegalMoveError) as info:
        play_san(board, "e5")
    assert info.value.move == "e5"
    assert board.fen() == chess.STARTING_FEN
