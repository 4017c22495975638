"""Tests for flattening PGN variations into lines."""

from __future__ import annotations

import chess
import pytest

from openingtree.errors import FormatError, IllegalMoveError
from openingtree.flatten import flatten_pgn, format_line, line_positions, tokenize
from openingtree.position import position_key


# ---------------------------------------------------------------------------
# flatten_pgn
# ---------------------------------------------------------------------------


def test_main_line_only() -> None:
    assert flatten_pgn("1. e4 e5 2. Nf3 Nc6 *") == [("e4", "e5", "Nf3", "Nc6")]


def test_black_alternative_replaces_previous_move() -> None:
    assert flatten_pgn("1. e4 e5 (1... c5 2. Nf3) 2. Nf3") == [
        ("e4", "e5", "Nf3"),
        ("e4", "c5", "Nf3"),
    ]


def test_white_alternative() -> None:
    assert flatten_pgn("1. e4 (1. d4 d5) 1... e5") == [("e4", "e5"), ("d4", "d5")]


def test_nested_variation_resumes_at_parent_level() -> None:
    text = "1. e4 e5 (1... c5 2. Nf3 (2. c3 d5) 2... d6) 2. Nf3 Nc6"
    assert flatten_pgn(text) == [
        ("e4", "e5", "Nf3", "Nc6"),
        ("e4", "c5", "c3", "d5"),
        ("e4", "c5", "Nf3", "d6"),
    ]


def test_sibling_variations() -> None:
    text = "1. e4 e5 (1... c5) (1... e6 2. d4) 2. Nf3"
    assert flatten_pgn(text) == [
        ("e4", "e5", "Nf3"),
        ("e4", "c5"),
        ("e4", "e6", "d4"),
    ]


def test_identical_lines_collapse() -> None:
    assert flatten_pgn("1. e4 (1. d4) (1. d4) 1... e5") == [("e4", "e5"), ("d4",)]


def test_comments_nags_and_headers_are_ignored() -> None:
    text = (
        '[Event "Prep"]\n'
        '[White "Me"]\n'
        "\n"
        "1. e4! {best by test} e5?! $2 2. Nf3 ; a rest-of-line comment\n"
        " Nc6 1-0\n"
    )
    assert flatten_pgn(text) == [("e4", "e5", "Nf3", "Nc6")]


def test_several_games_are_flattened_in_turn() -> None:
    text = "1. e4 e5 1-0\n\n1. d4 d5 *\n"
    assert flatten_pgn(text) == [("e4", "e5"), ("d4", "d5")]


def test_unicode_glyphs_and_half_point_result() -> None:
    text = "1. e4± e5 2. Nf3 N ∞ Nc6 ⩲ =/+ ½-½\n\n1. d4 *"
    assert flatten_pgn(text) == [("e4", "e5", "Nf3", "Nc6"), ("d4",)]


def test_empty_text_has_no_lines() -> None:
    assert flatten_pgn("") == []
    assert flatten_pgn('[Event "?"]\n\n*') == []


def test_variation_before_any_move_fails() -> None:
    with pytest.raises(FormatError):
        flatten_pgn("( 1. e4 ) 1. d4")


def test_unmatched_close_fails() -> None:
    with pytest.raises(FormatError, match="unmatched"):
        flatten_pgn("1. e4 ) e5")


def test_unclosed_variation_fails() -> None:
    with pytest.raises(FormatError, match="unclosed"):
        flatten_pgn("1. e4 (1. d4 d5")


def test_move_number_for_wrong_side_fails() -> None:
    with pytest.raises(FormatError, match="white is to move"):
        flatten_pgn("1. e4 (1... d5)")


def test_garbage_token_fails() -> None:
    with pytest.raises(FormatError, match="unexpected token"):
        flatten_pgn("1. e4 hello")


# ---------------------------------------------------------------------------
# tokenize
# ---------------------------------------------------------------------------


def test_tokenize_normalizes_zero_castling() -> None:
    tokens = tokenize("1. e4 e5 2. Nf3 Nc6 3. Bc4 Bc5 4. 0-0 0-0-0")
    assert tokens[-2:] == ["O-O", "O-O-O"]


def test_tokenize_keeps_structure_tokens() -> None:
    assert tokenize("1. e4 (1. d4) 1... c5+ *") == [
        "1.", "e4", "(", "1.", "d4", ")", "1...", "c5+", "*",
    ]


def test_tokenize_drops_bare_glyphs() -> None:
    assert tokenize("1. e4 !! e5 +-") == ["1.", "e4", "e5"]


# ---------------------------------------------------------------------------
# format_line / line_positions
# ---------------------------------------------------------------------------


def test_format_line_white_first() -> None:
    assert format_line(["e4", "e5", "Nf3"]) == "1. e4 e5 2. Nf3"


def test_format_line_black_first() -> None:
    assert format_line(["e5", "Nf3", "Nc6"], white_first=False) == "1... e5 2. Nf3 Nc6"


def test_line_positions() -> None:
    keys = line_positions(["e4", "e5"])
    assert len(keys) == 3
    assert keys[0] == position_key(chess.STARTING_FEN)
    assert keys[1] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b"


def test_line_positions_illegal_move() -> None:
    with pytest.raises(IllegalMoveError):
        line_positions(["e4", "e4"])
