"""End-to-end tests for the OpeningTree facade."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import chess

from openingtree.config import TreeConfig
from openingtree.models import FETCH_SUCCESS, BookMove, BookResult
from openingtree.position import position_key
from openingtree.tree import OpeningTree

_GAMES = """\
[White "Alice"]
[Black "Bob"]
[BlackElo "1700"]
[Result "1-0"]

1. e4 e5 2. Nf3 Nc6 1-0

[White "Alice"]
[Black "Carl"]
[BlackElo "1900"]
[Result "0-1"]

1. e4 c5 2. Nf3 d6 0-1
"""

_REPERTOIRE = "1. e4 e5 (1... c5 2. c3) 2. Nf3"


def _tree(**kwargs) -> OpeningTree:
    return OpeningTree(TreeConfig(verbose=False, **kwargs))


def _fen(*sans: str) -> str:
    board = chess.Board()
    for san in sans:
        board.push_san(san)
    return board.fen()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def test_moves_and_details() -> None:
    tree = _tree()
    tree.load_games(_GAMES, "white")

    (e4,) = tree.moves(chess.STARTING_FEN)
    assert (e4.san, e4.count, e4.level) == ("e4", 2, 3)
    assert e4.details.results == "+1-1=0"
    assert tree.details(_fen("e4")).average_opponent_elo == 1800
    assert [m.san for m in tree.moves(_fen("e4"))] == ["e5", "c5"]


def test_game_results() -> None:
    tree = _tree()
    tree.load_games(_GAMES, "white")
    (record,) = tree.game_results(_fen("e4", "c5", "Nf3", "d6"))
    assert record.black == "Carl"


def test_repertoire_marks_recommended_moves() -> None:
    tree = _tree()
    tree.load_games(_GAMES, "white")
    tree.load_repertoire(_REPERTOIRE, "white")

    after_c5 = tree.moves(_fen("e4", "c5"))
    assert [(m.san, m.is_recommended, m.count) for m in after_c5] == [
        ("Nf3", False, 1),
        ("c3", True, 0),
    ]
    after_e5 = tree.moves(_fen("e4", "e5"))
    assert [(m.san, m.is_recommended) for m in after_e5] == [("Nf3", True)]


def test_castling_recommendation_found_by_position_key() -> None:
    tree = _tree()
    tree.load_repertoire("1. e4 e5 2. Nf3 Nc6 3. Bc4 Bc5 4. O-O", "white")
    fen = _fen("e4", "e5", "Nf3", "Nc6", "Bc4", "Bc5")

    assert [m.san for m in tree.moves(fen)] == ["O-O"]
    assert [m.san for m in tree.moves(position_key(fen))] == ["O-O"]


def test_loading_other_color_starts_fresh_graph() -> None:
    tree = _tree()
    tree.load_games(_GAMES, "white")
    tree.load_games(_GAMES, "black")
    assert tree.graph.player_color == chess.BLACK
    assert tree.moves(chess.STARTING_FEN)[0].count == 2
    assert tree.details(_fen("e4")).results == "+1-1=0"


def test_clear() -> None:
    tree = _tree()
    tree.load_games(_GAMES, "white")
    tree.load_repertoire(_REPERTOIRE, "white")
    tree.clear()
    assert tree.moves(chess.STARTING_FEN) == []
    assert not tree.repertoire.is_loaded


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def test_compare() -> None:
    tree = _tree()
    tree.load_repertoire(_REPERTOIRE, "white")
    result = tree.compare(["e4", "c5", "Nf3"])
    assert result.deviation.at_move == 3
    assert result.deviation.played_move == "Nf3"
    assert result.deviation.repertoire_line == ("c3",)


def test_compare_games() -> None:
    tree = _tree()
    tree.load_repertoire(_REPERTOIRE, "white")
    results = tree.compare_games(_GAMES)
    assert len(results) == 2
    (_, first), (game, second) = results
    assert first.in_repertoire
    assert first.matches == ["e4", "Nf3"]
    assert game.headers["Black"] == "Carl"
    assert second.deviation.at_move == 3


def test_compare_honours_configured_bound() -> None:
    tree = _tree(max_moves_to_compare=2)
    tree.load_repertoire(_REPERTOIRE, "white")
    assert tree.compare(["e4", "c5", "Nf3"]).deviation is None


# ---------------------------------------------------------------------------
# Opening book
# ---------------------------------------------------------------------------


def _book() -> BookResult:
    return BookResult(
        white=50, draws=20, black=30,
        moves=[
            BookMove("Nf3", "g1f3", 30, 10, 20, 2200),
            BookMove("Bc4", "f1c4", 20, 10, 10, 2150),
        ],
    )


def test_merge_book_keeps_repertoire_side_moves() -> None:
    tree = _tree()
    tree.load_repertoire(_REPERTOIRE, "white")

    node = tree.merge_book(_fen("e4", "e5"), _book())

    assert node.fetch == FETCH_SUCCESS
    assert [(m.san, m.is_recommended) for m in node.moves] == [
        ("Nf3", True), ("Bc4", False),
    ]
    assert tree.book(_fen("e4", "e5")) is node


def test_merge_book_drops_opponent_moves() -> None:
    tree = _tree()
    tree.load_repertoire(_REPERTOIRE, "white")
    node = tree.merge_book(_fen("e4"), _book())
    assert node.moves == ()


def test_book_fetcher_merges_into_tree() -> None:
    tree = _tree()
    lookup = MagicMock(return_value=_book())

    with tree.book_fetcher(lookup) as fetcher:
        fetcher.request(_fen("e4", "e5"))
        fetcher.drain(wait=True)

    lookup.assert_called_once_with(_fen("e4", "e5"))
    node = tree.book(_fen("e4", "e5"))
    assert [m.san for m in node.moves] == ["Nf3", "Bc4"]


def test_default_book_fetcher_closes_lichess_session() -> None:
    tree = _tree()
    with patch("openingtree.tree.LichessBook") as mock_book_cls:
        mock_book = MagicMock()
        mock_book_cls.return_value = mock_book

        with tree.book_fetcher():
            pass

    mock_book_cls.assert_called_once()
    mock_book.close.assert_called_once()
