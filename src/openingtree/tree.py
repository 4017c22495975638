"""Host-facing facade: one player's games plus the loaded repertoire."""

from __future__ import annotations

import chess
import chess.pgn

from .book import BookFetcher, BookLookup, normalize_book_result
from .config import TreeConfig
from .explorer import LichessBook
from .games import LoadStats, game_moves, load_games, read_games
from .graph import OpeningGraph, RepertoireLookup
from .models import BookNode, BookResult, Comparison, Details, GameRecord, MoveCandidate
from .position import parse_color, position_key
from .repertoire import Repertoire


class OpeningTree:
    """Everything a host needs: load, query, merge book moves, compare.

    The graph holds games of a single colour; loading games for the other
    colour starts a fresh graph.
    """

    def __init__(self, config: TreeConfig | None = None) -> None:
        self.config = config or TreeConfig()
        self.graph = OpeningGraph(self.config.variant, verbose=self.config.verbose)
        self.repertoire = Repertoire(
            self.config.variant,
            max_moves_to_compare=self.config.max_moves_to_compare,
            verbose=self.config.verbose,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_games(
        self,
        pgn_text: str,
        color: str | chess.Color,
        player: str | None = None,
        opponent_elo_range: tuple[int, int] | None = None,
    ) -> LoadStats:
        color = parse_color(color)
        if self.graph.has_moves and self.graph.player_color != color:
            self.graph = OpeningGraph(self.config.variant, verbose=self.config.verbose)
        return load_games(
            self.graph,
            pgn_text,
            color,
            player=player,
            opponent_elo_range=opponent_elo_range,
            verbose=self.config.verbose,
        )

    def load_repertoire(self, pgn_text: str, color: str | chess.Color) -> int:
        return self.repertoire.load_pgn(pgn_text, color)

    def clear(self) -> None:
        self.graph.clear()
        self.repertoire.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def moves(self, fen: str) -> list[MoveCandidate]:
        return self.graph.moves_for(fen, self._lookup())

    def details(self, fen: str) -> Details:
        return self.graph.details_for(fen)

    def game_results(self, fen: str) -> list[GameRecord]:
        return self.graph.game_results_for(fen)

    def book(self, fen: str) -> BookNode | None:
        return self.graph.book_for(fen)

    def compare(self, moves: list[str]) -> Comparison:
        return self.repertoire.compare(moves)

    def compare_games(self, pgn_text: str) -> list[tuple[chess.pgn.Game, Comparison]]:
        """Compare the mainline of every game in *pgn_text* with the repertoire."""
        return [(g, self.repertoire.compare(game_moves(g))) for g in read_games(pgn_text)]

    # ------------------------------------------------------------------
    # Opening book
    # ------------------------------------------------------------------

    def merge_book(self, fen: str, result: BookResult | None) -> BookNode:
        """Normalize a book lookup result and store it on the graph."""
        node = normalize_book_result(
            fen, result, self.repertoire.color, self._lookup()
        )
        self.graph.merge_book_result(position_key(fen), node)
        return node

    def book_fetcher(self, book: BookLookup | None = None) -> BookFetcher:
        """A :class:`BookFetcher` that merges results into this tree.

        Call :meth:`BookFetcher.drain` from the thread that owns the tree.
        """
        lookup = book or LichessBook(
            url=self.config.explorer_url,
            variant=self.config.variant,
            ratings=self.config.book_ratings,
            speeds=self.config.book_speeds,
        )
        return BookFetcher(
            lookup,
            self.merge_book,
            max_workers=self.config.book_workers,
            verbose=self.config.verbose,
        )

    def _lookup(self) -> RepertoireLookup | None:
        return self.repertoire.recommended_move if self.repertoire.is_loaded else None
