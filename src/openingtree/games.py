"""Read a player's games from PGN and feed them into an :class:`OpeningGraph`.

How it works
------------
1. python-chess parses every game in the PGN text.  A game whose text is
   malformed (bad tag values, unparseable tokens) fails the whole batch with
   :class:`~openingtree.errors.FormatError` before the graph is touched.
2. Each remaining game is replayed move by move; every half-move becomes a
   ``(source FEN, target FEN, SAN)`` transition and the headers become a
   :class:`~openingtree.models.GameRecord`.
3. Games containing an illegal move are skipped with a warning, games
   outside the player/rating filters are counted as filtered, and the rest
   are added to the graph in file order.
"""

from __future__ import annotations

import datetime
import io
import sys
from dataclasses import dataclass

import chess
import chess.pgn

from .errors import FormatError, IllegalMoveError
from .graph import OpeningGraph
from .models import GameRecord, Transition
from .position import board_class, parse_color

_FINISHED = ("1-0", "0-1", "1/2-1/2")
_UNKNOWN = ("", "?", "-")


@dataclass
class LoadStats:
    loaded: int = 0     # games added to the graph
    skipped: int = 0    # unfinished games and games with illegal moves
    filtered: int = 0   # games excluded by the player / rating / variant filters


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def read_games(pgn_text: str) -> list[chess.pgn.Game]:
    """Parse every game in *pgn_text*.

    Illegal or ambiguous moves are left on the game (see :func:`replay`);
    any other parse error raises :class:`FormatError`.
    """
    buf = io.StringIO(pgn_text)
    games: list[chess.pgn.Game] = []
    while True:
        game = chess.pgn.read_game(buf)
        if game is None:
            break
        for error in game.errors:
            if not isinstance(error, (chess.IllegalMoveError, chess.AmbiguousMoveError)):
                raise FormatError(
                    f"malformed PGN in game {len(games) + 1}: {error}"
                ) from error
        games.append(game)
    return games


def parse_elo(value: str | None) -> int | None:
    """Header elo as an int; None when unknown, FormatError when garbage."""
    if value is None or value.strip() in _UNKNOWN:
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise FormatError(f"non-numeric elo {value!r}") from None


def parse_date(value: str | None) -> datetime.date | None:
    """PGN ``YYYY.MM.DD`` date; unknown month/day default to 1."""
    if not value:
        return None
    parts = value.strip().split(".")
    if len(parts) != 3 or not parts[0].isdigit():
        return None
    year = int(parts[0])
    month = int(parts[1]) if parts[1].isdigit() else 1
    day = int(parts[2]) if parts[2].isdigit() else 1
    try:
        return datetime.date(year, month, day)
    except ValueError:
        return None


def replay(game: chess.pgn.Game) -> tuple[list[Transition], str]:
    """Return the game's ``(source, target, san)`` transitions and final FEN."""
    for error in game.errors:
        if isinstance(error, (chess.IllegalMoveError, chess.AmbiguousMoveError)):
            fen = game.end().board().fen()
            raise IllegalMoveError(f"{error} (after {fen})", fen=fen)

    board = game.board()
    transitions: list[Transition] = []
    for move in game.mainline_moves():
        source = board.fen()
        san = board.san(move)
        board.push(move)
        transitions.append((source, board.fen(), san))
    return transitions, board.fen()


def game_record(game: chess.pgn.Game, number_of_plys: int) -> GameRecord:
    headers = game.headers
    return GameRecord(
        result=headers.get("Result", "*"),
        white_elo=parse_elo(headers.get("WhiteElo")),
        black_elo=parse_elo(headers.get("BlackElo")),
        date=parse_date(headers.get("UTCDate") or headers.get("Date")),
        number_of_plys=number_of_plys,
        white=headers.get("White", "?"),
        black=headers.get("Black", "?"),
        site=headers.get("Site", ""),
        event=headers.get("Event", ""),
        time_control=headers.get("TimeControl", ""),
    )


def game_moves(game: chess.pgn.Game) -> list[str]:
    """Mainline SAN moves of *game*."""
    board = game.board()
    moves: list[str] = []
    for move in game.mainline_moves():
        moves.append(board.san(move))
        board.push(move)
    return moves


# ---------------------------------------------------------------------------
# Batch loading
# ---------------------------------------------------------------------------


def load_games(
    graph: OpeningGraph,
    pgn_text: str,
    color: str | chess.Color,
    player: str | None = None,
    opponent_elo_range: tuple[int, int] | None = None,
    verbose: bool = True,
) -> LoadStats:
    """Add every game in *pgn_text* played as *color* to *graph*.

    Parameters
    ----------
    graph:
        Target graph; all its games share one tracked colour.
    pgn_text:
        One or more PGN games.
    color:
        ``'white'`` or ``'black'``: the side the player had.
    player:
        When set, only games where *player* (case-insensitive) had *color*
        are loaded.
    opponent_elo_range:
        Inclusive ``(low, high)`` opponent rating band; games with an
        unknown opponent rating are excluded when a band is given.
    verbose:
        Print progress and skip diagnostics.
    """
    player_color = parse_color(color)
    variant_cls = board_class(graph.variant)
    stats = LoadStats()

    # Parse and replay everything first so a FormatError leaves the graph as it was.
    ready: list[tuple[GameRecord, list[Transition], str]] = []
    for number, game in enumerate(read_games(pgn_text), 1):
        headers = game.headers
        if player is not None:
            name = headers.get("White" if player_color == chess.WHITE else "Black", "")
            if name.lower() != player.lower():
                stats.filtered += 1
                continue
        if type(game.board()) is not variant_cls:
            stats.filtered += 1
            continue
        if headers.get("Result", "*") not in _FINISHED:
            stats.skipped += 1
            continue

        try:
            transitions, final_fen = replay(game)
        except IllegalMoveError as exc:
            stats.skipped += 1
            if verbose:
                print(f"[games] Warning: game {number} skipped – {exc}",
                      file=sys.stderr, flush=True)
            continue

        record = game_record(game, len(transitions))
        if opponent_elo_range is not None:
            elo = record.opponent_elo(player_color)
            low, high = opponent_elo_range
            if elo is None or not low <= elo <= high:
                stats.filtered += 1
                continue
        ready.append((record, transitions, final_fen))

    for record, transitions, final_fen in ready:
        graph.add_game(record, transitions, final_fen, player_color)
        stats.loaded += 1

    if verbose:
        print(
            f"[games] {stats.loaded} games loaded, {stats.skipped} skipped, "
            f"{stats.filtered} filtered, {len(graph)} positions.",
            flush=True,
        )
    return stats
