"""Command-line entry-point for openingtree.

Usage
-----
  openingtree moves   --games games.pgn --color white [--fen <FEN>]
  openingtree flatten --repertoire rep.pgn
  openingtree compare --games games.pgn --repertoire rep.pgn --color white

Run ``openingtree <command> --help`` for full option listings.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from .config import TreeConfig
from .errors import EmptyRepertoireError, FormatError
from .flatten import flatten_pgn, format_line
from .position import root_fen
from .tree import OpeningTree


@click.group()
def main() -> None:
    """openingtree – per-position statistics for a player's openings.

    \b
    Commands:
      moves    Show move statistics for a position.
      flatten  Print every line of a repertoire PGN.
      compare  Check games against a repertoire.
    """


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


# ---------------------------------------------------------------------------
# moves
# ---------------------------------------------------------------------------


@main.command("moves")
@click.option("--games", "games_path", required=True, type=click.Path(exists=True),
              help="PGN file with the player's games.")
@click.option("--color", required=True, type=click.Choice(["white", "black"]),
              help="Colour the player had in the games to load.")
@click.option("--player", default=None,
              help="Only load games where this player had --color.")
@click.option("--fen", default=None,
              help="Position to query. Defaults to the variant's starting position.")
@click.option("--repertoire", "repertoire_path", default=None, type=click.Path(exists=True),
              help="Repertoire PGN; marks recommended moves.")
@click.option("--variant", default=None,
              help="Chess variant of the games (default chess, or OPENINGTREE_VARIANT).")
def moves_cmd(
    games_path: str,
    color: str,
    player: str | None,
    fen: str | None,
    repertoire_path: str | None,
    variant: str | None,
) -> None:
    """Load games and print the moves played from a position."""
    overrides = {} if variant is None else {"variant": variant}
    tree = OpeningTree(TreeConfig.from_env(**overrides))
    try:
        tree.load_games(_read(games_path), color, player=player)
        if repertoire_path:
            tree.load_repertoire(_read(repertoire_path), color)
    except (FormatError, EmptyRepertoireError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    fen = fen or root_fen(tree.config.variant)
    details = tree.details(fen)
    click.echo(f"[openingtree] {fen}")
    if not details.has_data:
        click.echo("  No games reached this position.")
        return
    avg = details.average_opponent_elo
    click.echo(
        f"  {details.count} games  {details.results}  "
        f"avg opponent {avg if avg is not None else '?'}"
    )
    for candidate in tree.moves(fen):
        marker = "*" if candidate.is_recommended else " "
        d = candidate.details
        score = d.score_percentage
        click.echo(
            f"  {marker} {candidate.san:<8} {candidate.count:>5}  "
            f"tier {candidate.level}  {d.results:<14} "
            f"{'' if score is None else f'{score:.0f}%'}"
        )


# ---------------------------------------------------------------------------
# flatten
# ---------------------------------------------------------------------------


@main.command("flatten")
@click.option("--repertoire", "repertoire_path", required=True, type=click.Path(exists=True),
              help="Repertoire PGN with nested variations.")
def flatten_cmd(repertoire_path: str) -> None:
    """Print one line per variation in a repertoire PGN."""
    try:
        lines = flatten_pgn(_read(repertoire_path))
    except FormatError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    for line in lines:
        click.echo(format_line(line))


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


@main.command("compare")
@click.option("--games", "games_path", required=True, type=click.Path(exists=True),
              help="PGN file with the games to check.")
@click.option("--repertoire", "repertoire_path", required=True, type=click.Path(exists=True),
              help="Repertoire PGN.")
@click.option("--color", required=True, type=click.Choice(["white", "black"]),
              help="Colour the repertoire is for.")
@click.option("--max-moves", "max_moves", default=None, type=int,
              help="Half-moves to compare (default 10, or OPENINGTREE_MAX_MOVES_TO_COMPARE).")
def compare_cmd(
    games_path: str,
    repertoire_path: str,
    color: str,
    max_moves: int | None,
) -> None:
    """Report where each game leaves the repertoire."""
    overrides = {} if max_moves is None else {"max_moves_to_compare": max_moves}
    tree = OpeningTree(TreeConfig.from_env(**overrides))
    try:
        tree.load_repertoire(_read(repertoire_path), color)
        results = tree.compare_games(_read(games_path))
    except (FormatError, EmptyRepertoireError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    deviations = 0
    for i, (game, comparison) in enumerate(results, 1):
        label = f"{game.headers.get('White', '?')} - {game.headers.get('Black', '?')}"
        dev = comparison.deviation
        if dev is None:
            click.echo(f"  {i:>3}. {label}: in repertoire ({len(comparison.matches)} matches)")
            continue
        deviations += 1
        expected = " ".join(dev.repertoire_line) or "?"
        click.echo(
            f"  {i:>3}. {label}: deviated at half-move {dev.at_move} "
            f"with {dev.played_move} (repertoire: {expected})"
        )
    click.echo(f"[openingtree] {len(results)} games, {deviations} deviations.")
