"""Runtime configuration.

Defaults can be overridden from the environment:

  ``OPENINGTREE_MAX_MOVES_TO_COMPARE``  half-moves examined by repertoire
                                        comparison (default 10)
  ``OPENINGTREE_VARIANT``               chess variant name (default ``chess``)
  ``OPENINGTREE_EXPLORER_URL``          opening-book endpoint
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

MAX_MOVES_TO_COMPARE = 10
DEFAULT_EXPLORER_URL = "https://explorer.lichess.ovh/lichess"
DEFAULT_BOOK_RATINGS = [1600, 1800, 2000, 2200, 2500]
DEFAULT_BOOK_SPEEDS = ["bullet", "blitz", "rapid", "classical", "correspondence"]


@dataclass
class TreeConfig:
    variant: str = "chess"
    max_moves_to_compare: int = MAX_MOVES_TO_COMPARE
    explorer_url: str = DEFAULT_EXPLORER_URL
    book_ratings: list[int] = field(default_factory=lambda: list(DEFAULT_BOOK_RATINGS))
    book_speeds: list[str] = field(default_factory=lambda: list(DEFAULT_BOOK_SPEEDS))
    book_workers: int = 2
    verbose: bool = True

    @classmethod
    def from_env(cls, **overrides: object) -> "TreeConfig":
        """Build a config from ``OPENINGTREE_*`` variables, then *overrides*."""
        values: dict[str, object] = {}
        env_max = os.environ.get("OPENINGTREE_MAX_MOVES_TO_COMPARE")
        if env_max:
            try:
                values["max_moves_to_compare"] = int(env_max)
            except ValueError:
                raise ValueError(
                    f"OPENINGTREE_MAX_MOVES_TO_COMPARE must be an integer, got {env_max!r}"
                ) from None
        env_variant = os.environ.get("OPENINGTREE_VARIANT")
        if env_variant:
            values["variant"] = env_variant
        env_url = os.environ.get("OPENINGTREE_EXPLORER_URL")
        if env_url:
            values["explorer_url"] = env_url
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
