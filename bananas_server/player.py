"""Per-player state within a game."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class Player:
    """A player's board and the points they get if they win."""

    win_points: int = 0
    board: Any = None


@dataclass(frozen=True)
class PlayerConfig:
    """Settings used to create players."""

    win_points: int = 0

    def new(self, board: Any) -> Player:
        """Create a player who plays on the given board."""
        if self.win_points <= 1:
            raise ValueError("creating player: validation: winPoints must be over 1")
        return Player(win_points=self.win_points, board=board)