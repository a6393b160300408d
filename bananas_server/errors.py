"""Errors raised while playing a game."""

from __future__ import annotations


class GameWarning(Exception):
    """A problem caused by what a user tried to do, not by the server."""

    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text

    def __str__(self) -> str:
        return self.text