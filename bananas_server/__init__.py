"""Games, a game runner, a lobby and session tokens for a multiplayer word-tile game."""

__version__ = "0.1.0"