"""Values passed between players, games, the game runner and the lobby."""

from __future__ import annotations

import asyncio
import string
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import Any

_TILE_LETTERS = frozenset(string.ascii_uppercase)


@dataclass(frozen=True)
class Tile:
    """A lettered tile with an identifier unique within a game."""

    id: int = 0
    ch: str = ""

    @classmethod
    def from_letter(cls, tile_id: int, letter: str) -> "Tile":
        """Create a tile, requiring a single upper case letter."""
        if len(letter) != 1 or letter not in _TILE_LETTERS:
            raise ValueError(f"invalid tile letter: {letter!r}")
        return cls(id=tile_id, ch=letter)


class GameStatus(IntEnum):
    """The stage a game is in."""

    NOT_STARTED = 1
    IN_PROGRESS = 2
    FINISHED = 3
    DELETED = 4


class MessageType(Enum):
    """The kind of a message."""

    CREATE_GAME = auto()
    JOIN_GAME = auto()
    LEAVE_GAME = auto()
    DELETE_GAME = auto()
    GAME_INFOS = auto()
    CHANGE_GAME_STATUS = auto()
    CHANGE_GAME_TILES = auto()
    REFRESH_GAME_BOARD = auto()
    SNAG_GAME_TILE = auto()
    SWAP_GAME_TILE = auto()
    MOVE_GAME_TILE = auto()
    GAME_CHAT = auto()
    SOCKET_WARNING = auto()
    SOCKET_ERROR = auto()
    SOCKET_ADD = auto()
    PLAYER_REMOVE = auto()
    SOCKET_HTTP_PING = auto()


@dataclass
class GameRules:
    """Rules chosen by the player who creates a game."""

    check_on_snag: bool = False
    penalize: bool = False
    min_length: int = 0
    prohibit_duplicates: bool = False


@dataclass
class GameInfo:
    """What is known about a game, as carried on messages."""

    id: int = 0
    status: GameStatus | None = None
    board: Any = None
    tiles_left: int = 0
    players: list[str] = field(default_factory=list)
    created_at: int = 0
    capacity: int = 0
    config: GameRules | None = None
    final_boards: dict[str, Any] | None = None


@dataclass
class Message:
    """A message sent between sockets, the lobby, the runner and games."""

    type: MessageType | None = None
    player_name: str = ""
    info: str = ""
    game: GameInfo | None = None
    games: list[GameInfo] = field(default_factory=list)
    addr: str = ""


@dataclass
class SocketMessage:
    """A request to add or remove sockets for a player."""

    type: MessageType | None = None
    player_name: str = ""
    connection: Any = None
    result: asyncio.Future[Exception | None] | None = None