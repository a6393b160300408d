"""The place where users create, join and take part in games.

The lobby sits between the socket runner and the game runner, and passes
requests to add and remove sockets on to the socket runner.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

from bananas_server.models import GameInfo, GameStatus, Message, MessageType, SocketMessage


@dataclass(frozen=True)
class LobbyConfig:
    """Settings used to create a lobby."""

    debug: bool = False

    def new_lobby(self, socket_runner: Any, game_runner: Any, logger: Any) -> "Lobby":
        """Create a lobby, raising ValueError if something it needs is missing."""
        if logger is None:
            problem = "log required"
        elif socket_runner is None:
            problem = "socket runner required"
        elif game_runner is None:
            problem = "game runner required"
        else:
            return Lobby(
                socket_runner=socket_runner,
                game_runner=game_runner,
                logger=logger,
                config=self,
            )
        raise ValueError(f"creating lobby: validation: {problem}")


@dataclass
class Lobby:
    """Routes messages between the socket runner and the game runner.

    The socket runner offers ``run(inbox, socket_messages)`` and the game
    runner ``run(inbox)``; each returns a queue that yields None when it stops.
    """

    socket_runner: Any = None
    game_runner: Any = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    config: LobbyConfig = field(default_factory=LobbyConfig)
    socket_messages: asyncio.Queue = field(default_factory=asyncio.Queue)
    games: dict[int, GameInfo] = field(default_factory=dict)
    task: asyncio.Task | None = field(default=None, init=False, repr=False, compare=False)

    def run(self) -> asyncio.Task:
        """Start both runners and route their messages until one of them stops."""
        socket_runner_in: asyncio.Queue = asyncio.Queue()
        game_runner_in: asyncio.Queue = asyncio.Queue()
        socket_runner_out = self.socket_runner.run(socket_runner_in, self.socket_messages)
        game_runner_out = self.game_runner.run(game_runner_in)
        self.task = asyncio.create_task(
            self._run(socket_runner_out, game_runner_out, socket_runner_in, game_runner_in)
        )
        return self.task

    async def _run(
        self,
        socket_runner_out: asyncio.Queue,
        game_runner_out: asyncio.Queue,
        socket_runner_in: asyncio.Queue,
        game_runner_in: asyncio.Queue,
    ) -> None:
        sources = {"socket": socket_runner_out, "game": game_runner_out}
        getters: dict[str, asyncio.Future] = {}
        try:
            while True:
                for name, queue in sources.items():
                    if name not in getters:
                        getters[name] = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    getters.values(), return_when=asyncio.FIRST_COMPLETED
                )
                for name in sources:
                    getter = getters.get(name)
                    if getter is None or getter not in done:
                        continue
                    del getters[name]
                    message = getter.result()
                    if message is None:
                        return
                    if name == "socket":
                        self._handle_socket_message(message, game_runner_in, socket_runner_in)
                    else:
                        self._handle_game_message(message, socket_runner_in)
        finally:
            for getter in getters.values():
                getter.cancel()
            socket_runner_in.put_nowait(None)
            game_runner_in.put_nowait(None)
            self.logger.info("lobby stopped")

    async def add_user(self, username: str, connection: Any) -> None:
        """Open a socket for the user, raising whatever error the socket runner reports."""
        result: asyncio.Future = asyncio.get_running_loop().create_future()
        await self.socket_messages.put(
            SocketMessage(
                type=MessageType.SOCKET_ADD,
                player_name=username,
                connection=connection,
                result=result,
            )
        )
        error = await result
        if error is not None:
            raise error

    def remove_user(self, username: str) -> None:
        """Ask the socket runner to close all sockets of the user."""
        self.socket_messages.put_nowait(
            SocketMessage(type=MessageType.PLAYER_REMOVE, player_name=username)
        )

    def game_infos(self) -> list[GameInfo]:
        """The cached game infos, sorted by game id."""
        return sorted(self.games.values(), key=lambda info: info.id)

    def _send(self, message: Message, queue: asyncio.Queue) -> None:
        if self.config.debug:
            self.logger.debug("lobby sending message with type %s", message.type)
        queue.put_nowait(message)

    def _handle_socket_message(
        self,
        message: Message,
        game_runner_in: asyncio.Queue,
        socket_runner_in: asyncio.Queue,
    ) -> None:
        if message.type is MessageType.GAME_INFOS:
            self._send(dataclasses.replace(message, games=self.game_infos()), socket_runner_in)
        else:
            self._send(message, game_runner_in)

    def _handle_game_message(self, message: Message, socket_runner_in: asyncio.Queue) -> None:
        if message.type is MessageType.GAME_INFOS:
            self._handle_game_info_changed(message, socket_runner_in)
        else:
            self._send(message, socket_runner_in)

    def _handle_game_info_changed(
        self, message: Message, socket_runner_in: asyncio.Queue
    ) -> None:
        if message.game is None:
            error = Message(
                type=MessageType.SOCKET_ERROR,
                info="cannot update game info when no game is provided",
                player_name=message.player_name,
            )
            self._send(error, socket_runner_in)
            self.logger.error(error.info)
            return
        if message.game.status is GameStatus.DELETED:
            self.games.pop(message.game.id, None)
        else:
            self.games[message.game.id] = message.game
        self._send(Message(type=MessageType.GAME_INFOS, games=self.game_infos()), socket_runner_in)