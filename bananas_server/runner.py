"""Creates games and passes each message to the game it is for."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

from bananas_server.game import GameConfig
from bananas_server.models import Message, MessageType


@dataclass
class RunnerConfig:
    """Settings used to create a game runner."""

    debug: bool = False
    max_games: int = 0
    game_config: GameConfig = field(default_factory=GameConfig)

    def new_runner(self, word_validator: Any, user_dao: Any, logger: Any) -> "Runner":
        """Create a runner, raising ValueError if the settings are not usable."""
        if logger is None:
            problem = "log required"
        elif word_validator is None:
            problem = "word validator required"
        elif user_dao is None:
            problem = "user dao required"
        elif self.max_games < 1:
            problem = "must be able to create at least one game"
        else:
            return Runner(
                config=self,
                word_validator=word_validator,
                user_dao=user_dao,
                logger=logger,
            )
        raise ValueError(f"creating game runner: validation: {problem}")


@dataclass
class Runner:
    """Runs games, routing incoming messages to them.

    Every game publishes to the same outbox the runner returns from ``run``.
    """

    config: RunnerConfig = field(default_factory=RunnerConfig)
    word_validator: Any = None
    user_dao: Any = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    games: dict[int, asyncio.Queue] = field(default_factory=dict)
    last_id: int = 0
    task: asyncio.Task | None = field(default=None, init=False, repr=False, compare=False)
    _game_tasks: set[asyncio.Task] = field(
        default_factory=set, init=False, repr=False, compare=False
    )

    def run(self, inbox: asyncio.Queue) -> asyncio.Queue:
        """Start handling messages from the inbox until it yields None.

        Returns the outbox; None is put on it once the runner has stopped.
        """
        outbox: asyncio.Queue = asyncio.Queue()
        self.task = asyncio.create_task(self._run(inbox, outbox))
        return outbox

    async def _run(self, inbox: asyncio.Queue, outbox: asyncio.Queue) -> None:
        try:
            while True:
                message = await inbox.get()
                if message is None:
                    return
                self.handle_message(message, outbox)
        finally:
            running = list(self._game_tasks)
            for game_task in running:
                game_task.cancel()
            if running:
                await asyncio.gather(*running, return_exceptions=True)
            outbox.put_nowait(None)
            self.logger.info("game runner stopped")

    def handle_message(self, message: Message, outbox: asyncio.Queue) -> None:
        """Create, delete or forward to a game depending on the message type."""
        if message.type is MessageType.CREATE_GAME:
            self._create_game(message, outbox)
        elif message.type is MessageType.DELETE_GAME:
            self._delete_game(message, outbox)
        else:
            self._forward(message, outbox)

    def _send(self, message: Message, queue: asyncio.Queue) -> None:
        if self.config.debug:
            self.logger.debug("game runner sending message with type %s", message.type)
        queue.put_nowait(message)

    def _validate_create_game(self, message: Message) -> None:
        if len(self.games) >= self.config.max_games:
            raise ValueError(
                "the maximum number of games have already been created "
                f"({self.config.max_games})"
            )
        if message.game is None or message.game.board is None:
            raise ValueError("board config required when creating game")
        if message.game.config is None:
            raise ValueError("missing config for game properties")

    def _create_game(self, message: Message, outbox: asyncio.Queue) -> None:
        try:
            self._validate_create_game(message)
            game_id = self.last_id + 1
            game_config = dataclasses.replace(
                self.config.game_config, rules=message.game.config
            )
            game = game_config.new_game(
                game_id, self.word_validator, self.user_dao, self.logger
            )
        except ValueError as err:
            self._send_error(err, message.player_name, outbox)
            return
        self.last_id = game_id
        game_inbox: asyncio.Queue = asyncio.Queue()
        game_task = asyncio.create_task(game.run(game_inbox, outbox))
        self._game_tasks.add(game_task)
        game_task.add_done_callback(self._game_tasks.discard)
        self.games[game_id] = game_inbox
        self._send(dataclasses.replace(message, type=MessageType.JOIN_GAME), game_inbox)

    def _delete_game(self, message: Message, outbox: asyncio.Queue) -> None:
        try:
            game_inbox = self._game_inbox(message)
        except ValueError as err:
            self._send_error(err, message.player_name, outbox)
            return
        del self.games[message.game.id]
        self._send(message, game_inbox)

    def _forward(self, message: Message, outbox: asyncio.Queue) -> None:
        try:
            game_inbox = self._game_inbox(message)
        except ValueError as err:
            self._send_error(err, message.player_name, outbox)
            return
        self._send(message, game_inbox)

    def _game_inbox(self, message: Message) -> asyncio.Queue:
        if message.game is None:
            raise ValueError(f"no game for runner to handle in message: {message}")
        game_inbox = self.games.get(message.game.id)
        if game_inbox is None:
            raise ValueError(f"no game ID for runner to handle in message: {message}")
        return game_inbox

    def _send_error(self, err: Exception, player_name: str, outbox: asyncio.Queue) -> None:
        text = f"player {player_name}: {err}"
        self.logger.error("game runner error: %s", text)
        self._send(
            Message(type=MessageType.SOCKET_ERROR, info=text, player_name=player_name),
            outbox,
        )