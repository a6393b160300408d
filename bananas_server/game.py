"""A tile-based word-forming game played between users."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bananas_server.errors import GameWarning
from bananas_server.models import (
    GameInfo,
    GameRules,
    GameStatus,
    Message,
    MessageType,
    Tile,
)
from bananas_server.player import Player, PlayerConfig

DEFAULT_TILE_LETTERS = (
    "AAAAAAAAAAAAABBBCCCDDDDDDEEEEEEEEEEEEEEEEEEFFFGGGGHHHIIIIIIIIIIIIJJKKLLLLLMMMNNNNNNNN"
    "OOOOOOOOOOOPPPQQRRRRRRRRRSSSSSSTTTTTTTTTUUUUUUVVVWWWXXYYYZZ"
)

_NOT_IN_PROGRESS = "game has not started or is finished"

Sender = Callable[[Message], None]


@dataclass
class GameConfig:
    """Properties used to create similar games.

    Boards are duck-typed: a board carries ``unused_tiles`` (id to tile),
    ``unused_tile_ids``, ``used_tiles`` and ``config``, and offers
    ``can_be_finished()``, ``used_tile_words()``, ``add_tile(tile)``,
    ``remove_tile(tile)``, ``move_tiles(used_tiles)`` and ``resize(config)``.
    A board config offers ``new(tiles)``. ``board_factory(tiles, positions)``
    builds the boards carried on outgoing messages.
    """

    debug: bool = False
    time_func: Callable[[], int] | None = None
    max_players: int = 0
    player_cfg: PlayerConfig = field(default_factory=PlayerConfig)
    num_new_tiles: int = 0
    tile_letters: str = ""
    idle_period: float = 0.0
    shuffle_unused_tiles_func: Callable[[list[Tile]], None] | None = None
    shuffle_players_func: Callable[[list[str]], None] | None = None
    board_factory: Callable[[Any, Any], Any] | None = None
    rules: GameRules = field(default_factory=GameRules)

    def validate(self, game_id, word_validator, user_dao, logger) -> None:
        """Raise ValueError if the game cannot be created; fill in default tile letters."""
        if not self.tile_letters:
            self.tile_letters = DEFAULT_TILE_LETTERS
        checks = [
            (logger is None, "log required"),
            (game_id <= 0, "positive id required"),
            (word_validator is None, "word validator required"),
            (user_dao is None, "user dao required"),
            (self.time_func is None, "time func required"),
            (self.max_players <= 0, "positive max player count required"),
            (self.num_new_tiles <= 0, "positive number of player starting tile count required"),
            (self.idle_period <= 0, "positive idle period required"),
            (self.shuffle_unused_tiles_func is None, "function to shuffle tiles required"),
            (self.shuffle_players_func is None, "function to shuffle player draw order required"),
            (self.board_factory is None, "board factory required"),
            (
                len(self.tile_letters) < self.num_new_tiles,
                "not enough tiles for a single player to join the game",
            ),
        ]
        for failed, problem in checks:
            if failed:
                raise ValueError(problem)

    def new_game(self, game_id, word_validator, user_dao, logger) -> "Game":
        """Create a game with shuffled unused tiles."""
        try:
            self.validate(game_id, word_validator, user_dao, logger)
        except ValueError as err:
            raise ValueError(f"creating game: validation: {err}") from err
        assert self.time_func is not None
        game = Game(
            config=self,
            id=game_id,
            word_validator=word_validator,
            user_dao=user_dao,
            logger=logger,
            created_at=self.time_func(),
            status=GameStatus.NOT_STARTED,
        )
        game._initialize_unused_tiles()
        return game


@dataclass
class Game:
    """The state and message handling of a single game."""

    config: GameConfig = field(default_factory=GameConfig)
    id: int = 0
    word_validator: Any = None
    user_dao: Any = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    created_at: int = 0
    status: GameStatus | None = None
    players: dict[str, Player | None] = field(default_factory=dict)
    unused_tiles: list[Tile] = field(default_factory=list)

    def _initialize_unused_tiles(self) -> None:
        try:
            tiles = [
                Tile.from_letter(i, ch)
                for i, ch in enumerate(self.config.tile_letters, start=1)
            ]
        except ValueError as err:
            raise ValueError(f"creating tile: {err}") from err
        assert self.config.shuffle_unused_tiles_func is not None
        self.config.shuffle_unused_tiles_func(tiles)
        self.unused_tiles = tiles

    def _handlers(self) -> dict[MessageType, Callable[[Message, Sender], None]]:
        return {
            MessageType.JOIN_GAME: self.handle_join,
            MessageType.DELETE_GAME: self.handle_delete,
            MessageType.CHANGE_GAME_STATUS: self.handle_status_change,
            MessageType.SNAG_GAME_TILE: self.handle_snag,
            MessageType.SWAP_GAME_TILE: self.handle_swap,
            MessageType.MOVE_GAME_TILE: self.handle_tiles_moved,
            MessageType.GAME_CHAT: self.handle_chat,
            MessageType.REFRESH_GAME_BOARD: self.handle_board_refresh,
        }

    def _sender(self, outbox: asyncio.Queue) -> Sender:
        def send(message: Message) -> None:
            if message.game is None:
                message.game = GameInfo()
            message.game.id = self.id
            if self.config.debug:
                self.logger.debug("game sending message with type %s", message.type)
            outbox.put_nowait(message)

        return send

    async def run(self, inbox: asyncio.Queue, outbox: asyncio.Queue) -> None:
        """Handle messages until the inbox yields None, the game is deleted or it idles."""
        send = self._sender(outbox)
        period = self.config.idle_period
        loop = asyncio.get_running_loop()
        deadline = loop.time() + period
        active = False
        while True:
            try:
                message = await asyncio.wait_for(
                    inbox.get(), max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                if not active:
                    self.logger.info("deleted game %s due to inactivity", self.id)
                    self.handle_delete(Message(), send)
                    return
                active = False
                deadline += period
                continue
            if message is None:
                return
            if self.handle_message(message, send):
                active = True
            if message.type is MessageType.DELETE_GAME:
                return

    def handle_message(self, message: Message, send: Sender) -> bool:
        """Handle a message, sending a socket warning or error if it fails.

        Returns whether the message was from a player in the game and had a handler.
        """
        if self.config.debug:
            self.logger.debug("game reading message with type %s", message.type)
        active = False
        try:
            handler = self._handlers().get(message.type)
            if handler is None:
                raise ValueError(
                    f"game does not know how to handle MessageType {message.type}"
                )
            if message.player_name not in self.players and message.type is not MessageType.JOIN_GAME:
                raise ValueError(f"game does not have player named '{message.player_name}'")
            active = True
            handler(message, send)
        except Exception as err:  # noqa: BLE001 - reported to the player
            kind = (
                MessageType.SOCKET_WARNING
                if isinstance(err, GameWarning)
                else MessageType.SOCKET_ERROR
            )
            send(
                Message(
                    type=kind,
                    player_name=message.player_name,
                    game=message.game,
                    info=str(err),
                )
            )
        return active

    def handle_join(self, message: Message, send: Sender) -> None:
        """Add the player to the game, or refresh their board if they rejoin."""
        try:
            if message.player_name in self.players:
                self.handle_board_refresh(message, send)
            elif self.status is not GameStatus.NOT_STARTED:
                raise GameWarning("cannot join game that has been started")
            elif len(self.players) >= self.config.max_players:
                raise GameWarning("no room for another player in game")
            elif len(self.unused_tiles) < self.config.num_new_tiles:
                raise GameWarning("not enough tiles to join the game")
            else:
                self.handle_add_player(message, send)
        except Exception as err:
            send(
                Message(
                    type=MessageType.LEAVE_GAME,
                    player_name=message.player_name,
                    info=str(err),
                    addr=message.addr,
                )
            )
            raise

    def handle_add_player(self, message: Message, send: Sender) -> None:
        """Give a new player their starting tiles and tell everyone."""
        count = self.config.num_new_tiles
        new_tiles = self.unused_tiles[:count]
        self.unused_tiles = self.unused_tiles[count:]
        board = message.game.board.config.new(new_tiles)
        try:
            player = self.config.player_cfg.new(board)
        except ValueError as err:
            raise ValueError(f"creating player: {err}") from err
        self.players[message.player_name] = player
        try:
            reply = self.resize_board(message)
        except Exception as err:
            raise ValueError(f"creating board message: {err}") from err
        reply.info = "joining game"
        send(reply)
        game_players = reply.game.players
        for name in self.players:
            if name == message.player_name:
                continue
            send(
                Message(
                    type=MessageType.CHANGE_GAME_TILES,
                    player_name=name,
                    info=f"{message.player_name} joined the game",
                    game=GameInfo(tiles_left=len(self.unused_tiles), players=game_players),
                )
            )
        self.info_changed(send)

    def handle_delete(self, message: Message, send: Sender) -> None:
        """Tell every player to leave and mark the game deleted."""
        for name in self.players:
            send(Message(type=MessageType.LEAVE_GAME, player_name=name, info="game deleted"))
        self.status = GameStatus.DELETED
        self.info_changed(send)

    def handle_status_change(self, message: Message, send: Sender) -> None:
        """Start or finish the game."""
        wanted = message.game.status
        if wanted is GameStatus.IN_PROGRESS:
            self.handle_start(message, send)
        elif wanted is GameStatus.FINISHED:
            self.handle_finish(message, send)
        else:
            raise ValueError(f"cannot change game state from {self.status}")
        self.info_changed(send)

    def handle_start(self, message: Message, send: Sender) -> None:
        """Start the game."""
        if self.status is not GameStatus.NOT_STARTED:
            raise GameWarning("can only set game status to started")
        self.status = GameStatus.IN_PROGRESS
        info = f"{message.player_name} started the game"
        for name in self.players:
            send(
                Message(
                    type=MessageType.CHANGE_GAME_STATUS,
                    player_name=name,
                    info=info,
                    game=GameInfo(status=self.status, tiles_left=len(self.unused_tiles)),
                )
            )

    def check_player_board(self, player_name: str, check_words: bool) -> list[str] | None:
        """Return the player's words, raising GameWarning if the board is not valid.

        The player's win points are decremented on failure if the rules penalize.
        """
        player = self.players[player_name]
        used_words: list[str] | None = None
        problem = ""
        if player.board.unused_tiles:
            problem = "not all tiles used"
        elif not player.board.can_be_finished():
            problem = "not all used tiles form a single group"
        elif check_words:
            try:
                used_words = self.check_words(player_name)
            except ValueError as err:
                problem = str(err)
        if problem:
            text = "invalid board: " + problem
            if self.config.rules.penalize and player.win_points > 2:
                player.win_points -= 1
                text += ", possible win points decremented"
            raise GameWarning(text)
        return used_words

    def check_words(self, player_name: str) -> list[str]:
        """Return the player's words, raising ValueError if any breaks the rules."""
        rules = self.config.rules
        used_words = list(self.players[player_name].board.used_tile_words())
        invalid_words: list[str] = []
        seen: set[str] = set()
        problem = ""
        for word in used_words:
            if rules.prohibit_duplicates and word in seen:
                problem = "duplicate words are prohibited"
                break
            seen.add(word)
            if len(word) < rules.min_length:
                problem = f"short word detected, all must be at least {rules.min_length} characters"
                break
            if not self.word_validator.validate(word):
                invalid_words.append(word)
        if invalid_words:
            problem = f"invalid words: {invalid_words}"
        if problem:
            raise ValueError(problem)
        return used_words

    def handle_finish(self, message: Message, send: Sender) -> None:
        """Finish the game if the sending player's board wins."""
        if self.status is not GameStatus.IN_PROGRESS:
            raise GameWarning(_NOT_IN_PROGRESS)
        if self.unused_tiles:
            raise GameWarning("snag first")
        used_words = self.check_player_board(message.player_name, True) or []
        player = self.players[message.player_name]
        self.status = GameStatus.FINISHED
        info = (
            f"WINNER! - {message.player_name} won, creating {len(used_words)} words, "
            f"getting {player.win_points} points.  Other players each get 1 point.  "
            "View other player's boards on the 'Final Boards' tab,"
        )
        try:
            self.update_user_points(message.player_name)
        except Exception as err:  # noqa: BLE001 - the game still finishes
            self.logger.error("updating user points: %s", err)
            info = str(err)
        final_boards = self.final_boards()
        for name in self.players:
            send(
                Message(
                    type=MessageType.CHANGE_GAME_STATUS,
                    player_name=name,
                    info=info,
                    game=GameInfo(status=GameStatus.FINISHED, final_boards=final_boards),
                )
            )

    def _take_tile(self, name: str) -> list[Tile]:
        tile = self.unused_tiles[0]
        self.players[name].board.add_tile(tile)
        self.unused_tiles = self.unused_tiles[1:]
        return [tile]

    def handle_snag(self, message: Message, send: Sender) -> None:
        """Give the snagging player a tile, then others one each while tiles remain."""
        if self.status is not GameStatus.IN_PROGRESS:
            raise GameWarning(_NOT_IN_PROGRESS)
        if not self.unused_tiles:
            raise GameWarning("no tiles left to snag, use what you have to finish")
        self.check_player_board(message.player_name, self.config.rules.check_on_snag)
        snagger = message.player_name
        others = [name for name in self.players if name != snagger]
        self.config.shuffle_players_func(others)
        replies: dict[str, Message] = {}
        for name in [snagger, *others]:
            reply = Message(type=MessageType.CHANGE_GAME_TILES, player_name=name)
            tiles: list[Tile] = []
            if name == snagger:
                reply.info = "snagged a tile"
                tiles = self._take_tile(name)
            elif not self.unused_tiles:
                reply.info = f"{snagger} snagged a tile"
            else:
                reply.info = f"{snagger} snagged a tile, adding a tile to your pile"
                tiles = self._take_tile(name)
            reply.game = GameInfo(board=self.config.board_factory(tiles, None))
            replies[name] = reply
        for reply in replies.values():
            reply.game.tiles_left = len(self.unused_tiles)
            send(reply)

    def handle_swap(self, message: Message, send: Sender) -> None:
        """Swap one of the player's tiles for up to three others."""
        if self.status is not GameStatus.IN_PROGRESS:
            raise GameWarning(_NOT_IN_PROGRESS)
        if len(message.game.board.unused_tiles) != 1:
            raise GameWarning("no tile specified for swap")
        if not self.unused_tiles:
            raise GameWarning("no tiles left to swap, user what you have to finish")
        tile_id = message.game.board.unused_tile_ids[0]
        tile = message.game.board.unused_tiles[tile_id]
        player = self.players[message.player_name]
        player.board.remove_tile(tile)
        self.unused_tiles.append(tile)
        self.config.shuffle_unused_tiles_func(self.unused_tiles)
        new_tiles: list[Tile] = []
        while len(new_tiles) < 3 and self.unused_tiles:
            new_tiles.extend(self._take_tile(message.player_name))
        for name in self.players:
            reply = Message(
                type=MessageType.CHANGE_GAME_TILES,
                player_name=name,
                game=GameInfo(tiles_left=len(self.unused_tiles)),
            )
            if name == message.player_name:
                reply.info = f"swapping {tile.ch} tile"
                reply.game.board = self.config.board_factory(new_tiles, None)
            else:
                reply.info = f"{message.player_name} swapped a tile"
            send(reply)

    def handle_tiles_moved(self, message: Message, send: Sender) -> None:
        """Move tiles on the player's board."""
        if self.status is not GameStatus.IN_PROGRESS:
            raise GameWarning(_NOT_IN_PROGRESS)
        self.players[message.player_name].board.move_tiles(message.game.board.used_tiles)

    def handle_board_refresh(self, message: Message, send: Sender) -> None:
        """Send the player's board back to them."""
        send(self.resize_board(message))

    def handle_chat(self, message: Message, send: Sender) -> None:
        """Send a chat line to everyone in the game."""
        info = f"{message.player_name} : {message.info}"
        for name in self.players:
            send(Message(type=MessageType.GAME_CHAT, player_name=name, info=info))

    def update_user_points(self, winning_player_name: str) -> None:
        """Give the winner their win points and everyone else one point."""
        user_points = {
            name: player.win_points if name == winning_player_name else 1
            for name, player in self.players.items()
        }
        self.user_dao.update_points_increment(user_points)

    def player_names(self) -> list[str]:
        """The sorted names of the players."""
        return sorted(self.players)

    def info_changed(self, send: Sender) -> None:
        """Send the game's summary info."""
        info = GameInfo(
            id=self.id,
            status=self.status,
            players=self.player_names(),
            created_at=self.created_at,
            capacity=self.config.max_players,
        )
        send(Message(type=MessageType.GAME_INFOS, game=info))

    def resize_board(self, message: Message) -> Message:
        """Build a message with the player's board fitted to the requested size."""
        board = self.players[message.player_name].board
        result = board.resize(message.game.board.config)
        reply = Message(
            info=result.info,
            type=message.type,
            player_name=message.player_name,
            game=GameInfo(
                board=self.config.board_factory(result.tiles, result.tile_positions),
                tiles_left=len(self.unused_tiles),
                status=self.status,
                players=self.player_names(),
                id=self.id,
                config=self.config.rules,
            ),
            addr=message.addr,
        )
        if self.status is GameStatus.FINISHED:
            reply.game.final_boards = self.final_boards()
        return reply

    def final_boards(self) -> dict[str, Any]:
        """The boards of all players, by name."""
        return {name: player.board for name, player in self.players.items()}