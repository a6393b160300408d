import asyncio
import logging
from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from bananas_server.game import GameConfig
from bananas_server.models import GameInfo, GameRules, Message, MessageType
from bananas_server.player import PlayerConfig
from bananas_server.runner import Runner, RunnerConfig

LOGGER = logging.getLogger("tests.runner")


class WordValidator:
    def validate(self, word):
        return True


class UserDao:
    def update_points_increment(self, user_points):
        return None


@dataclass
class FakeBoardConfig:
    num_rows: int = 0
    num_cols: int = 0

    def new(self, tiles):
        return FakeBoard(config=self, tiles=list(tiles))


@dataclass
class FakeBoard:
    config: FakeBoardConfig = field(default_factory=FakeBoardConfig)
    tiles: list = field(default_factory=list)

    def resize(self, config):
        return SimpleNamespace(info="", tiles=self.tiles, tile_positions=None)


def board_factory(tiles, positions):
    return FakeBoard(tiles=list(tiles or []))


def happy_game_config():
    return GameConfig(
        player_cfg=PlayerConfig(win_points=10),
        time_func=lambda: 0,
        max_players=1,
        num_new_tiles=1,
        idle_period=3600.0,
        shuffle_unused_tiles_func=lambda tiles: None,
        shuffle_players_func=lambda names: None,
        board_factory=board_factory,
    )


async def next_message(queue):
    return await asyncio.wait_for(queue.get(), 1)


@pytest.mark.parametrize(
    "logger, word_validator, user_dao, max_games, problem",
    [
        (None, None, None, 0, "log required"),
        (LOGGER, None, None, 0, "word validator required"),
        (LOGGER, WordValidator(), None, 0, "user dao required"),
        (LOGGER, WordValidator(), UserDao(), 0, "at least one game"),
    ],
)
def test_new_runner_invalid(logger, word_validator, user_dao, max_games, problem):
    with pytest.raises(ValueError, match=problem):
        RunnerConfig(max_games=max_games).new_runner(word_validator, user_dao, logger)


@pytest.mark.parametrize("debug", [False, True])
def test_new_runner_ok(debug):
    config = RunnerConfig(debug=debug, max_games=10)
    word_validator = WordValidator()
    user_dao = UserDao()
    runner = config.new_runner(word_validator, user_dao, LOGGER)
    assert runner.config == RunnerConfig(debug=debug, max_games=10)
    assert runner.word_validator is word_validator
    assert runner.user_dao is user_dao
    assert runner.logger is LOGGER
    assert runner.games == {}
    assert runner.last_id == 0


@pytest.mark.asyncio
async def test_run_stops_when_inbox_yields_none():
    runner = Runner(logger=LOGGER)
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    await inbox.put(None)
    assert await next_message(outbox) is None
    assert runner.task.done()


@pytest.mark.asyncio
async def test_run_stops_when_cancelled():
    runner = Runner(logger=LOGGER)
    outbox = runner.run(asyncio.Queue())
    await asyncio.sleep(0)
    runner.task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner.task
    assert outbox.get_nowait() is None


@pytest.mark.asyncio
async def test_create_game_happy_path():
    rules = GameRules(check_on_snag=True)
    runner = Runner(
        config=RunnerConfig(max_games=1, game_config=happy_game_config()),
        word_validator=WordValidator(),
        user_dao=UserDao(),
        logger=LOGGER,
        last_id=3,
    )
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    await inbox.put(
        Message(
            type=MessageType.CREATE_GAME,
            player_name="selene",
            game=GameInfo(board=FakeBoard(config=FakeBoardConfig(18, 22)), config=rules),
        )
    )
    joined = await next_message(outbox)
    assert list(runner.games) == [4]
    assert runner.last_id == 4
    assert joined.type is MessageType.JOIN_GAME
    assert joined.game.id == 4
    assert joined.player_name == "selene"
    assert joined.game.config == GameRules(check_on_snag=True)
    assert runner.config.game_config.rules == GameRules()
    infos = await next_message(outbox)
    assert infos.type is MessageType.GAME_INFOS
    await inbox.put(None)
    assert await next_message(outbox) is None


@pytest.mark.parametrize(
    "message, runner_config",
    [
        (  # no room for game
            Message(type=MessageType.CREATE_GAME, player_name="selene"),
            RunnerConfig(max_games=0),
        ),
        (  # no game
            Message(type=MessageType.CREATE_GAME, player_name="selene"),
            RunnerConfig(max_games=1),
        ),
        (  # no board
            Message(type=MessageType.CREATE_GAME, player_name="selene", game=GameInfo()),
            RunnerConfig(max_games=1),
        ),
        (  # no config
            Message(
                type=MessageType.CREATE_GAME,
                player_name="selene",
                game=GameInfo(board=FakeBoard(config=FakeBoardConfig(18, 22))),
            ),
            RunnerConfig(max_games=1),
        ),
        (  # bad game config
            Message(
                type=MessageType.CREATE_GAME,
                player_name="selene",
                game=GameInfo(
                    board=FakeBoard(config=FakeBoardConfig(18, 22)),
                    config=GameRules(check_on_snag=True),
                ),
            ),
            RunnerConfig(max_games=1, game_config=GameConfig(max_players=-1)),
        ),
    ],
)
@pytest.mark.asyncio
async def test_create_game_errors(message, runner_config):
    runner = Runner(
        config=runner_config,
        word_validator=WordValidator(),
        user_dao=UserDao(),
        logger=LOGGER,
        last_id=3,
    )
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    await inbox.put(message)
    got = await next_message(outbox)
    assert got.type is MessageType.SOCKET_ERROR
    assert got.player_name == "selene"
    assert got.info.startswith("player selene: ")
    assert runner.games == {}
    assert runner.last_id == 3
    await inbox.put(None)
    assert await next_message(outbox) is None


@pytest.mark.parametrize("game", [None, GameInfo(id=4)])
@pytest.mark.asyncio
async def test_delete_unknown_game(game):
    game_inbox = asyncio.Queue()
    runner = Runner(logger=LOGGER, games={5: game_inbox})
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    await inbox.put(Message(type=MessageType.DELETE_GAME, game=game))
    got = await next_message(outbox)
    assert got.type is MessageType.SOCKET_ERROR
    assert list(runner.games) == [5]
    assert game_inbox.empty()
    await inbox.put(None)
    assert await next_message(outbox) is None


@pytest.mark.asyncio
async def test_delete_game():
    game_inbox = asyncio.Queue()
    runner = Runner(logger=LOGGER, games={5: game_inbox})
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    await inbox.put(Message(type=MessageType.DELETE_GAME, game=GameInfo(id=5)))
    forwarded = await next_message(game_inbox)
    assert forwarded.type is MessageType.DELETE_GAME
    assert runner.games == {}
    await inbox.put(None)
    assert await next_message(outbox) is None


@pytest.mark.parametrize("game", [None, GameInfo(id=2)])
def test_handle_game_message_unknown_game(game):
    game_inbox = asyncio.Queue()
    runner = Runner(logger=LOGGER, games={3: game_inbox})
    outbox = asyncio.Queue()
    runner.handle_message(Message(type=MessageType.GAME_CHAT, game=game), outbox)
    assert outbox.get_nowait().type is MessageType.SOCKET_ERROR
    assert game_inbox.empty()


@pytest.mark.asyncio
async def test_handle_game_message_forwarded():
    game_inbox = asyncio.Queue()
    runner = Runner(logger=LOGGER, games={3: game_inbox})
    inbox = asyncio.Queue()
    outbox = runner.run(inbox)
    message = Message(type=MessageType.GAME_CHAT, game=GameInfo(id=3), info="hi")
    await inbox.put(message)
    forwarded = await next_message(game_inbox)
    assert forwarded == message
    await inbox.put(None)
    assert await next_message(outbox) is None