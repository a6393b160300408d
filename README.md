# bananas-server

The game engine for a multiplayer tile game in which players race to arrange
letter tiles into a single connected grid of valid words.

The package provides:

- `bananas_server.game`: `GameConfig` and `Game`. These hold one game's
  rules and its tile pool, and handle join, start, snag, swap, move, chat,
  refresh, finish and delete messages.
- `bananas_server.runner`: `RunnerConfig` and `Runner`. The runner creates
  games, hands each message to the game it is for and gathers the output of
  all games on one queue.
- `bananas_server.lobby`: `LobbyConfig` and `Lobby`. The lobby sits between a
  socket runner and the game runner and keeps a list of game infos sorted by
  id.
- `bananas_server.player`: `PlayerConfig` and `Player`, which hold a player's
  win points and board.
- `bananas_server.tokens`: `TokenizerConfig` and `JwtTokenizer`, which make
  HS256 session tokens that carry a username and a point total.
- `bananas_server.models`: `Tile`, `GameStatus`, `MessageType`, `GameRules`,
  `GameInfo`, `Message` and `SocketMessage`, the values passed between these
  parts.
- `bananas_server.errors`: `GameWarning`, the error raised for a player's
  mistake, as opposed to a fault on the server.

## Installation

```
pip install .
```

To install and run the test suite:

```
pip install ".[test]"
pytest
```

## Tokens

```python
import time
from bananas_server.tokens import TokenizerConfig

config = TokenizerConfig(time_func=lambda: int(time.time()), valid_sec=3600)
tokenizer = config.new_tokenizer("secret")

issued = tokenizer.create("selene", 10)
assert tokenizer.read_username(issued) == "selene"
```

`new_tokenizer` raises `ValueError` in three cases: the key is missing, there
is no time function, or the lifetime is not positive. `read_username` checks
expiry and not-before against `time_func`. For a token that is expired,
not yet valid, or badly signed, it raises `jwt.InvalidTokenError` or one of
its subclasses.

## Players

```python
from bananas_server.player import PlayerConfig

player = PlayerConfig(win_points=10).new(board)
```

Win points must be above 1, and `new` raises `ValueError` otherwise. If a
game's rules set `penalize`, a player whose board fails a check loses one win
point. This only happens while the player has more than 2, so win points never
drop below 2.

## Games

`GameConfig.new_game(game_id, word_validator, user_dao, logger)` checks the
config and raises `ValueError` when something is missing or out of range. The
config holds:

- `max_players`
- `num_new_tiles`: the number of tiles each new player starts with.
- `tile_letters`: upper case letters, one per tile. When left empty, the
  standard 144 letters are used.
- `idle_period`: in seconds.
- `time_func`
- `shuffle_unused_tiles_func` and `shuffle_players_func`
- `board_factory`
- `player_cfg`
- `rules`: a `GameRules` with `check_on_snag`, `penalize`, `min_length` and
  `prohibit_duplicates`.

The word validator needs a `validate(word)` method. The user store needs an
`update_points_increment(user_points)` method. It is called when a player
wins: the winner gets their win points and every other player gets one point.

`await game.run(inbox, outbox)` reads `Message` objects from an
`asyncio.Queue` and writes replies to another. Every outgoing message carries
the game's id. The game stops in three cases:

- the inbox yields `None`;
- it handles a delete message;
- a whole idle period passes with no message from a player in the game. In
  that case it first tells the players to leave.

A player's mistake, such as snagging before the game has started, comes back
to that player as a `SOCKET_WARNING` message. Any other failure comes back as
a `SOCKET_ERROR` message.

## Runner and lobby

`RunnerConfig(max_games=..., game_config=...).new_runner(word_validator,
user_dao, logger)` creates a `Runner`.

`runner.run(inbox)` starts a task and returns the queue on which all games
publish. The runner reacts to messages as follows:

- A `CREATE_GAME` message starts a new game with the next id and the rules
  from the message, then joins the sender to it.
- A `DELETE_GAME` message removes the game.
- Any other message goes to the game named by its `game.id`.

When the inbox yields `None`, the runner cancels its games and puts `None` on
its output.

`LobbyConfig().new_lobby(socket_runner, game_runner, logger)` creates a
`Lobby`. `lobby.run()` starts both runners and returns the routing task, which
works as follows:

- Messages from the socket runner go to the game runner, except `GAME_INFOS`
  requests. The lobby answers those with `game_infos()`.
- Game info changes from the game runner update the lobby's cache and are sent
  on as a sorted list.
- Every other game message goes to the socket runner.

The routing stops when either runner's output yields `None`.

`await lobby.add_user(username, connection)` asks the socket runner to open a
socket and raises the error it reports, if any. `lobby.remove_user(username)`
asks it to close the user's sockets.

## What is not included

The package has no board implementation. Boards are duck-typed. A board
provides:

- `unused_tiles`, `unused_tile_ids` and `used_tiles`;
- `can_be_finished()`, `used_tile_words()`, `add_tile()`, `remove_tile()`,
  `move_tiles()` and `resize()`;
- a config whose `new(tiles)` creates a board.

The package also has none of the following. Callers supply them:

- a socket runner, HTTP or websocket server, or command to start one;
- a word list or word validator;
- a user store.