from bananas_server.errors import GameWarning


def test_game_warning_error_text():
    want = "x"
    err = GameWarning(want)
    assert str(err) == want


def test_game_warning_keeps_text():
    err = GameWarning("snag first")
    assert err.text == "snag first"
    assert str(err) == "snag first"


def test_game_warning_args_hold_text():
    err = GameWarning("no room for another player in game")
    assert err.args == ("no room for another player in game",)