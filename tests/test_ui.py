"""Tests for the terminal front-end: command parsing and rendering."""

import io

import pytest
from rich.console import Console

from coinduel.session import Screen
from coinduel.ui import LiveScreen, handle_command, render, run


def text_of(view):
    console = Console(record=True, width=100, color_system=None)
    console.print(render(view))
    return console.export_text()


@pytest.fixture
def session(make_session):
    return make_session(start_url="https://app.poshti.live/start")


class TestHandleCommand:
    def test_quit(self, session):
        assert handle_command(session, "q") is False
        assert handle_command(session, "QUIT") is False

    def test_enter_advances(self, session):
        assert handle_command(session, "") is True
        assert session.view().screen is Screen.HELP

    def test_name_on_menu(self, session):
        handle_command(session, "")
        handle_command(session, "")
        handle_command(session, "  Ann ")
        assert session.view().screen is Screen.FRIEND
        assert session.view().player_name == "Ann"

    def test_invite_on_friend_screen(self, session):
        for line in ("", "", "Ann", "Bo"):
            handle_command(session, line)
        assert session.view().waiting

    def test_right_then_name_starts_computer_game(self, session):
        for line in ("", "", "r", "Ann"):
            handle_command(session, line)
        assert session.view().screen is Screen.GAME

    def test_redraw_changes_nothing(self, session):
        handle_command(session, ".")
        assert session.view().screen is Screen.WELCOME

    def test_text_elsewhere_ignored(self, session):
        handle_command(session, "hello")
        assert session.view().screen is Screen.WELCOME

    def test_menu_command(self, session):
        for line in ("", "", "r", "Ann", "menu"):
            handle_command(session, line)
        assert session.view().screen is Screen.MENU


class TestRender:
    def test_welcome_shows_start_url(self, session):
        out = text_of(session.view())
        assert "Collect Coins" in out
        assert "https://app.poshti.live/start" in out
        assert "Type 'q' to quit." in out

    def test_menu_lists_choices(self, session):
        session.advance()
        session.advance()
        out = text_of(session.view())
        assert "Play with my friend" in out
        assert "Play with computer" in out

    def test_game_shows_coins_and_scores(self, session):
        for line in ("", "", "r", "Ann"):
            handle_command(session, line)
        view = session.view()
        out = text_of(view)
        assert "Ann: 0" in out
        assert "Computer: 0" in out
        assert str(view.coins[0]) in out

    def test_result_screen(self, session):
        for line in ("", "", "r", "Ann"):
            handle_command(session, line)
        for _ in range(5):
            handle_command(session, "")
        out = text_of(session.view())
        assert "Play Again" in out
        assert ("you win" in out) or ("you lost" in out)

    def test_every_screen_renders(self, session):
        for screen in Screen:
            session.screen = screen
            assert text_of(session.view())


class ScriptedConsole(Console):
    """Recording console that answers the prompt from a list of lines."""

    def __init__(self, lines, before_input=None):
        super().__init__(record=True, file=io.StringIO(), width=100, color_system=None)
        self._lines = list(lines)
        self._before_input = before_input

    def input(self, prompt="", **kwargs):
        if self._before_input is not None:
            hook, self._before_input = self._before_input, None
            hook()
        return self._lines.pop(0)


def named(session, name):
    session.advance()
    session.advance()
    session.submit_name(name)
    return session


class TestLiveScreen:
    def test_inbound_request_redraws_waiting_prompt(self, make_session):
        ann = named(make_session(seed=1), "Ann")
        bo = named(make_session(seed=2), "Bo")

        def ann_invites():
            ann.invite("Bo")
            assert ann.outbox.flush()

        console = ScriptedConsole(["q"], before_input=ann_invites)
        run(bo, console)
        out = console.export_text()
        assert "Game Requests" in out
        assert "Ann wants to play with you" in out

    def test_local_changes_do_not_redraw_outside_prompt(self, session):
        console = ScriptedConsole([])
        LiveScreen(session, console)
        session.advance()
        assert console.export_text() == ""

    def test_prompt_draws_current_screen(self, session):
        console = ScriptedConsole(["x"])
        assert LiveScreen(session, console).prompt() == "x"
        assert "Collect Coins" in console.export_text()
