"""Tests for GameSession — screen flow and two peers over a memory broker."""

import pytest

from coinduel.coordinator import MatchPhase
from coinduel.core.channel import MemoryBroker
from coinduel.core.seed import SeedManager
from coinduel.game.board import BOARD_SIZE
from coinduel.game.engine import Outcome
from coinduel.session import NO_REQUESTS, GameSession, Screen


def to_menu(session):
    session.advance()
    session.advance()


def settle(*sessions):
    """Drain every outbox until replies of replies have gone out."""
    for _ in range(3):
        for s in sessions:
            assert s.outbox.flush()


def play_out(ann, bo):
    for _ in range(BOARD_SIZE):
        if ann.view().my_turn:
            mover = ann
        else:
            assert bo.view().my_turn
            mover = bo
        mover.advance()
        settle(ann, bo)


@pytest.fixture
def pair(make_session):
    """Two named players sitting on the friend screen."""
    ann = make_session(seed=1)
    bo = make_session(seed=2)
    for s, name in ((ann, "Ann"), (bo, "Bo")):
        to_menu(s)
        s.submit_name(name)
    return ann, bo


@pytest.fixture
def matched(pair):
    ann, bo = pair
    ann.invite("Bo")
    settle(ann, bo)
    bo.advance()
    settle(ann, bo)
    return ann, bo


# ------------------------------------------------------------------
# Single player
# ------------------------------------------------------------------

class TestScreenFlow:
    def test_welcome_help_menu(self, make_session):
        s = make_session()
        assert s.view().screen is Screen.WELCOME
        s.advance()
        assert s.view().screen is Screen.HELP
        s.advance()
        assert s.view().screen is Screen.MENU

    def test_menu_choice_stays_in_bounds(self, make_session):
        s = make_session()
        to_menu(s)
        s.move_right()
        s.move_right()
        assert s.view().choice == 1
        s.move_left()
        s.move_left()
        assert s.view().choice == 0

    def test_blank_name_ignored(self, make_session):
        s = make_session()
        to_menu(s)
        s.submit_name("   ")
        assert s.view().screen is Screen.MENU
        assert s.coordinator.local_player is None

    def test_friend_screen_without_requests(self, make_session):
        s = make_session()
        to_menu(s)
        s.submit_name("Ann")
        view = s.view()
        assert view.screen is Screen.FRIEND
        assert view.player_name == "Ann"
        assert view.message == NO_REQUESTS

    def test_listeners_called_per_transition(self, make_session):
        s = make_session()
        calls = []
        s.subscribe(lambda: calls.append(1))
        s.advance()
        s.move_right()
        assert len(calls) == 2


class TestComputerGame:
    @pytest.fixture
    def game(self, make_session):
        s = make_session()
        to_menu(s)
        s.move_right()
        s.submit_name("Ann")
        return s

    def test_starts_game(self, game):
        view = game.view()
        assert view.screen is Screen.GAME
        assert view.opponent_name == "Computer"
        assert view.my_turn
        assert view.coin_cursor in (view.first_active, view.last_active)

    def test_cursor_jumps_between_ends(self, game):
        game.move_right()
        assert game.view().coin_cursor == BOARD_SIZE - 1
        game.move_right()
        assert game.view().coin_cursor == 0
        game.move_left()
        assert game.view().coin_cursor == BOARD_SIZE - 1

    def test_cursor_snaps_to_right_end_after_pick(self, game):
        game.advance()
        view = game.view()
        assert view.coin_cursor == view.last_active

    def test_cursor_snaps_left_when_configured(self, make_session):
        s = make_session(start_from_left=True)
        to_menu(s)
        s.move_right()
        s.submit_name("Ann")
        s.move_right()
        s.advance()
        view = s.view()
        assert view.coin_cursor == view.first_active

    def test_plays_through_to_result(self, game):
        for _ in range(5):
            game.advance()
        view = game.view()
        assert view.screen is Screen.RESULT
        assert view.outcome in (Outcome.WIN, Outcome.LOSS)
        assert view.local_score + view.opponent_score == sum(view.coins)

    def test_play_again_returns_to_welcome(self, game):
        for _ in range(5):
            game.advance()
        game.advance()
        assert game.view().screen is Screen.WELCOME
        assert game.coordinator.phase is MatchPhase.IDLE
        assert game.view().coins == []

    def test_back_to_menu_abandons_game(self, game):
        game.back_to_menu()
        assert game.view().screen is Screen.MENU
        assert game.coordinator.game is None


# ------------------------------------------------------------------
# Two peers
# ------------------------------------------------------------------

class TestFriendHandshake:
    def test_request_opens_requests_screen(self, pair):
        ann, bo = pair
        ann.invite("Bo")
        settle(ann, bo)
        assert ann.view().waiting
        assert ann.view().message == "Waiting for Bo to accept your request..."
        assert bo.view().screen is Screen.REQUESTS
        assert bo.view().pending == ["Ann"]

    def test_request_waits_on_menu_until_named(self, make_session):
        ann = make_session(seed=1)
        bo = make_session(seed=2)
        to_menu(ann)
        ann.submit_name("Ann")
        to_menu(bo)
        ann.invite("Bo")
        settle(ann, bo)
        assert bo.view().screen is Screen.MENU
        assert bo.view().pending == ["Ann"]
        assert bo.view().message == "Ann wants to play with you"

        bo.submit_name("Bo")
        assert bo.view().screen is Screen.REQUESTS
        bo.advance()
        settle(ann, bo)
        assert bo.view().screen is Screen.GAME
        assert ann.view().screen is Screen.GAME
        assert ann.view().opponent_name == "Bo"

    def test_request_on_menu_with_name_opens_requests(self, pair):
        ann, bo = pair
        bo.back_to_menu()
        ann.invite("Bo")
        settle(ann, bo)
        assert bo.view().screen is Screen.REQUESTS

    def test_crossed_invitations_still_start_one_match(self, pair):
        ann, bo = pair
        ann.invite("Bo")
        bo.invite("Ann")
        settle(ann, bo)
        ann.accept_request()
        bo.accept_request()
        settle(ann, bo)
        assert ann.view().my_turn != bo.view().my_turn
        assert ann.view().coins == bo.view().coins

    def test_accept_starts_both_games(self, matched):
        ann, bo = matched
        a, b = ann.view(), bo.view()
        assert a.screen is Screen.GAME and b.screen is Screen.GAME
        assert a.coins == b.coins
        assert a.opponent_name == "Bo"
        assert b.opponent_name == "Ann"
        assert a.my_turn and not b.my_turn

    def test_decline_returns_both_to_friend_screen(self, pair):
        ann, bo = pair
        ann.invite("Bo")
        settle(ann, bo)
        bo.move_right()
        bo.advance()
        settle(ann, bo)
        assert bo.view().screen is Screen.FRIEND
        assert bo.view().message == "You declined the request."
        assert ann.view().screen is Screen.FRIEND
        assert not ann.view().waiting
        assert ann.view().message == "Your friend declined the request :("

    def test_back_to_menu_cancels_waiting(self, pair):
        ann, _ = pair
        ann.invite("Bo")
        ann.back_to_menu()
        assert ann.view().screen is Screen.MENU
        assert not ann.view().waiting


class TestFriendMatch:
    def test_pick_reaches_peer(self, matched):
        ann, bo = matched
        ann.advance()
        settle(ann, bo)
        assert bo.view().picked == ann.view().picked
        assert sum(bo.view().picked) == 1
        assert bo.view().my_turn

    def test_out_of_turn_enter_does_nothing(self, matched):
        ann, bo = matched
        bo.advance()
        settle(ann, bo)
        assert sum(ann.view().picked) == 0
        assert "Waiting for Ann" in bo.view().message

    def test_full_match_agrees(self, matched):
        ann, bo = matched
        play_out(ann, bo)
        a, b = ann.view(), bo.view()
        assert a.screen is Screen.RESULT and b.screen is Screen.RESULT
        assert a.local_score == b.opponent_score
        assert a.opponent_score == b.local_score
        assert a.local_score + a.opponent_score == sum(a.coins)


class TestTransportTrouble:
    def test_send_failure_shown_inline(self, pair):
        ann, _ = pair
        ann.client.fail_sends = True
        ann.invite("Bo")
        assert ann.outbox.flush()
        assert ann.view().message.startswith("Error sending friend_request")
        assert ann.coordinator.phase is MatchPhase.AWAITING_OPPONENT

    def test_duplicate_deliveries_tolerated(self):
        broker = MemoryBroker(duplicate_deliveries=True)
        sessions = []
        try:
            for seed, name in ((1, "Ann"), (2, "Bo")):
                client = broker.client()
                client.connect()
                s = GameSession(client, "test", seeds=SeedManager(seed))
                s.start()
                sessions.append(s)
                to_menu(s)
                s.submit_name(name)
            ann, bo = sessions
            ann.invite("Bo")
            settle(ann, bo)
            bo.accept_request()
            settle(ann, bo)
            play_out(ann, bo)
            assert ann.coordinator.turn_log == bo.coordinator.turn_log
            assert len(ann.coordinator.turn_log) == BOARD_SIZE
            assert ann.view().screen is Screen.RESULT
            assert bo.view().screen is Screen.RESULT
        finally:
            for s in sessions:
                s.close()
