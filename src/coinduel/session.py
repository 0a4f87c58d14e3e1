"""GameSession — the state a front-end renders and drives.

Owns the MatchCoordinator, the channel subscription and the outbox, plus
the screen flow and cursors of the terminal game. Every mutation,
whether from a key press or an inbound channel message, runs through
``_transition`` under one lock. Outbound messages are handed to the
outbox only after the lock is released.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from coinduel.coordinator import MatchCoordinator, MatchPhase
from coinduel.core.channel import ChannelClient, SendError
from coinduel.core.outbox import Outbox
from coinduel.core.protocol import ProtocolMessage
from coinduel.core.seed import SeedManager
from coinduel.game.board import InvalidMove
from coinduel.game.engine import Outcome

logger = logging.getLogger(__name__)

__all__ = ["GameSession", "Screen", "SessionView"]

MENU_CHOICES = ("Play with my friend", "Play with computer")
REQUEST_CHOICES = ("Accept", "Decline")
NO_REQUESTS = "You have no requests for a game :("


class Screen(Enum):
    WELCOME = "welcome"
    HELP = "help"
    MENU = "menu"
    FRIEND = "friend"
    REQUESTS = "requests"
    GAME = "game"
    RESULT = "result"


@dataclass(frozen=True)
class SessionView:
    """Immutable copy of everything a renderer needs."""

    screen: Screen
    start_url: str
    player_name: str
    opponent_name: str
    choice: int
    coins: list[int] = field(default_factory=list)
    picked: list[bool] = field(default_factory=list)
    coin_cursor: int = 0
    first_active: int = -1
    last_active: int = -1
    local_score: int = 0
    opponent_score: int = 0
    my_turn: bool = False
    waiting: bool = False
    pending: list[str] = field(default_factory=list)
    message: str = ""
    outcome: Outcome | None = None


class GameSession:
    """Single-writer wrapper around the coordinator for one local player."""

    def __init__(
        self,
        client: ChannelClient,
        channel: str,
        *,
        seeds: SeedManager | None = None,
        start_from_left: bool = False,
        start_url: str = "",
    ) -> None:
        self.client = client
        self.channel = channel
        self.coordinator = MatchCoordinator(seeds)
        self.outbox = Outbox(client, channel, on_error=self._on_send_error)
        self.start_from_left = start_from_left
        self.start_url = start_url

        self._lock = threading.RLock()
        self.screen = Screen.WELCOME
        self.choice = 0
        self.coin_cursor = 0
        self.message = ""
        self._screen_before_requests = Screen.FRIEND
        self._listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the game channel. The client must be connected."""
        self.client.join(self.channel, GameSession.on_channel_message, self)

    def close(self) -> None:
        self.outbox.close()
        self.client.close()

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` after every transition (e.g. to redraw)."""
        self._listeners.append(listener)

    @staticmethod
    def on_channel_message(session: GameSession, channel: str, topic: str, payload: Any) -> None:
        logger.debug("Received message on channel %s, topic %s: %s", channel, topic, payload)
        session._transition(lambda: session.coordinator.receive(payload))

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def advance(self) -> None:
        """The Enter key: meaning depends on the screen."""
        def _advance() -> list[ProtocolMessage]:
            if self.screen is Screen.WELCOME:
                self.screen = Screen.HELP
            elif self.screen is Screen.HELP:
                self.screen = Screen.MENU
            elif self.screen is Screen.FRIEND and self.coordinator.reviewing_requests:
                self._open_requests()
            elif self.screen is Screen.REQUESTS:
                if self.choice == 0:
                    return self.coordinator.accept_request()
                return self.coordinator.decline_request()
            elif self.screen is Screen.GAME:
                return self._select_coin()
            elif self.screen is Screen.RESULT:
                self.coordinator.play_again()
                self.screen = Screen.WELCOME
                self.coin_cursor = 0
            return []
        self._transition(_advance)

    def submit_name(self, name: str) -> None:
        """Menu: take the player's name and start the chosen mode."""
        name = name.strip()
        if self.screen is not Screen.MENU or not name:
            return

        def _submit() -> list[ProtocolMessage]:
            self.coordinator.set_local_player(name)
            self.message = ""
            if self.choice == 0:
                self.screen = Screen.FRIEND
                if self.coordinator.reviewing_requests:
                    self._open_requests()
                else:
                    self.message = NO_REQUESTS
            else:
                self.coordinator.start_computer_match()
            return []
        self._transition(_submit)

    def invite(self, friend: str) -> None:
        """Friend screen: invite ``friend``, or review requests if any wait."""
        friend = friend.strip()
        if self.screen is not Screen.FRIEND:
            return

        def _invite() -> list[ProtocolMessage]:
            if self.coordinator.reviewing_requests:
                self._open_requests()
                return []
            return self.coordinator.send_invitation(friend)
        self._transition(_invite)

    def accept_request(self) -> None:
        self._transition(self.coordinator.accept_request)

    def decline_request(self) -> None:
        self._transition(self.coordinator.decline_request)

    def move_left(self) -> None:
        def _left() -> list[ProtocolMessage]:
            if self.screen is Screen.GAME:
                board = self._board()
                if board is not None:
                    if self.coin_cursor == board.first_active:
                        self.coin_cursor = board.last_active
                    else:
                        self.coin_cursor = board.first_active
            elif self.choice > 0:
                self.choice -= 1
            return []
        self._transition(_left)

    def move_right(self) -> None:
        def _right() -> list[ProtocolMessage]:
            if self.screen is Screen.GAME:
                board = self._board()
                if board is not None:
                    if self.coin_cursor == board.last_active:
                        self.coin_cursor = board.first_active
                    else:
                        self.coin_cursor = board.last_active
            elif self.choice < self._choice_count() - 1:
                self.choice += 1
            return []
        self._transition(_right)

    def back_to_menu(self) -> None:
        """Leave waiting or an unfinished match without telling the peer."""
        def _back() -> list[ProtocolMessage]:
            self.coordinator.cancel()
            self.screen = Screen.MENU
            self.choice = 0
            self.coin_cursor = 0
            self.message = ""
            return []
        self._transition(_back)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def view(self) -> SessionView:
        with self._lock:
            co = self.coordinator
            game = co.game
            local = co.local_player.display_name if co.local_player else ""
            opponent = co.opponent.display_name if co.opponent else ""
            kwargs: dict[str, Any] = {}
            if game is not None:
                board = game.board
                kwargs.update(
                    coins=board.values,
                    picked=board.picked,
                    first_active=board.first_active,
                    last_active=board.last_active,
                    local_score=game.state.score_for(co.local_slot),
                    opponent_score=game.state.score_for(co.opponent_slot),
                )
            return SessionView(
                screen=self.screen,
                start_url=self.start_url,
                player_name=local,
                opponent_name=opponent,
                choice=self.choice,
                coin_cursor=self.coin_cursor,
                my_turn=co.is_my_turn(),
                waiting=co.phase is MatchPhase.AWAITING_OPPONENT,
                pending=[inv.from_player for inv in co.pending],
                message=self.message,
                outcome=co.outcome(),
                **kwargs,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, fn: Callable[[], list[ProtocolMessage]]) -> None:
        with self._lock:
            phase_before = self.coordinator.phase
            pending_before = len(self.coordinator.pending)
            notice_before = self.coordinator.notice
            outbound = fn()
            self._sync_screen(phase_before, pending_before, notice_before)
        if outbound:
            self.outbox.post(outbound)
        for listener in list(self._listeners):
            listener()

    def _sync_screen(self, phase_before: MatchPhase, pending_before: int, notice_before: str) -> None:
        co = self.coordinator
        phase = co.phase
        pending = len(co.pending)

        if co.notice != notice_before or phase is not phase_before:
            self.message = co.notice

        if phase is MatchPhase.IN_MATCH and phase_before is not MatchPhase.IN_MATCH:
            self.screen = Screen.GAME
            self.coin_cursor = 0
            self.choice = 0
        elif phase is MatchPhase.FINISHED and phase_before is not MatchPhase.FINISHED:
            self.screen = Screen.RESULT
        elif pending > pending_before and self._can_review_requests():
            self._open_requests()
        elif pending == 0 and self.screen is Screen.REQUESTS:
            self.screen = self._screen_before_requests
            self.choice = 0

        if self.screen is Screen.GAME:
            self._clamp_cursor()

    def _can_review_requests(self) -> bool:
        if self.screen is Screen.FRIEND:
            return True
        return self.screen is Screen.MENU and self.coordinator.local_player is not None

    def _open_requests(self) -> None:
        if self.screen is not Screen.REQUESTS:
            self._screen_before_requests = self.screen
        self.screen = Screen.REQUESTS
        self.choice = 0

    def _select_coin(self) -> list[ProtocolMessage]:
        try:
            return self.coordinator.pick(self.coin_cursor)
        except InvalidMove as exc:
            logger.debug("Rejected local pick: %s", exc)
            return []

    def _clamp_cursor(self) -> None:
        board = self._board()
        if board is None or board.is_complete():
            return
        if self.coin_cursor not in (board.first_active, board.last_active):
            self.coin_cursor = board.first_active if self.start_from_left else board.last_active

    def _board(self):
        game = self.coordinator.game
        return game.board if game is not None else None

    def _choice_count(self) -> int:
        if self.screen is Screen.REQUESTS:
            return len(REQUEST_CHOICES)
        return len(MENU_CHOICES)

    def _on_send_error(self, msg: ProtocolMessage, exc: SendError) -> None:
        with self._lock:
            self.message = f"Error sending {msg.command.value}: {exc.details}"
        for listener in list(self._listeners):
            listener()
