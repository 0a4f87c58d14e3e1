"""MatchCoordinator — handshake state machine and cross-peer turn log.

Phases::

    IDLE ──send_invitation──▶ AWAITING_OPPONENT ──friend_accept──▶ IN_MATCH
      ▲                            │ friend_decline                  │ last coin
      │                            ▼                                 ▼
      └──────── play_again ─────── IDLE ◀──────────────────────── FINISHED

Inbound requests queue up in arrival order in every phase except
IN_MATCH. Accepting the head of that queue jumps straight to IN_MATCH.

The requester is slot 1 and moves first; the accepter is slot 2. The
accepter generates the board and publishes it with ``coin_board`` right
after ``friend_accept``; the requester plays its own provisional board
until then and may not pick before the real one arrives.
If both players accept each other at once, both start as slot 2; the
lower name then moves to slot 1 and takes the other side's board.

Every operation returns the protocol messages to publish. The coordinator
never sends anything itself and is not thread-safe: ``GameSession``
serializes all calls.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum

from coinduel.core.protocol import (
    Command,
    ProtocolMessage,
    ProtocolViolation,
    board_message,
    decode,
    parse_board,
    parse_pick,
    pick_message,
)
from coinduel.core.seed import SeedManager
from coinduel.game.board import CoinBoard, GenerationMode
from coinduel.game.engine import CoinGame, Outcome
from coinduel.game.opponent import COMPUTER_NAME, choose_pick

logger = logging.getLogger(__name__)

__all__ = [
    "Invitation",
    "InvitationStatus",
    "MatchCoordinator",
    "MatchPhase",
    "Player",
    "TurnRecord",
]

WIN_NOTICE = "Congratulations, you win :)"
LOSS_NOTICE = "Unfortunately you lost :("
DECLINED_NOTICE = "Your friend declined the request :("
YOU_DECLINED_NOTICE = "You declined the request."
NAME_FIRST_NOTICE = "Enter your name first."


class MatchPhase(Enum):
    IDLE = "idle"
    AWAITING_OPPONENT = "awaiting_opponent"
    IN_MATCH = "in_match"
    FINISHED = "finished"


class InvitationStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass(frozen=True)
class Player:
    display_name: str
    is_local: bool = True


@dataclass
class Invitation:
    from_player: str
    to_player: str | None = None
    status: InvitationStatus = InvitationStatus.PENDING


@dataclass(frozen=True)
class TurnRecord:
    seq: int
    slot: int
    index: int
    value: int


class MatchCoordinator:
    """Translates local intents and inbound payloads into match state."""

    def __init__(self, seeds: SeedManager | None = None) -> None:
        self._seeds = seeds or SeedManager()
        self._local: Player | None = None
        self._opponent: Player | None = None
        self._phase = MatchPhase.IDLE
        self._outbound: Invitation | None = None
        self._pending: deque[Invitation] = deque()
        self._game: CoinGame | None = None
        self._local_slot: int = 1
        self._turn_log: list[TurnRecord] = []
        self._board_synced = False
        self._match_num = 0
        self._vs_computer = False
        self.notice: str = ""

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def phase(self) -> MatchPhase:
        return self._phase

    @property
    def local_player(self) -> Player | None:
        return self._local

    @property
    def opponent(self) -> Player | None:
        return self._opponent

    @property
    def outbound_invitation(self) -> Invitation | None:
        return self._outbound

    @property
    def pending(self) -> list[Invitation]:
        return list(self._pending)

    @property
    def reviewing_requests(self) -> bool:
        return bool(self._pending)

    @property
    def game(self) -> CoinGame | None:
        return self._game

    @property
    def local_slot(self) -> int:
        return self._local_slot

    @property
    def opponent_slot(self) -> int:
        return 2 if self._local_slot == 1 else 1

    @property
    def turn_log(self) -> list[TurnRecord]:
        return list(self._turn_log)

    @property
    def board_synced(self) -> bool:
        return self._board_synced

    @property
    def vs_computer(self) -> bool:
        return self._vs_computer

    def is_my_turn(self) -> bool:
        return (
            self._phase is MatchPhase.IN_MATCH
            and self._game is not None
            and self._game.current_slot() == self._local_slot
        )

    def outcome(self) -> Outcome | None:
        if self._phase is not MatchPhase.FINISHED or self._game is None:
            return None
        return self._game.outcome_for(self._local_slot)

    # ------------------------------------------------------------------
    # Local intents
    # ------------------------------------------------------------------

    def set_local_player(self, name: str) -> None:
        if self._phase is MatchPhase.IN_MATCH:
            raise RuntimeError("cannot rename during a match")
        self._local = Player(name, is_local=True)

    def send_invitation(self, target: str) -> list[ProtocolMessage]:
        """Invite ``target``. Replaces any invitation still pending."""
        if self._local is None or not target:
            return []
        if self._phase is MatchPhase.IN_MATCH:
            logger.info("Ignoring invitation to %s during a match", target)
            return []
        self._outbound = Invitation(from_player=self._local.display_name, to_player=target)
        self._phase = MatchPhase.AWAITING_OPPONENT
        self.notice = f"Waiting for {target} to accept your request..."
        logger.info("Invited %s", target)
        return [ProtocolMessage(Command.FRIEND_REQUEST, self._local.display_name)]

    def accept_request(self) -> list[ProtocolMessage]:
        """Accept the oldest pending request and start the match."""
        if not self._pending:
            return []
        if self._local is None:
            self.notice = NAME_FIRST_NOTICE
            return []
        if self._phase is MatchPhase.IN_MATCH:
            return []
        inv = self._pending.popleft()
        inv.status = InvitationStatus.ACCEPTED
        self._outbound = None
        self._begin_match(
            Player(inv.from_player, is_local=False),
            local_slot=2,
            mode=GenerationMode.FAIR,
            synced=True,
        )
        logger.info("Accepted request from %s", inv.from_player)
        me = self._local.display_name
        return [
            ProtocolMessage(Command.FRIEND_ACCEPT, me),
            board_message(me, self._game.board.values),
        ]

    def decline_request(self) -> list[ProtocolMessage]:
        """Decline the oldest pending request."""
        if not self._pending:
            return []
        inv = self._pending.popleft()
        inv.status = InvitationStatus.DECLINED
        self.notice = YOU_DECLINED_NOTICE
        logger.info("Declined request from %s", inv.from_player)
        return [ProtocolMessage(Command.FRIEND_DECLINE, inv.from_player)]

    def start_computer_match(self) -> None:
        if self._phase is MatchPhase.IN_MATCH:
            raise RuntimeError("a match is already running")
        self._outbound = None
        self._begin_match(
            Player(COMPUTER_NAME, is_local=True),
            local_slot=1,
            mode=GenerationMode.COMPUTER_BIASED,
            synced=True,
        )
        self._vs_computer = True

    def pick(self, index: int) -> list[ProtocolMessage]:
        """Take coin ``index`` for the local player.

        Raises InvalidMove for an out-of-range or taken coin. Picks out of
        turn or before the board is known are refused without a change.
        """
        if self._phase is not MatchPhase.IN_MATCH or self._game is None:
            return []
        if not self._board_synced:
            self.notice = f"Waiting for the coins from {self._opponent.display_name}..."
            return []
        if self._game.current_slot() != self._local_slot:
            self.notice = f"Waiting for {self._opponent.display_name} to pick..."
            return []

        record = self._apply(self._local_slot, index)
        self.notice = ""

        if self._vs_computer:
            if not self._game.is_terminal():
                reply = choose_pick(self._game.board, exclude=index)
                if reply is not None:
                    self._apply(self.opponent_slot, reply)
            self._check_finished()
            return []

        self._check_finished()
        return [pick_message(self._local.display_name, record.seq, index)]

    def play_again(self) -> None:
        """Reset board, scores, turn and invitation state. Local only."""
        self._reset_match()
        self._outbound = None
        self._phase = MatchPhase.IDLE
        self.notice = ""

    def cancel(self) -> None:
        """Back to the menu: drop an outbound invitation or abandon a match."""
        if self._phase in (MatchPhase.AWAITING_OPPONENT, MatchPhase.IN_MATCH):
            logger.info("Cancelled %s", self._phase.value)
            self._reset_match()
            self._outbound = None
            self._phase = MatchPhase.IDLE

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def receive(self, payload: object) -> list[ProtocolMessage]:
        """Apply one inbound payload. Violations are logged and dropped."""
        try:
            msg = decode(payload)
            handler = {
                Command.FRIEND_REQUEST: self._on_request,
                Command.FRIEND_ACCEPT: self._on_accept,
                Command.FRIEND_DECLINE: self._on_decline,
                Command.COIN_BOARD: self._on_board,
                Command.COIN_PICK: self._on_pick,
            }[msg.command]
            return handler(msg.value)
        except ProtocolViolation as exc:
            logger.warning("Dropped inbound message %r: %s", payload, exc)
            return []

    def _on_request(self, name: str) -> list[ProtocolMessage]:
        if self._local is not None and name == self._local.display_name:
            logger.debug("Ignoring echo of own request")
            return []
        if self._phase is MatchPhase.IN_MATCH:
            logger.info("Ignoring request from %s during a match", name)
            return []
        to = self._local.display_name if self._local else None
        self._pending.append(Invitation(from_player=name, to_player=to))
        self.notice = f"{name} wants to play with you"
        logger.info("Friend request received from: %s (pending: %d)", name, len(self._pending))
        return []

    def _on_accept(self, name: str) -> list[ProtocolMessage]:
        if self._crossed_accept(name):
            return self._settle_crossed_accept(name)
        inv = self._outbound
        if (
            self._phase is not MatchPhase.AWAITING_OPPONENT
            or inv is None
            or inv.status is not InvitationStatus.PENDING
        ):
            logger.debug("Ignoring accept from %s: no pending invitation", name)
            return []
        if name != inv.to_player:
            logger.debug("Ignoring accept from %s: waiting on %s", name, inv.to_player)
            return []
        inv.status = InvitationStatus.ACCEPTED
        self._outbound = None
        self._begin_match(
            Player(name, is_local=False),
            local_slot=1,
            mode=GenerationMode.FAIR,
            synced=False,
        )
        logger.info("Friend request accepted by %s!", name)
        return []

    def _on_decline(self, name: str) -> list[ProtocolMessage]:
        inv = self._outbound
        if self._phase is not MatchPhase.AWAITING_OPPONENT or inv is None:
            logger.debug("Ignoring decline naming %s: no pending invitation", name)
            return []
        mine = self._local.display_name if self._local else None
        if name not in (mine, inv.to_player):
            logger.debug("Ignoring decline naming %s: not for us", name)
            return []
        inv.status = InvitationStatus.DECLINED
        self._outbound = None
        self._phase = MatchPhase.IDLE
        self.notice = DECLINED_NOTICE
        logger.info("Friend request declined.")
        return []

    def _crossed_accept(self, name: str) -> bool:
        """Both sides accepted each other's request: both think they are slot 2."""
        return (
            self._phase is MatchPhase.IN_MATCH
            and not self._vs_computer
            and self._from_opponent(name)
            and self._local_slot == 2
            and not self._turn_log
        )

    def _settle_crossed_accept(self, name: str) -> list[ProtocolMessage]:
        # The lower name moves first and takes the other side's board.
        if self._local.display_name < name:
            self._local_slot = 1
            self._board_synced = False
            self.notice = f"Waiting for the coins from {name}..."
            logger.info("Crossed accept with %s: moving first", name)
        else:
            logger.info("Crossed accept with %s: keeping our board", name)
        return []

    def _on_board(self, value: str) -> list[ProtocolMessage]:
        sender, coins = parse_board(value)
        if not self._from_opponent(sender) or self._phase is not MatchPhase.IN_MATCH:
            logger.debug("Ignoring board from %s", sender)
            return []
        if self._board_synced:
            if coins == self._game.board.values:
                return []
            if self._local_slot == 2:
                logger.debug("Keeping our board over the one from %s", sender)
                return []
            raise ProtocolViolation(f"{sender} sent a second, different board")
        if self._turn_log:
            raise ProtocolViolation(f"board from {sender} arrived after picks")
        self._game = CoinGame(CoinBoard(coins))
        self._board_synced = True
        self.notice = ""
        logger.info("Board synced with %s: %s", sender, coins)
        return []

    def _on_pick(self, value: str) -> list[ProtocolMessage]:
        move = parse_pick(value)
        if not self._from_opponent(move.sender) or self._vs_computer:
            logger.debug("Ignoring pick from %s", move.sender)
            return []
        if self._game is None or self._phase not in (MatchPhase.IN_MATCH, MatchPhase.FINISHED):
            raise ProtocolViolation(f"pick from {move.sender} outside a match")

        if move.seq <= len(self._turn_log):
            seen = self._turn_log[move.seq - 1] if move.seq >= 1 else None
            if seen is not None and seen.slot == self.opponent_slot and seen.index == move.index:
                logger.debug("Duplicate pick #%d from %s", move.seq, move.sender)
                return []
            raise ProtocolViolation(f"pick #{move.seq} conflicts with turn log")
        if self._phase is MatchPhase.FINISHED:
            raise ProtocolViolation(f"pick #{move.seq} after the match ended")
        if move.seq != len(self._turn_log) + 1:
            raise ProtocolViolation(
                f"pick #{move.seq} out of order, expected #{len(self._turn_log) + 1}"
            )
        if not self._board_synced:
            raise ProtocolViolation("pick before the board was agreed")

        check = self._game.validate_pick(self.opponent_slot, move.index)
        if not check.legal:
            raise ProtocolViolation(f"pick #{move.seq}: {check.reason}")
        self._apply(self.opponent_slot, move.index)
        self._check_finished()
        return []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _from_opponent(self, sender: str) -> bool:
        return self._opponent is not None and sender == self._opponent.display_name

    def _begin_match(
        self, opponent: Player, local_slot: int, mode: GenerationMode, synced: bool
    ) -> None:
        self._match_num += 1
        rng = self._seeds.board_rng(mode.value, self._match_num)
        self._game = CoinGame(CoinBoard.generate(mode, rng))
        self._opponent = opponent
        self._local_slot = local_slot
        self._turn_log = []
        self._board_synced = synced
        self._vs_computer = False
        self._phase = MatchPhase.IN_MATCH
        self.notice = ""

    def _apply(self, slot: int, index: int) -> TurnRecord:
        value = self._game.apply_pick(slot, index)
        record = TurnRecord(seq=len(self._turn_log) + 1, slot=slot, index=index, value=value)
        self._turn_log.append(record)
        return record

    def _check_finished(self) -> None:
        if self._game.is_terminal():
            self._phase = MatchPhase.FINISHED
            outcome = self._game.outcome_for(self._local_slot)
            self.notice = WIN_NOTICE if outcome is Outcome.WIN else LOSS_NOTICE
            logger.info("Match over: %s", self._game.get_scores())

    def _reset_match(self) -> None:
        self._game = None
        self._opponent = None
        self._turn_log = []
        self._board_synced = False
        self._vs_computer = False
        self._local_slot = 1
