"""CoinGame engine — turn reducer and scoring for a single coin match.

Two slots take turns picking coins. Slot 1 always moves first. Every
accepted pick adds the coin's value to the acting slot and hands the turn
to the other slot. The match is over the moment the last coin is taken.

Outcome is judged per slot: only a strictly higher score is a win. A tie
is a loss for both sides.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from coinduel.game.board import BOARD_SIZE, CoinBoard

__all__ = ["CoinGame", "MatchState", "Outcome", "ValidationResult"]

SLOTS = (1, 2)


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a pick against the current match state."""

    legal: bool
    reason: str | None = None


class Outcome(Enum):
    WIN = "win"
    LOSS = "loss"


@dataclass
class MatchState:
    turn: int = 1
    player1_score: int = 0
    player2_score: int = 0
    board_complete: bool = False

    def score_for(self, slot: int) -> int:
        return self.player1_score if slot == 1 else self.player2_score


class CoinGame:
    """Applies picks to a CoinBoard with strict turn alternation."""

    def __init__(self, board: CoinBoard) -> None:
        self._board = board
        self._state = MatchState(board_complete=board.is_complete())
        self._turn_number: int = 0

    # ------------------------------------------------------------------
    # Turn flow
    # ------------------------------------------------------------------

    def current_slot(self) -> int:
        return self._state.turn

    def validate_pick(self, slot: int, index: int) -> ValidationResult:
        if self._state.board_complete:
            return ValidationResult(legal=False, reason="Match is over.")
        if slot != self._state.turn:
            return ValidationResult(legal=False, reason="Not your turn.")
        if not 0 <= index < BOARD_SIZE:
            return ValidationResult(
                legal=False,
                reason=f"Coin {index} out of range. Pick 0-{BOARD_SIZE - 1}.",
            )
        if self._board.is_picked(index):
            return ValidationResult(
                legal=False, reason=f"Coin {index} is already taken."
            )
        return ValidationResult(legal=True)

    def apply_pick(self, slot: int, index: int) -> int:
        """Take coin ``index`` for ``slot``. Returns the coin's value.

        Raises InvalidMove for a bad index; callers check the turn with
        ``validate_pick`` first.
        """
        value = self._board.pick(index)
        if slot == 1:
            self._state.player1_score += value
        else:
            self._state.player2_score += value
        self._turn_number += 1
        self._state.turn = _other(slot)
        self._state.board_complete = self._board.is_complete()
        return value

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def board(self) -> CoinBoard:
        return self._board

    @property
    def state(self) -> MatchState:
        return self._state

    @property
    def turn_number(self) -> int:
        return self._turn_number

    def is_terminal(self) -> bool:
        return self._state.board_complete

    def get_scores(self) -> dict[int, int]:
        return {1: self._state.player1_score, 2: self._state.player2_score}

    def is_tie(self) -> bool:
        return self._state.player1_score == self._state.player2_score

    def outcome_for(self, slot: int) -> Outcome:
        mine = self._state.score_for(slot)
        theirs = self._state.score_for(_other(slot))
        return Outcome.WIN if mine > theirs else Outcome.LOSS

    def get_state_snapshot(self) -> dict:
        return {
            "board": self._board.snapshot(),
            "turn": self._state.turn,
            "turn_number": self._turn_number,
            "scores": self.get_scores(),
            "terminal": self._state.board_complete,
        }


def _other(slot: int) -> int:
    return 2 if slot == 1 else 1
