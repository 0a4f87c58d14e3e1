"""Wire protocol — ``"<command>:<value>"`` payload strings.

Handshake commands carry a display name as their value:

    friend_request:<sender>
    friend_accept:<sender>
    friend_decline:<original requester>

Turn-sync commands carry the sender first so traffic from other pairs on
the shared channel can be told apart:

    coin_board:<sender>:<v0,v1,...,v9>
    coin_pick:<sender>:<seq>:<index>

The payload is split on its first ``:``. Trailing fields of the turn-sync
values are split from the right, so names may themselves contain ``:``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from coinduel.game.board import BOARD_SIZE

__all__ = [
    "Command",
    "PickMove",
    "ProtocolMessage",
    "ProtocolViolation",
    "board_message",
    "decode",
    "parse_board",
    "parse_pick",
    "pick_message",
]


class Command(Enum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPT = "friend_accept"
    FRIEND_DECLINE = "friend_decline"
    COIN_BOARD = "coin_board"
    COIN_PICK = "coin_pick"


class ProtocolViolation(Exception):
    """Malformed payload or a message that breaks match rules."""


@dataclass(frozen=True)
class ProtocolMessage:
    command: Command
    value: str

    @property
    def topic(self) -> str:
        """Transport routing topic; one per command."""
        return self.command.value

    def encode(self) -> str:
        return f"{self.command.value}:{self.value}"


@dataclass(frozen=True)
class PickMove:
    sender: str
    seq: int
    index: int


def decode(payload: object) -> ProtocolMessage:
    """Parse an inbound payload. Raises ProtocolViolation on any other shape."""
    if not isinstance(payload, str):
        raise ProtocolViolation(f"payload is not a string: {payload!r}")
    command, sep, value = payload.partition(":")
    if not sep:
        raise ProtocolViolation(f"missing ':' in payload {payload!r}")
    try:
        cmd = Command(command)
    except ValueError:
        raise ProtocolViolation(f"unknown command {command!r}") from None
    if not value:
        raise ProtocolViolation(f"empty value for {command}")
    return ProtocolMessage(cmd, value)


# ----------------------------------------------------------------------
# Turn-sync values
# ----------------------------------------------------------------------

def board_message(sender: str, values: list[int]) -> ProtocolMessage:
    return ProtocolMessage(
        Command.COIN_BOARD, f"{sender}:{','.join(str(v) for v in values)}"
    )


def pick_message(sender: str, seq: int, index: int) -> ProtocolMessage:
    return ProtocolMessage(Command.COIN_PICK, f"{sender}:{seq}:{index}")


def parse_board(value: str) -> tuple[str, list[int]]:
    sender, sep, csv = value.rpartition(":")
    if not sep or not sender:
        raise ProtocolViolation(f"malformed board value {value!r}")
    try:
        coins = [int(part) for part in csv.split(",")]
    except ValueError:
        raise ProtocolViolation(f"non-integer coin in {csv!r}") from None
    if len(coins) != BOARD_SIZE or any(c < 1 for c in coins):
        raise ProtocolViolation(f"board must be {BOARD_SIZE} positive coins: {csv!r}")
    return sender, coins


def parse_pick(value: str) -> PickMove:
    parts = value.rsplit(":", 2)
    if len(parts) != 3 or not parts[0]:
        raise ProtocolViolation(f"malformed pick value {value!r}")
    sender, seq, index = parts
    try:
        return PickMove(sender=sender, seq=int(seq), index=int(index))
    except ValueError:
        raise ProtocolViolation(f"non-integer seq/index in {value!r}") from None
