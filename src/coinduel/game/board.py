"""CoinBoard — the row of ten coins and which of them are taken.

Two generation policies:

- FAIR: every coin drawn independently from [1, 50]. Used for matches
  between two humans.
- COMPUTER_BIASED: low anchors at both ends, high coins inside. The greedy
  endpoint opponent (see ``game.opponent``) is drawn into a losing line on
  these boards, which is the difficulty lever for vs-computer play.

Randomness is always injected as a ``random.Random``; the module never
touches the global RNG.
"""

from __future__ import annotations

import random
from enum import Enum

__all__ = [
    "ANCHOR_MAX",
    "BOARD_SIZE",
    "FAIR_MAX",
    "CoinBoard",
    "GenerationMode",
    "InvalidMove",
]

BOARD_SIZE = 10
FAIR_MAX = 50
ANCHOR_MAX = 30


class GenerationMode(Enum):
    FAIR = "fair"
    COMPUTER_BIASED = "computer_biased"


class InvalidMove(Exception):
    """Raised when a pick targets an out-of-range or already-picked coin."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"invalid pick {index}: {reason}")


class CoinBoard:
    """Fixed-size coin sequence plus a parallel picked flag per position."""

    def __init__(self, values: list[int], picked: list[bool] | None = None) -> None:
        if len(values) != BOARD_SIZE:
            raise ValueError(f"board needs {BOARD_SIZE} coins, got {len(values)}")
        if any(v < 1 for v in values):
            raise ValueError("coin values must be positive")
        self._values = list(values)
        self._picked = list(picked) if picked is not None else [False] * BOARD_SIZE

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    @classmethod
    def generate(cls, mode: GenerationMode, rng: random.Random) -> CoinBoard:
        if mode is GenerationMode.FAIR:
            return cls([rng.randint(1, FAIR_MAX) for _ in range(BOARD_SIZE)])
        return cls(_biased_values(rng))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def pick(self, index: int) -> int:
        """Mark coin ``index`` as taken and return its value."""
        if not 0 <= index < BOARD_SIZE:
            raise InvalidMove(index, "out of range")
        if self._picked[index]:
            raise InvalidMove(index, "already picked")
        self._picked[index] = True
        return self._values[index]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def values(self) -> list[int]:
        return list(self._values)

    @property
    def picked(self) -> list[bool]:
        return list(self._picked)

    @property
    def total(self) -> int:
        return sum(self._values)

    def value_at(self, index: int) -> int:
        return self._values[index]

    def is_picked(self, index: int) -> bool:
        return self._picked[index]

    def is_complete(self) -> bool:
        return all(self._picked)

    @property
    def active_indices(self) -> list[int]:
        """Unpicked indices in board order (the active window)."""
        return [i for i, taken in enumerate(self._picked) if not taken]

    @property
    def first_active(self) -> int:
        active = self.active_indices
        return active[0] if active else -1

    @property
    def last_active(self) -> int:
        active = self.active_indices
        return active[-1] if active else -1

    def snapshot(self) -> dict:
        return {"values": self.values, "picked": self.picked}

    def __repr__(self) -> str:
        cells = [f"({v})" if taken else str(v) for v, taken in zip(self._values, self._picked)]
        return f"CoinBoard([{', '.join(cells)}])"


def _biased_values(rng: random.Random) -> list[int]:
    """Anchor/interior/fixup construction for the vs-computer board."""
    coins = [0] * BOARD_SIZE
    last = BOARD_SIZE - 1

    a = rng.randint(1, ANCHOR_MAX)
    b = rng.randint(1, ANCHOR_MAX)
    coins[0] = max(a, b)
    coins[last] = min(a, b)

    for i in range(1, last, 2):
        # A left neighbour of 50 leaves [51, 50] empty; widen by one so the
        # interior coin still beats it.
        low = coins[i - 1] + 1
        coins[i] = rng.randint(low, max(low, FAIR_MAX))
        candidate = rng.randint(1, FAIR_MAX)
        if candidate > coins[last]:
            coins[i + 1] = candidate
        else:
            coins[i + 1] = coins[last]
            coins[last] = candidate
    return coins
