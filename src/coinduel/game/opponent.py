"""Greedy endpoint opponent for vs-computer play.

Looks only at the two ends of the remaining coins and takes the larger
one. Deterministic and synchronous; it never touches the network.
"""

from __future__ import annotations

from coinduel.game.board import CoinBoard

__all__ = ["COMPUTER_NAME", "choose_pick"]

COMPUTER_NAME = "Computer"


def choose_pick(board: CoinBoard, exclude: int | None = None) -> int | None:
    """Return the index the computer takes, or None when nothing is left.

    ``exclude`` is the coin the human has just taken. Ties go to the
    lower index.
    """
    candidates = [i for i in board.active_indices if i != exclude]
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]
    first, last = candidates[0], candidates[-1]
    if board.value_at(first) >= board.value_at(last):
        return first
    return last
