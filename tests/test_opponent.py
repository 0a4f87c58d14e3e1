"""Tests for the greedy endpoint opponent."""

from coinduel.game.board import CoinBoard
from coinduel.game.opponent import choose_pick


class TestChoosePick:
    def test_takes_larger_end(self):
        board = CoinBoard([3, 50, 50, 50, 50, 50, 50, 50, 50, 7])
        assert choose_pick(board) == 9

    def test_tie_goes_to_first(self):
        board = CoinBoard([7, 1, 1, 1, 1, 1, 1, 1, 1, 7])
        assert choose_pick(board) == 0

    def test_only_looks_at_remaining_ends(self):
        board = CoinBoard([40, 2, 30, 1, 1, 1, 1, 1, 9, 40])
        board.pick(0)
        board.pick(9)
        assert choose_pick(board) == 8

    def test_excluded_index_skipped(self):
        board = CoinBoard([10, 1, 1, 1, 1, 1, 1, 1, 1, 2])
        assert choose_pick(board, exclude=0) == 9

    def test_single_candidate(self):
        board = CoinBoard([1] * 10)
        for i in range(9):
            board.pick(i)
        assert choose_pick(board) == 9

    def test_single_candidate_after_exclude(self):
        board = CoinBoard([1] * 10)
        for i in range(8):
            board.pick(i)
        assert choose_pick(board, exclude=9) == 8

    def test_nothing_left(self):
        board = CoinBoard([1] * 10)
        for i in range(10):
            board.pick(i)
        assert choose_pick(board) is None
