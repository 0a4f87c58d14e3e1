"""SeedManager — reproducible coin boards from one session seed.

Board ``n`` of a session draws from ``Random(HMAC(session_seed, mode:n))``.
Two runs started with the same seed deal the same boards in the same
order, and no board stream ever touches the global RNG. The match counter
lives with the caller; this module only maps (mode, n) to a stream.
"""

import hashlib
import hmac
import random

SEED_BITS = 63


class SeedManager:
    """Maps a session seed to one isolated board stream per match."""

    def __init__(self, session_seed: int | None = None):
        if session_seed is None:
            session_seed = random.SystemRandom().randrange(2**SEED_BITS)
        self._key = session_seed.to_bytes(8, byteorder="big", signed=True)
        self._session_seed = session_seed

    @property
    def session_seed(self) -> int:
        """Logged at startup so a session can be replayed."""
        return self._session_seed

    def get_match_seed(self, mode: str, match_num: int) -> int:
        msg = f"{mode}:{match_num}".encode("utf-8")
        digest = hmac.new(self._key, msg, hashlib.sha256).digest()
        return int.from_bytes(digest[:8], byteorder="big")

    def board_rng(self, mode: str, match_num: int) -> random.Random:
        """Fresh Random for board ``match_num`` generated in ``mode``."""
        return random.Random(self.get_match_seed(mode, match_num))
