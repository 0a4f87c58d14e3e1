"""Outbox — background sender for protocol messages.

Accepts outbound messages via a thread-safe queue and publishes them on a
daemon thread, so a slow or dead link never blocks the UI thread. Send
failures are logged and handed to ``on_error``; they never raise to the
caller and never roll back match state.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

from coinduel.core.channel import ChannelClient, SendError
from coinduel.core.protocol import ProtocolMessage

logger = logging.getLogger(__name__)

_SENTINEL = object()


class Outbox:
    """Fire-and-forget publisher for one channel."""

    def __init__(
        self,
        client: ChannelClient,
        channel: str,
        on_error: Callable[[ProtocolMessage, SendError], None] | None = None,
    ) -> None:
        self._client = client
        self._channel = channel
        self._on_error = on_error
        self._closed = False
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(
            target=self._sender_loop, daemon=True, name="coinduel-outbox",
        )
        self._thread.start()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> Outbox:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def post(self, messages: list[ProtocolMessage]) -> None:
        """Enqueue messages in order. No-op once closed."""
        if self._closed:
            return
        for msg in messages:
            self._queue.put(msg)

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until everything posted so far has been attempted."""
        done = threading.Event()

        def _waiter() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_waiter, daemon=True).start()
        return done.wait(timeout)

    def close(self) -> None:
        """Send sentinel, let queued messages go out, join the thread."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_SENTINEL)
        self._thread.join(timeout=10)

    # ------------------------------------------------------------------
    # Internal: background sender
    # ------------------------------------------------------------------

    def _sender_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _SENTINEL:
                    return
                self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, msg: ProtocolMessage) -> None:
        try:
            self._client.send(self._channel, msg.topic, msg.encode())
        except SendError as exc:
            logger.warning("Error sending %s: %s", msg.command.value, exc)
            if self._on_error is not None:
                self._on_error(msg, exc)
        else:
            logger.debug("sent %s", msg.encode())
