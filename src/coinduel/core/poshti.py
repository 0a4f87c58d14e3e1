"""PoshtiClient — websocket transport for the poshti pub/sub service.

Frames are JSON arrays in the order

    [message_ref, join_ref, channel_address, topic, payload]

with refs serialized as strings. A channel ``lobby`` lives at the address
``poshti:<project_id>:lobby``. Application sends are published with the
topic ``broadcast:<topic>``.

Two daemon threads run per connection:

- listener: reads frames, records last activity, dispatches to the
  subscription registered for the frame's channel. Stops on read error.
- heartbeat: once per ``heartbeat_interval_s``, if nothing was received for
  ``idle_threshold_s``, sends a heartbeat frame. A failed heartbeat stops
  this thread only; the process carries on.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from coinduel.core.channel import (
    ChannelClient,
    ChannelConnectionError,
    MessageHandler,
    SendError,
    Subscription,
)

logger = logging.getLogger(__name__)

DEFAULT_URL = "wss://app.poshti.live/socket/websocket?vsn=2.0.0"
HEARTBEAT_ADDRESS = "poshti"


@dataclass(frozen=True)
class Frame:
    message_ref: int
    join_ref: int
    address: str
    topic: str
    payload: Any


def encode_frame(frame: Frame) -> str:
    return json.dumps([
        str(frame.message_ref),
        str(frame.join_ref),
        frame.address,
        frame.topic,
        frame.payload,
    ])


def decode_frame(raw: str | bytes) -> Frame:
    """Parse a wire frame. Raises ValueError on anything but a 5-element array."""
    data = json.loads(raw)
    if not isinstance(data, list) or len(data) != 5:
        raise ValueError(f"expected 5-element frame, got {data!r}")
    message_ref, join_ref, address, topic, payload = data
    if not isinstance(address, str) or not isinstance(topic, str):
        raise ValueError(f"frame address/topic must be strings: {data!r}")
    return Frame(
        message_ref=_ref(message_ref),
        join_ref=_ref(join_ref),
        address=address,
        topic=topic,
        payload=payload,
    )


def _ref(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def channel_name_from_address(address: str) -> str:
    """``poshti:<pid>:a:b`` -> ``a:b``."""
    return ":".join(address.split(":")[2:])


class PoshtiClient(ChannelClient):
    """Websocket ChannelClient with background listener and heartbeat."""

    def __init__(
        self,
        project_id: str,
        token: str,
        *,
        url: str = DEFAULT_URL,
        connect_timeout_s: float = 10.0,
        join_wait_s: float = 5.0,
        heartbeat_interval_s: float = 1.0,
        idle_threshold_s: float = 5.0,
        connector: Callable[..., Any] = connect,
    ) -> None:
        self._project_id = project_id
        self._token = token
        self._url = url
        self._connect_timeout_s = connect_timeout_s
        self._join_wait_s = join_wait_s
        self._heartbeat_interval_s = heartbeat_interval_s
        self._idle_threshold_s = idle_threshold_s
        self._connector = connector

        self._conn = None
        self._subscriptions: dict[str, Subscription] = {}
        self._send_lock = threading.Lock()
        self._stop = threading.Event()
        self._last_activity = 0.0
        self._listener: threading.Thread | None = None
        self._heartbeat: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        sep = "&" if "?" in self._url else "?"
        uri = f"{self._url}{sep}auth={self._token}"
        try:
            self._conn = self._connector(uri, open_timeout=self._connect_timeout_s)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise ChannelConnectionError(f"failed to connect: {exc}") from exc

        self._last_activity = time.monotonic()
        self._stop.clear()
        self._listener = threading.Thread(
            target=self._listen_loop, daemon=True, name="poshti-listener",
        )
        self._heartbeat = threading.Thread(
            target=self._heartbeat_loop, daemon=True, name="poshti-heartbeat",
        )
        self._listener.start()
        self._heartbeat.start()

    def close(self) -> None:
        self._stop.set()
        if self._conn is not None:
            try:
                self._conn.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("Error closing websocket: %s", exc)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def join(self, channel: str, on_message: MessageHandler, context: Any = None) -> None:
        self._subscriptions[channel] = Subscription(channel, on_message, context)
        try:
            self._write(Frame(0, 0, self._address(channel), "phx_join", ""))
        except SendError as exc:
            raise ChannelConnectionError(f"failed to join {channel}: {exc.details}") from exc
        # The server does not ack joins; give it time to register us.
        if self._join_wait_s > 0:
            time.sleep(self._join_wait_s)

    def send(self, channel: str, topic: str, payload: Any) -> None:
        self._write(Frame(0, 0, self._address(channel), f"broadcast:{topic}", payload))

    def leave(self, channel: str) -> None:
        if channel not in self._subscriptions:
            raise KeyError(f"No channel with name {channel}")
        del self._subscriptions[channel]
        try:
            self._write(Frame(0, 0, self._address(channel), "phx_leave", ""))
        except SendError as exc:
            logger.warning("Leave for %s not delivered: %s", channel, exc.details)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _listen_loop(self) -> None:
        while not self._stop.is_set():
            try:
                raw = self._conn.recv()
            except (ConnectionClosed, OSError) as exc:
                if not self._stop.is_set():
                    logger.warning("read error: %s", exc)
                return
            self._last_activity = time.monotonic()
            self._handle_raw(raw)

    def _handle_raw(self, raw: str | bytes) -> None:
        logger.debug("recv %s", raw)
        try:
            frame = decode_frame(raw)
        except ValueError as exc:
            logger.warning("unmarshal error: %s", exc)
            return
        name = channel_name_from_address(frame.address)
        sub = self._subscriptions.get(name)
        if sub is None:
            logger.debug("No callback found for channel %s", name)
            return
        sub.deliver(frame.topic, frame.payload)

    def _heartbeat_loop(self) -> None:
        while not self._stop.wait(self._heartbeat_interval_s):
            if not self._heartbeat_tick():
                return

    def _heartbeat_tick(self, now: float | None = None) -> bool:
        """Send a heartbeat if the link has been idle. False when sending failed."""
        now = time.monotonic() if now is None else now
        if now - self._last_activity < self._idle_threshold_s:
            return True
        try:
            self._write(Frame(0, 0, HEARTBEAT_ADDRESS, "heartbeat", ""))
        except SendError as exc:
            logger.error("Ping Server Error: %s", exc.details)
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _address(self, channel: str) -> str:
        return f"poshti:{self._project_id}:{channel}"

    def _write(self, frame: Frame) -> None:
        if self._conn is None:
            raise SendError(frame.address, frame.topic, "not connected")
        data = encode_frame(frame)
        with self._send_lock:
            try:
                self._conn.send(data)
            except (ConnectionClosed, OSError, RuntimeError) as exc:
                raise SendError(frame.address, frame.topic, str(exc)) from exc
