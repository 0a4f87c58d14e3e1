"""ChannelClient — uniform interface to a pub/sub channel.

Provides ABC and concrete implementations:
- MemoryChannelClient: in-process broker, for tests and offline play
- PoshtiClient (core.poshti): websocket transport for real matches

Handlers receive the session context they were registered with instead of
closing over caller state:

    client.join("lobby", GameSession.on_channel_message, session)
    # later: on_message(session, "lobby", topic, payload)
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any, str, str, Any], None]


class ChannelConnectionError(Exception):
    """Raised when the channel cannot be reached or joined."""


class SendError(Exception):
    """Raised when a message could not be transmitted."""

    def __init__(self, channel: str, topic: str, details: str = ""):
        self.channel = channel
        self.topic = topic
        self.details = details
        super().__init__(f"send {topic} on {channel} failed: {details}")


@dataclass(frozen=True)
class Subscription:
    channel: str
    handler: MessageHandler
    context: Any = None

    def deliver(self, topic: str, payload: Any) -> None:
        self.handler(self.context, self.channel, topic, payload)


class ChannelClient(ABC):
    """Abstract base for channel transports."""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Raises ChannelConnectionError."""

    @abstractmethod
    def join(self, channel: str, on_message: MessageHandler, context: Any = None) -> None:
        """Subscribe to ``channel``; ``on_message(context, channel, topic, payload)``."""

    @abstractmethod
    def send(self, channel: str, topic: str, payload: Any) -> None:
        """Broadcast ``payload`` on ``channel``. Raises SendError."""

    @abstractmethod
    def leave(self, channel: str) -> None:
        """Unsubscribe from ``channel``. Raises KeyError if never joined."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the connection and background tasks."""


# ======================================================================
# In-process transport
# ======================================================================

class MemoryBroker:
    """Fan-out hub connecting MemoryChannelClients in one process.

    Broadcast excludes the sender, like a server-side ``broadcast_from``.
    Delivery happens synchronously on the sending thread.
    """

    def __init__(self, *, duplicate_deliveries: bool = False) -> None:
        self.duplicate_deliveries = duplicate_deliveries
        self._lock = threading.Lock()
        self._members: dict[str, list[MemoryChannelClient]] = {}
        self.sent: list[tuple[str, str, Any]] = []

    def client(self) -> MemoryChannelClient:
        return MemoryChannelClient(self)

    def _subscribe(self, channel: str, client: MemoryChannelClient) -> None:
        with self._lock:
            members = self._members.setdefault(channel, [])
            if client not in members:
                members.append(client)

    def _unsubscribe(self, channel: str, client: MemoryChannelClient) -> None:
        with self._lock:
            members = self._members.get(channel, [])
            if client in members:
                members.remove(client)

    def _publish(self, sender: MemoryChannelClient, channel: str, topic: str, payload: Any) -> None:
        with self._lock:
            self.sent.append((channel, topic, payload))
            targets = [c for c in self._members.get(channel, []) if c is not sender]
        copies = 2 if self.duplicate_deliveries else 1
        for target in targets:
            for _ in range(copies):
                target._deliver(channel, topic, payload)


class MemoryChannelClient(ChannelClient):
    """ChannelClient backed by a MemoryBroker."""

    def __init__(self, broker: MemoryBroker) -> None:
        self._broker = broker
        self._subscriptions: dict[str, Subscription] = {}
        self._connected = False
        self.fail_sends = False
        self.refuse_connect = False

    def connect(self) -> None:
        if self.refuse_connect:
            raise ChannelConnectionError("memory broker refused connection")
        self._connected = True

    def join(self, channel: str, on_message: MessageHandler, context: Any = None) -> None:
        self._subscriptions[channel] = Subscription(channel, on_message, context)
        self._broker._subscribe(channel, self)

    def send(self, channel: str, topic: str, payload: Any) -> None:
        if self.fail_sends or not self._connected:
            raise SendError(channel, topic, "memory client offline")
        self._broker._publish(self, channel, topic, payload)

    def leave(self, channel: str) -> None:
        if channel not in self._subscriptions:
            raise KeyError(f"No channel with name {channel}")
        del self._subscriptions[channel]
        self._broker._unsubscribe(channel, self)

    def close(self) -> None:
        for channel in list(self._subscriptions):
            self.leave(channel)
        self._connected = False

    def _deliver(self, channel: str, topic: str, payload: Any) -> None:
        sub = self._subscriptions.get(channel)
        if sub is None:
            logger.debug("No callback found for channel %s", channel)
            return
        sub.deliver(topic, payload)
