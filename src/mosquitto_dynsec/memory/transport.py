"""InMemoryTransport — ITransport fake with assertion helpers for tests."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from ..config import ControlTopics
from ..exceptions import DynsecConnectionError

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..ports import MessageHandler


class InMemoryTransport:
    """In-memory broker stand-in.

    Buffers published messages for assertions and lets tests push inbound
    messages with ``deliver()`` / ``respond()``. An optional *responder* is
    called for every published command and its reply is delivered on the
    next loop iteration, like a broker answering asynchronously.
    """

    def __init__(
        self,
        *,
        topics: ControlTopics | None = None,
        responder: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None,
        connect_error: Exception | None = None,
    ) -> None:
        """Configure the fake.

        Args:
            topics: Control topics used by ``respond()``; default ControlTopics().
            responder: Maps one wire command to one wire response (or None for
                no reply).
            connect_error: Raised by ``connect()`` to simulate a broker failure.
        """
        self._topics = topics or ControlTopics()
        self._responder = responder
        self._connect_error = connect_error
        self._handler: MessageHandler | None = None
        self._connected = False
        self._subscriptions: list[str] = []
        self._published: list[tuple[str, bytes]] = []
        self.close_count = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def subscriptions(self) -> list[str]:
        return list(self._subscriptions)

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def connect(self) -> None:
        if self._connect_error is not None:
            error = self._connect_error
            raise DynsecConnectionError(str(error)) from error
        self._connected = True

    async def close(self) -> None:
        self._connected = False
        self._subscriptions.clear()
        self.close_count += 1

    async def subscribe(self, topic: str) -> None:
        self._require_connected()
        self._subscriptions.append(topic)

    async def publish(self, topic: str, payload: bytes) -> None:
        """Record the message and schedule any responder replies."""
        self._require_connected()
        self._published.append((topic, payload))
        if self._responder is None or topic != self._topics.commands:
            return
        loop = asyncio.get_running_loop()
        for command in json.loads(payload)["commands"]:
            reply = self._responder(command)
            if reply is not None:
                loop.call_soon(self.respond, reply)

    def deliver(self, topic: str, payload: bytes | str | dict[str, Any]) -> None:
        """Push an inbound message to the handler if *topic* is subscribed."""
        if topic not in self._subscriptions or self._handler is None:
            return
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        self._handler(topic, payload)

    def respond(self, *responses: dict[str, Any]) -> None:
        """Deliver one batch ``{"responses": [...]}`` on the response topic."""
        self.deliver(self._topics.responses, {"responses": list(responses)})

    def get_published(self) -> list[tuple[str, bytes]]:
        """Return all (topic, payload) published so far, in order."""
        return list(self._published)

    def published_commands(self) -> list[dict[str, Any]]:
        """Decode every wire command published to the commands topic."""
        commands: list[dict[str, Any]] = []
        for topic, payload in self._published:
            if topic == self._topics.commands:
                commands.extend(json.loads(payload)["commands"])
        return commands

    def assert_published(self, command: str, count: int = 1) -> None:
        """Assert that exactly *count* commands named *command* were published."""
        names = [c.get("command") for c in self.published_commands()]
        matching = [n for n in names if n == command]
        assert len(matching) == count, (
            f"Expected {count} command(s) {command!r}, "
            f"got {len(matching)}. Published: {names}"
        )

    def clear(self) -> None:
        """Forget published messages (for test teardown)."""
        self._published.clear()

    def _require_connected(self) -> None:
        if not self._connected:
            raise DynsecConnectionError("Not connected; call connect() first")
