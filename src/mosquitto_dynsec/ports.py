"""Transport port of the correlation engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

MessageHandler = Callable[[str, bytes], None]


@runtime_checkable
class ITransport(Protocol):
    """
    Port for the publish/subscribe channel the engine talks through.

    Delivery is at-most-once with no ordering across topics. Inbound messages
    are handed to the registered handler on the event loop thread.
    """

    @property
    def is_connected(self) -> bool:
        """True once ``connect()`` succeeded and until ``close()``."""
        ...

    def set_message_handler(self, handler: MessageHandler) -> None:
        """
        Register the callable invoked with ``(topic, payload)`` for inbound messages.

        Must be called before ``connect()``.
        """
        ...

    async def connect(self) -> None:
        """Open the connection; raise ``DynsecConnectionError`` on failure."""
        ...

    async def close(self) -> None:
        """Close the connection gracefully. Safe to call when not connected."""
        ...

    async def subscribe(self, topic: str) -> None:
        """Subscribe to *topic*."""
        ...

    async def publish(self, topic: str, payload: bytes) -> None:
        """Publish *payload* to *topic* (fire-and-forget)."""
        ...
