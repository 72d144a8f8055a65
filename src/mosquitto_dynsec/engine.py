"""CorrelationEngine — matches asynchronous responses to their commands."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS, ControlTopics
from .envelope import CommandEnvelope
from .exceptions import (
    CommandTimeoutError,
    DisconnectedError,
    DynsecConnectionError,
    MalformedResponseError,
    NotConnectedError,
    RemoteCommandError,
)
from .pending import PendingCommandTable
from .serialization import PayloadSerializer

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .envelope import ResponseEnvelope
    from .ports import ITransport

logger = logging.getLogger("mosquitto_dynsec.engine")


def _validate_timeout(timeout_seconds: float) -> float:
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")
    return float(timeout_seconds)


class CorrelationEngine:
    """Issues commands over a transport and settles them from response batches.

    The command name is the correlation key, so only one command per name can
    be in flight. Every command races its response against ``timeout_seconds``;
    whichever comes first settles it and the table entry is removed either way.
    A response arriving after its command timed out is logged and dropped.

    All state is touched from the event loop thread only.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        api_version: str = DEFAULT_API_VERSION,
        serializer: PayloadSerializer | None = None,
    ) -> None:
        """Configure the engine.

        Args:
            timeout_seconds: Response window per command; must be positive.
            api_version: Control API version used to derive the topics.
            serializer: Wire codec; default PayloadSerializer().
        """
        self._timeout_seconds = _validate_timeout(timeout_seconds)
        self._topics = ControlTopics(api_version)
        self._serializer = serializer or PayloadSerializer()
        self._pending = PendingCommandTable()
        self._abandoned: set[str] = set()
        self._transport: ITransport | None = None
        self._connecting = False

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @timeout_seconds.setter
    def timeout_seconds(self, value: float) -> None:
        self._timeout_seconds = _validate_timeout(value)

    @property
    def topics(self) -> ControlTopics:
        return self._topics

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    @property
    def pending_commands(self) -> list[str]:
        """Names of the commands currently awaiting a response."""
        return self._pending.names()

    async def connect(self, transport: ITransport) -> None:
        """Connect *transport* and subscribe to the response topic.

        The engine counts as connected only after the subscription is in place.
        """
        if self._transport is not None or self._connecting:
            raise DynsecConnectionError("Already connected")
        self._connecting = True
        try:
            transport.set_message_handler(self.handle_message)
            await transport.connect()
            try:
                await transport.subscribe(self._topics.responses)
            except Exception:
                await transport.close()
                raise
        finally:
            self._connecting = False
        self._transport = transport
        logger.info("Connected; listening on %s", self._topics.responses)

    async def disconnect(self) -> None:
        """Reject every pending command and close the transport."""
        transport = self._transport
        if transport is None:
            return
        self._transport = None
        rejected = self._pending.reject_all(DisconnectedError)
        self._abandoned.clear()
        await transport.close()
        logger.info("Disconnected (%d pending command(s) rejected)", rejected)

    async def issue_command(
        self,
        name: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> Any:
        """Publish command *name* and wait for its response.

        Returns the response ``data`` (None when absent).

        Raises:
            NotConnectedError: No transport is connected.
            CommandAlreadyPendingError: *name* is already in flight.
            RemoteCommandError: The broker answered with an error.
            CommandTimeoutError: No response within ``timeout_seconds``.
            DisconnectedError: The client disconnected while waiting.
        """
        transport = self._transport
        if transport is None:
            raise NotConnectedError(name)
        envelope = CommandEnvelope(name=name, parameters=dict(parameters or {}))
        waiter = self._pending.register(name)
        self._abandoned.discard(name)
        timeout = self._timeout_seconds
        try:
            payload = self._serializer.encode_commands([envelope])
            logger.debug("Publishing command %r to %s", name, self._topics.commands)
            await transport.publish(self._topics.commands, payload)
            try:
                return await asyncio.wait_for(waiter.future, timeout=timeout)
            except asyncio.TimeoutError as err:
                self._abandoned.add(name)
                logger.warning("Command %r timed out after %.2fs", name, timeout)
                raise CommandTimeoutError(name, timeout) from err
        finally:
            self._pending.discard(name, waiter)

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Settle pending commands from one inbound response batch.

        Responses are applied in batch order; an invalid entry is logged and
        skipped. Raises MalformedResponseError when the payload is not a
        response batch.
        """
        if topic != self._topics.responses:
            logger.debug("Ignoring message on unexpected topic %s", topic)
            return
        entries = self._serializer.decode_batch(payload)
        logger.debug("Dispatching %d response(s)", len(entries))
        for entry in entries:
            try:
                response = self._serializer.decode_response(entry)
            except MalformedResponseError as e:
                logger.warning("Skipping response entry: %s", e)
                continue
            self._settle(response)

    def _settle(self, response: ResponseEnvelope) -> None:
        name = response.command
        waiter = self._pending.pop(name)
        if waiter is None:
            if name in self._abandoned:
                self._abandoned.discard(name)
                logger.warning(
                    "Discarding late response for timed-out command %r", name
                )
            else:
                logger.warning(
                    "Received response for unsent command %r: %r", name, response.data
                )
            return
        if response.failed:
            waiter.reject(RemoteCommandError(name, response.error or ""))
        else:
            waiter.resolve(response.data)
