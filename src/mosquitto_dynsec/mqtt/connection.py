"""MQTT transport over paho-mqtt, bridged onto the asyncio event loop."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from typing import TYPE_CHECKING, Any

import paho.mqtt.client as mqtt

from ..config import PROTOCOLS, ConnectOptions
from ..exceptions import DynsecConnectionError

if TYPE_CHECKING:
    import ssl
    from collections.abc import Callable

    from ..ports import MessageHandler

logger = logging.getLogger("mosquitto_dynsec.mqtt")


def resolve_protocol(protocol: str) -> tuple[str, bool]:
    """Map a URL scheme to ``(paho transport, use_tls)``."""
    try:
        return PROTOCOLS[protocol.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported protocol {protocol!r}; expected one of {sorted(PROTOCOLS)}"
        ) from None


class MQTTConnectionManager:
    """Single paho-mqtt client implementing ITransport.

    paho runs its network loop in a background thread; every callback is
    handed to the asyncio loop with ``call_soon_threadsafe`` so the message
    handler, acknowledgements and state changes run on the loop thread only.
    Subscriptions are restored when paho reconnects after a dropped
    connection.
    """

    def __init__(
        self,
        options: ConnectOptions | None = None,
        *,
        qos: int = 0,
        connect_timeout: float = 10.0,
        tls_context: ssl.SSLContext | None = None,
        client_factory: Callable[..., mqtt.Client] | None = None,
    ) -> None:
        """Configure the connection.

        Args:
            options: Broker address and credentials; default ConnectOptions().
            qos: QoS used for publish and subscribe.
            connect_timeout: Seconds to wait for CONNACK and for a clean close.
            tls_context: Custom SSL context for mqtts/wss; system defaults otherwise.
            client_factory: Builds the paho client; default ``mqtt.Client``.
        """
        self._options = options or ConnectOptions()
        self._transport, self._use_tls = resolve_protocol(self._options.protocol)
        self._qos = qos
        self._connect_timeout = connect_timeout
        self._tls_context = tls_context
        self._client_factory = client_factory or mqtt.Client
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handler: MessageHandler | None = None
        self._subscriptions: set[str] = set()
        self._acks: dict[int, asyncio.Future[None]] = {}
        self._connack: asyncio.Future[None] | None = None
        self._closed: asyncio.Future[None] | None = None

    @property
    def options(self) -> ConnectOptions:
        return self._options

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected()

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    def _create_client(self) -> mqtt.Client:
        opts = self._options
        client = self._client_factory(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=opts.client_id,
            transport=self._transport,
        )
        if opts.username is not None:
            client.username_pw_set(opts.username, opts.password)
        if self._use_tls:
            if self._tls_context is not None:
                client.tls_set_context(self._tls_context)
            else:
                client.tls_set()
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        return client

    async def connect(self) -> None:
        """Connect and wait for a successful CONNACK. Idempotent if connected."""
        if self._client is not None:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        opts = self._options
        client = self._create_client()
        self._connack = loop.create_future()
        try:
            await loop.run_in_executor(
                None,
                functools.partial(
                    client.connect, opts.hostname, opts.port, opts.keepalive
                ),
            )
        except (OSError, ValueError) as e:
            raise DynsecConnectionError(f"Cannot connect to {opts.url}: {e}") from e
        client.loop_start()
        try:
            await asyncio.wait_for(self._connack, timeout=self._connect_timeout)
        except asyncio.TimeoutError as err:
            await self._abort(client)
            raise DynsecConnectionError(
                f"No CONNACK from {opts.url} within {self._connect_timeout:g}s"
            ) from err
        except DynsecConnectionError:
            await self._abort(client)
            raise
        self._client = client
        logger.info("Connected to %s as %r", opts.url, opts.username)

    async def close(self) -> None:
        """Send DISCONNECT, wait for the broker to close, and stop the network loop."""
        client = self._client
        if client is None:
            return
        self._client = None
        self._subscriptions.clear()
        loop = asyncio.get_running_loop()
        self._closed = loop.create_future()
        was_connected = client.is_connected()
        client.disconnect()
        if was_connected:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed, timeout=self._connect_timeout)
        await self._stop(client)
        logger.info("Disconnected from %s", self._options.url)

    async def subscribe(self, topic: str) -> None:
        """Subscribe and wait for the SUBACK."""
        client = self._require_client()
        result, mid = client.subscribe(topic, qos=self._qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise DynsecConnectionError(
                f"Subscribe to {topic} failed: {mqtt.error_string(result)}"
            )
        ack = asyncio.get_running_loop().create_future()
        self._acks[mid] = ack
        try:
            await asyncio.wait_for(ack, timeout=self._connect_timeout)
        except asyncio.TimeoutError as err:
            raise DynsecConnectionError(f"No SUBACK for {topic}") from err
        finally:
            self._acks.pop(mid, None)
        self._subscriptions.add(topic)
        logger.debug("Subscribed to %s", topic)

    async def publish(self, topic: str, payload: bytes) -> None:
        """Queue *payload* on the paho client."""
        client = self._require_client()
        info = client.publish(topic, payload, qos=self._qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise DynsecConnectionError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}"
            )

    async def health_check(self) -> bool:
        """Return True if the client is connected to the broker."""
        return self.is_connected

    def _require_client(self) -> mqtt.Client:
        if self._client is None:
            raise DynsecConnectionError("Not connected; call connect() first")
        return self._client

    async def _stop(self, client: mqtt.Client) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, client.loop_stop)

    async def _abort(self, client: mqtt.Client) -> None:
        """Close the socket of a connection that never got a successful CONNACK."""
        self._closed = asyncio.get_running_loop().create_future()
        client.disconnect()
        await self._stop(client)

    # -- paho callbacks (network thread) ----------------------------------

    def _call_soon(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(callback, *args)

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any,
    ) -> None:
        self._call_soon(self._handle_connack, client, reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any,
    ) -> None:
        self._call_soon(self._handle_disconnect, reason_code)

    def _on_subscribe(
        self,
        client: mqtt.Client,
        userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        properties: Any,
    ) -> None:
        self._call_soon(self._handle_suback, mid, reason_code_list)

    def _on_message(self, client: mqtt.Client, userdata: Any, message: Any) -> None:
        self._call_soon(self._dispatch, message.topic, bytes(message.payload))

    # -- loop-thread handlers ---------------------------------------------

    def _handle_connack(self, client: mqtt.Client, reason_code: Any) -> None:
        connack = self._connack
        if connack is not None and not connack.done():
            if reason_code.is_failure:
                connack.set_exception(
                    DynsecConnectionError(f"Connection refused: {reason_code}")
                )
            else:
                connack.set_result(None)
            return
        if reason_code.is_failure:
            logger.warning("Reconnect refused: %s", reason_code)
            return
        logger.info("Reconnected to %s", self._options.url)
        for topic in self._subscriptions:
            client.subscribe(topic, qos=self._qos)

    def _handle_disconnect(self, reason_code: Any) -> None:
        closed = self._closed
        if closed is not None and not closed.done():
            closed.set_result(None)
            return
        logger.warning("Connection to %s lost: %s", self._options.url, reason_code)

    def _handle_suback(self, mid: int, reason_code_list: list[Any]) -> None:
        ack = self._acks.get(mid)
        if ack is None or ack.done():
            return
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            ack.set_exception(
                DynsecConnectionError(f"Subscription refused: {failures[0]}")
            )
        else:
            ack.set_result(None)

    def _dispatch(self, topic: str, payload: bytes) -> None:
        if self._handler is None:
            logger.debug("No handler for message on %s", topic)
            return
        try:
            self._handler(topic, payload)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to handle message on %s", topic)
