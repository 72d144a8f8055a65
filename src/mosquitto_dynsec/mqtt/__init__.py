"""MQTT transport adapter built on paho-mqtt."""

from __future__ import annotations

from .connection import MQTTConnectionManager, resolve_protocol

__all__ = [
    "MQTTConnectionManager",
    "resolve_protocol",
]
