"""Asyncio client for the Mosquitto dynamic-security plugin over MQTT."""

from __future__ import annotations

from .client import MosquittoDynsec
from .config import ConnectOptions, ControlTopics
from .engine import CorrelationEngine
from .envelope import CommandEnvelope, ResponseBatch, ResponseEnvelope
from .exceptions import (
    CommandAlreadyPendingError,
    CommandError,
    CommandTimeoutError,
    DisconnectedError,
    DynsecConnectionError,
    DynsecError,
    MalformedResponseError,
    NotConnectedError,
    RemoteCommandError,
    SerializationError,
    TransportError,
)
from .memory import InMemoryTransport
from .mqtt import MQTTConnectionManager
from .pending import PendingCommand, PendingCommandTable
from .ports import ITransport
from .serialization import PayloadSerializer
from .types import (
    AclType,
    ClientInfo,
    DefaultACLEntry,
    DefaultAclType,
    GroupInfo,
    ListClientsResponse,
    ListGroupsResponse,
    ListRolesResponse,
    RoleInfo,
)

__all__ = [
    "AclType",
    "ClientInfo",
    "CommandAlreadyPendingError",
    "CommandEnvelope",
    "CommandError",
    "CommandTimeoutError",
    "ConnectOptions",
    "ControlTopics",
    "CorrelationEngine",
    "DefaultACLEntry",
    "DefaultAclType",
    "DisconnectedError",
    "DynsecConnectionError",
    "DynsecError",
    "GroupInfo",
    "ITransport",
    "InMemoryTransport",
    "ListClientsResponse",
    "ListGroupsResponse",
    "ListRolesResponse",
    "MQTTConnectionManager",
    "MalformedResponseError",
    "MosquittoDynsec",
    "NotConnectedError",
    "PayloadSerializer",
    "PendingCommand",
    "PendingCommandTable",
    "RemoteCommandError",
    "ResponseBatch",
    "ResponseEnvelope",
    "RoleInfo",
    "SerializationError",
    "TransportError",
]
