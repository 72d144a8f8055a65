"""Connection options and topic layout of the dynamic-security control API."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

CONTROL_TOPIC_PREFIX = "$CONTROL/dynamic-security"
DEFAULT_API_VERSION = "v1"
DEFAULT_TIMEOUT_SECONDS = 2.0

#: Accepted ``protocol`` values mapped to (paho transport, use TLS).
PROTOCOLS: dict[str, tuple[str, bool]] = {
    "mqtt": ("tcp", False),
    "tcp": ("tcp", False),
    "mqtts": ("tcp", True),
    "ssl": ("tcp", True),
    "tls": ("tcp", True),
    "ws": ("websockets", False),
    "wss": ("websockets", True),
}


class ConnectOptions(BaseModel):
    """Broker connection settings with the defaults of a local Mosquitto."""

    model_config = ConfigDict(frozen=True)

    hostname: str = "localhost"
    port: int = Field(default=1883, gt=0, lt=65536)
    protocol: str = "mqtt"
    username: str | None = "admin-user"
    password: str | None = None
    client_id: str = ""
    keepalive: int = Field(default=60, ge=0)

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.hostname}:{self.port}"


@dataclass(frozen=True)
class ControlTopics:
    """Command and response topics for one API version."""

    api_version: str = DEFAULT_API_VERSION

    @property
    def commands(self) -> str:
        return f"{CONTROL_TOPIC_PREFIX}/{self.api_version}"

    @property
    def responses(self) -> str:
        return f"{self.commands}/response"
