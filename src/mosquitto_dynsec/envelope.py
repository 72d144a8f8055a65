"""Command and response envelopes exchanged with the dynamic-security plugin."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CommandEnvelope(BaseModel):
    """Immutable outbound command.

    ``name`` is both the operation and the correlation key.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ..., min_length=1, description="Command name, e.g. 'createClient'"
    )
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Flatten into the wire shape ``{"command": name, **parameters}``.

        ``None`` values are dropped; ``command`` always wins over a parameter
        of the same name.
        """
        body = {k: v for k, v in self.parameters.items() if v is not None}
        body["command"] = self.name
        return body


class ResponseEnvelope(BaseModel):
    """One reply inside an inbound response batch."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    command: str
    data: Any = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return bool(self.error)


class ResponseBatch(BaseModel):
    """Inbound payload: an ordered sequence of responses.

    Entries stay raw here; each one is validated as a ResponseEnvelope on its
    own so that a bad entry does not hide its neighbours.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    responses: list[Any]
