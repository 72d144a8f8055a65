"""PayloadSerializer — JSON codec for command and response batches."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .envelope import ResponseBatch, ResponseEnvelope
from .exceptions import MalformedResponseError, SerializationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .envelope import CommandEnvelope


class PayloadSerializer:
    """Encode command batches to bytes and decode response batches from bytes."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def encode_commands(self, commands: Iterable[CommandEnvelope]) -> bytes:
        """Encode ``{"commands": [...]}``."""
        try:
            data = {"commands": [c.to_wire() for c in commands]}
            return json.dumps(data).encode(self._encoding)
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def decode_batch(self, raw: bytes | str) -> list[Any]:
        """Decode ``{"responses": [...]}`` into its raw entries, in order.

        Only the batch shape is checked; see ``decode_response`` for entries.
        """
        try:
            text = raw.decode(self._encoding) if isinstance(raw, bytes) else raw
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedResponseError(f"Invalid response payload: {e}") from e
        try:
            return ResponseBatch.model_validate(data).responses
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid response payload: {e.error_count()} validation error(s)"
            ) from e

    def decode_response(self, entry: Any) -> ResponseEnvelope:
        """Validate one entry of a response batch."""
        try:
            return ResponseEnvelope.model_validate(entry)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid response entry {entry!r}: "
                f"{e.error_count()} validation error(s)"
            ) from e
