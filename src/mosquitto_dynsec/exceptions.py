"""Exceptions for mosquitto-dynsec."""

from __future__ import annotations


class DynsecError(Exception):
    """Root exception for the dynamic-security client."""


class CommandError(DynsecError):
    """Base class for errors that settle a single command.

    Raised to the caller of that command only; other pending commands are
    never affected.
    """

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        super().__init__(message)


class NotConnectedError(CommandError):
    """Raised when a command is issued before a connection is established."""

    def __init__(self, command: str) -> None:
        super().__init__(command, f"Can't send command {command!r}: not connected yet")


class CommandAlreadyPendingError(CommandError):
    """Raised when a command with the same name is still waiting for a response.

    Only one command per name may be outstanding; callers must serialize
    same-named calls.
    """

    def __init__(self, command: str) -> None:
        super().__init__(command, f"Command {command!r} is already pending")


class CommandTimeoutError(CommandError):
    """Raised when no response arrives within the configured window."""

    def __init__(self, command: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            command, f"Command {command!r} timed out after {timeout:g}s"
        )


class RemoteCommandError(CommandError):
    """Raised when the broker answers a command with an error message.

    ``str(exc)`` is the remote message verbatim.
    """

    def __init__(self, command: str, message: str) -> None:
        self.message = message
        super().__init__(command, message)


class DisconnectedError(CommandError):
    """Raised for commands still pending when the client disconnects."""

    def __init__(self, command: str) -> None:
        super().__init__(
            command, f"Command {command!r} abandoned: client disconnected"
        )


class TransportError(DynsecError):
    """Base class for transport and wire-format errors."""


class DynsecConnectionError(TransportError):
    """Raised when connecting to the broker fails."""


class MalformedResponseError(TransportError):
    """Raised when an inbound payload does not have the response batch shape."""


class SerializationError(TransportError):
    """Raised when an outbound command batch cannot be encoded."""
