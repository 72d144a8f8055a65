"""PendingCommandTable — in-flight commands keyed by command name."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import CommandAlreadyPendingError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("mosquitto_dynsec.pending")


@dataclass(eq=False)
class PendingCommand:
    """Waiter for one outstanding command.

    Settled at most once; later attempts are no-ops and return False.
    """

    name: str
    future: asyncio.Future[Any]
    issued_at: float = field(default_factory=time.monotonic)

    @property
    def settled(self) -> bool:
        return self.future.done()

    def resolve(self, result: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def reject(self, exc: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(exc)
        return True


class PendingCommandTable:
    """Mapping of command name to its waiter.

    Owned by a single engine and only touched from the event loop thread,
    so no locking is needed.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingCommand] = {}

    def register(self, name: str) -> PendingCommand:
        """Create and store a waiter for *name*.

        Raises CommandAlreadyPendingError if *name* is already outstanding.
        """
        if name in self._pending:
            raise CommandAlreadyPendingError(name)
        loop = asyncio.get_running_loop()
        waiter = PendingCommand(name=name, future=loop.create_future())
        self._pending[name] = waiter
        return waiter

    def pop(self, name: str) -> PendingCommand | None:
        """Remove and return the waiter for *name*, or None."""
        return self._pending.pop(name, None)

    def discard(self, name: str, waiter: PendingCommand) -> bool:
        """Remove *name* only if it still maps to *waiter*."""
        if self._pending.get(name) is waiter:
            del self._pending[name]
            return True
        return False

    def reject_all(self, make_error: Callable[[str], BaseException]) -> int:
        """Empty the table, rejecting every waiter with ``make_error(name)``."""
        waiters = list(self._pending.values())
        self._pending.clear()
        rejected = 0
        for waiter in waiters:
            if waiter.reject(make_error(waiter.name)):
                rejected += 1
        if rejected:
            logger.debug("Rejected %d pending command(s)", rejected)
        return rejected

    def names(self) -> list[str]:
        return list(self._pending)

    def __contains__(self, name: object) -> bool:
        return name in self._pending

    def __len__(self) -> int:
        return len(self._pending)
