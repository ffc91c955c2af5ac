"""
RequestDeduplicator - single-flight for concurrent identical cache misses.

When several callers miss the cache on the same fingerprint at once, only
the first one calls the store. The rest join that call and receive its
result or its exception. A finished call is forgotten immediately: the
response cache, not this module, serves later readers.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


def _retrieve_exception(task: asyncio.Future[Any]) -> None:
    # Every waiter may have timed out; the failure still counts as seen
    if not task.cancelled():
        task.exception()


@dataclass
class _Flight:
    task: asyncio.Future[Any]
    joined: int = 0


@dataclass
class DeduplicatorStats:
    started: int = 0
    joined: int = 0
    in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        callers = self.started + self.joined
        return self.joined / callers if callers else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "joined": self.joined,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }


class RequestDeduplicator:
    """
    Shares one in-flight store call per cache fingerprint.

    Usage:
        dedup = RequestDeduplicator()
        row = await dedup.dedupe(
            "profile:u1:enhanced",
            lambda: store.select("profiles", filters={"id": "u1"}, single=True),
        )
    """

    def __init__(self, debug: bool = False):
        self._flights: dict[str, _Flight] = {}
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run `request_fn`, or join the call already running for `key`.

        The lookup and the registration happen with no await in between, so
        on one event loop two callers never both start a call for one key.
        """
        flight = self._flights.get(key)
        if flight is None:
            flight = _Flight(asyncio.ensure_future(self._fly(key, request_fn)))
            flight.task.add_done_callback(_retrieve_exception)
            self._flights[key] = flight
            self._stats.started += 1
            self._log(f"start {key[:60]}")
        else:
            flight.joined += 1
            self._stats.joined += 1
            self._log(f"join {key[:60]} ({flight.joined} waiting)")

        # A cancelled waiter leaves the shared call running for the others
        return await asyncio.shield(flight.task)

    async def _fly(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await request_fn()
        finally:
            self._flights.pop(key, None)

    async def cancel_all(self) -> int:
        """Cancel every in-flight call. Returns how many were cancelled."""
        flights, self._flights = self._flights, {}
        for flight in flights.values():
            flight.task.cancel()
        if flights:
            self._log(f"cancelled {len(flights)} in-flight calls")
        return len(flights)

    def get_in_flight_count(self) -> int:
        return len(self._flights)

    def get_stats(self) -> DeduplicatorStats:
        self._stats.in_flight = len(self._flights)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[RequestDeduplicator] {message}")
