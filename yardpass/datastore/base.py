"""Remote store protocol.

Defines the interface of the hosted database the service layer wraps. The
store only reports success or failure; normalizing failures into service
errors happens in the orchestrator.
"""

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable

# (column, ascending)
Order = tuple[str, bool]


class StoreError(Exception):
    """A remote store call failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        hint: str | None = None,
    ):
        self.status_code = status_code
        self.code = code
        self.hint = hint
        super().__init__(message)


class RecordNotFoundError(StoreError):
    """A single-row read matched no rows."""

    pass


class StoreTimeoutError(StoreError):
    """The store did not answer in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Store request timed out after {timeout}s")


@dataclass
class StoreResult:
    """Rows (or a single row) returned by the store, with an optional total."""

    data: Any
    count: int | None = None


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for hosted-database backends.

    Example:
        ```python
        store: RemoteStore = RestStore(base_url, api_key)
        result = await store.select(
            "profiles",
            columns="id,username",
            filters={"id": "u1"},
            single=True,
        )
        ```
    """

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        search: str | None = None,
        order: Order | Sequence[Order] | None = None,
        range_: tuple[int, int] | None = None,
        single: bool = False,
        count: bool = False,
    ) -> StoreResult:
        """Read rows.

        Args:
            table: Table or view name
            columns: PostgREST select string
            filters: column -> value for equality, or column -> (operator, value)
                for other PostgREST operators, e.g. ("gte", 10)
            search: PostgREST `or` expression body
            order: (column, ascending), or a list of them for tie-breaks
            range_: Inclusive (from, to) row range
            single: Expect exactly one row
            count: Ask for the exact total row count

        Returns:
            StoreResult with a list of rows, or one row when `single`

        Raises:
            RecordNotFoundError: `single` read matched nothing
            StoreError: any other failure
        """
        ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
        columns: str = "*",
        single: bool = False,
    ) -> StoreResult:
        """Update rows matching `filters` and return them."""
        ...

    async def insert(
        self,
        table: str,
        values: dict[str, Any],
        columns: str = "*",
        single: bool = False,
    ) -> StoreResult:
        """Insert one row and return it."""
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> StoreResult:
        """Delete rows matching `filters` and return them."""
        ...

    async def ping(self) -> None:
        """Cheap round trip. Raises StoreError when the store is unreachable."""
        ...
