"""
RestStore - async client for the hosted PostgREST surface.

Request shape:
- GET/POST/PATCH/DELETE {base_url}/rest/v1/{table}
- `select=` column string, `col=eq.value` (or `col=op.value`) filters,
  `or=(...)` search, `order=a.desc,b.desc`
- Range header pagination, `Prefer: count=exact` for totals
- object accept header for single-row reads (PGRST116 means no row)
"""

from typing import Any, Sequence

import httpx
from loguru import logger

from yardpass.datastore.base import (
    Order,
    RecordNotFoundError,
    StoreError,
    StoreResult,
    StoreTimeoutError,
)

SINGLE_OBJECT_ACCEPT = "application/vnd.pgrst.object+json"
NO_ROWS_CODE = "PGRST116"


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _filter_value(value: Any) -> str:
    if isinstance(value, tuple):
        operator, operand = value
        return f"{operator}.{_literal(operand)}"
    if value is None:
        return "is.null"
    return f"eq.{_literal(value)}"


def _order_value(order: Order | Sequence[Order]) -> str:
    if isinstance(order[0], str):
        order = [order]
    return ",".join(
        f"{column}.{'asc' if ascending else 'desc'}" for column, ascending in order
    )


def _parse_total(content_range: str | None) -> int | None:
    """Read the total out of a `0-19/123` Content-Range header."""
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class RestStore:
    """
    PostgREST store over httpx.

    Usage:
        async with RestStore(settings.supabase_url, settings.supabase_anon_key) as store:
            result = await store.select("events", columns="id,title", range_=(0, 19))
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=f"{self._base_url}/rest/v1",
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http_client

    def set_access_token(self, token: str | None) -> None:
        """Switch the bearer token used for row-level security."""
        self._access_token = token

    def _headers(self, single: bool = False, count: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if single:
            headers["Accept"] = SINGLE_OBJECT_ACCEPT
        if count:
            headers["Prefer"] = "count=exact"
        return headers

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
        params: dict[str, str] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = _filter_value(value)
        if search:
            params["or"] = f"({search})"
        if order:
            params["order"] = _order_value(order)

        headers = self._headers(single=single, count=count)
        if range_:
            headers["Range-Unit"] = "items"
            headers["Range"] = f"{range_[0]}-{range_[1]}"

        response = await self._execute("GET", table, params=params, headers=headers)
        return StoreResult(
            data=response.json(),
            count=_parse_total(response.headers.get("content-range")),
        )

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
        columns: str = "*",
        single: bool = False,
    ) -> StoreResult:
        if not filters:
            raise StoreError(f"Refusing unfiltered update on '{table}'")

        params: dict[str, str] = {"select": columns}
        for column, value in filters.items():
            params[column] = _filter_value(value)

        headers = self._headers(single=single)
        headers["Prefer"] = "return=representation"

        response = await self._execute(
            "PATCH", table, params=params, headers=headers, json_data=values
        )
        return StoreResult(data=response.json())

    async def insert(
        self,
        table: str,
        values: dict[str, Any],
        columns: str = "*",
        single: bool = False,
    ) -> StoreResult:
        headers = self._headers(single=single)
        headers["Prefer"] = "return=representation"

        response = await self._execute(
            "POST", table, params={"select": columns}, headers=headers, json_data=values
        )
        return StoreResult(data=response.json())

    async def delete(self, table: str, filters: dict[str, Any]) -> StoreResult:
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on '{table}'")

        headers = self._headers()
        headers["Prefer"] = "return=representation"
        params = {column: _filter_value(value) for column, value in filters.items()}

        response = await self._execute("DELETE", table, params=params, headers=headers)
        return StoreResult(data=response.json())

    async def ping(self) -> None:
        await self.select("profiles", columns="id", range_=(0, 0))

    async def _execute(
        self,
        method: str,
        table: str,
        params: dict[str, str],
        headers: dict[str, str],
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()

        try:
            response = await client.request(
                method=method,
                url=f"/{table}",
                params=params,
                headers=headers,
                json=json_data,
            )
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            raise StoreTimeoutError(self._timeout) from e

        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e

        except httpx.RequestError as e:
            raise StoreError(str(e)) from e

    @staticmethod
    def _status_error(response: httpx.Response) -> StoreError:
        """Map a PostgREST error body onto a StoreError."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = body.get("code")
        message = body.get("message") or f"HTTP {response.status_code}: {response.text[:200]}"
        error_cls = (
            RecordNotFoundError
            if code == NO_ROWS_CODE or response.status_code == 404
            else StoreError
        )
        return error_cls(
            message,
            status_code=response.status_code,
            code=code,
            hint=body.get("hint"),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("RestStore closed")

    async def __aenter__(self) -> "RestStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
