"""
Client for the hosted VelvetCore store.

The rest of the package talks to the store through the narrow
StoreClient interface: a table name, equality filters, row payloads, and
returned rows or a StoreError. PostgrestClient implements it over the
PostgREST HTTP API that Supabase exposes under /rest/v1.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from velvetcore.constants import CLIENT_INFO
from velvetcore.utils.logging import get_logger

logger = get_logger("store_client")

Row = dict[str, Any]
Filters = dict[str, Any]

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"


class StoreClient(Protocol):
    """Request/response interface to the remote store."""

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]: ...

    async def select_single(
        self, table: str, filters: Filters | None = None, *, columns: str = "*"
    ) -> Row: ...

    async def upsert(
        self, table: str, rows: list[Row], *, on_conflict: str | None = None
    ) -> None: ...

    async def delete(self, table: str, filters: Filters) -> None: ...

    async def rpc(self, function: str, params: dict[str, Any]) -> Any: ...

    async def aclose(self) -> None: ...


class PostgrestClient:
    """
    StoreClient over PostgREST.

    Every request carries the anon key as both apikey and bearer token.
    Non-2xx responses raise StoreError; transport failures propagate as
    httpx errors. Nothing is retried.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        client_info: str = CLIENT_INFO,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not api_key:
            raise ValueError("Store URL and API key are required")
        self.url = url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "X-Client-Info": client_info,
            },
            timeout=timeout,
            transport=transport,
        )

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        params = [("select", columns), *_filter_params(filters)]
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        response = await self._request("GET", f"/{table}", table=table, params=params)
        return response.json()

    async def select_single(
        self, table: str, filters: Filters | None = None, *, columns: str = "*"
    ) -> Row:
        """Fetch exactly one row. Zero rows raises StoreError code PGRST116."""
        params = [("select", columns), *_filter_params(filters)]
        response = await self._request(
            "GET",
            f"/{table}",
            table=table,
            params=params,
            headers={"Accept": _SINGLE_OBJECT},
        )
        return response.json()

    async def upsert(
        self, table: str, rows: list[Row], *, on_conflict: str | None = None
    ) -> None:
        """Insert rows, overwriting any that collide on the conflict target."""
        if not rows:
            return
        params = [("on_conflict", on_conflict)] if on_conflict else []
        await self._request(
            "POST",
            f"/{table}",
            table=table,
            params=params,
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        await self._request(
            "DELETE",
            f"/{table}",
            table=table,
            params=_filter_params(filters),
            headers={"Prefer": "return=minimal"},
        )

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        response = await self._request(
            "POST", f"/rpc/{function}", table=f"rpc:{function}", json=params
        )
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        table: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        response = await self._http.request(
            method, path, params=params, json=json, headers=headers
        )
        if response.is_error:
            error = StoreError.from_response(response)
            logger.debug(
                "store_request_failed",
                method=method,
                table=table,
                status=response.status_code,
                code=error.code,
            )
            raise error
        return response


def _filter_params(filters: Filters | None) -> list[tuple[str, str]]:
    """Equality filters in PostgREST syntax (col=eq.value, col=is.null)."""
    params = []
    for column, value in (filters or {}).items():
        if value is None:
            params.append((column, "is.null"))
        elif isinstance(value, bool):
            params.append((column, f"eq.{str(value).lower()}"))
        else:
            params.append((column, f"eq.{value}"))
    return params


class StoreError(Exception):
    """Raised for any error reported by the store."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: httpx.Response) -> StoreError:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )
        return cls(
            body.get("message") or response.reason_phrase,
            code=body.get("code"),
            details=body.get("details"),
            hint=body.get("hint"),
            status_code=response.status_code,
        )

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message
