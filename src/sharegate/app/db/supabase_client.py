"""Async PostgREST client wrapper for Supabase.

This is the single point of Supabase database HTTP interaction for the share
and audit stores. Filters are sent as repeated query parameters so the same
column can carry two conditions (``expires_at=not.is.null&expires_at=lte.X``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

import httpx

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)

# Module-level shared client for connection pooling in app runtimes/tests.
_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


@dataclass(frozen=True, slots=True)
class PostgrestFilter:
    column: str
    op: str
    value: Any


Filters = Sequence[PostgrestFilter] | Mapping[str, tuple[str, Any] | Any] | None


def _encode_filter_value(op: str, value: Any) -> str:
    # ``not.is`` / ``not.in`` encode their operand like the positive operator.
    base_op = op[4:] if op.startswith("not.") else op

    if base_op == "is":
        if value is None:
            return "null"
        if value is True:
            return "true"
        if value is False:
            return "false"
        return str(value)

    if base_op == "in":
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("in operator requires an iterable of values")
        items = []
        for v in value:
            if isinstance(v, str):
                items.append(json.dumps(v))
            elif v is None:
                items.append("null")
            else:
                items.append(str(v))
        return f"({','.join(items)})"

    if value is None:
        # PostgREST wants `is.null`, never `eq.null`.
        if base_op in ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike"):
            raise ValueError(f"{op} does not support None; use op='is' with value=None")

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filters_to_params(filters: Filters) -> list[tuple[str, str]]:
    if not filters:
        return []

    params: list[tuple[str, str]] = []

    if isinstance(filters, Mapping):
        items: Iterable[tuple[str, tuple[str, Any] | Any]] = filters.items()
        for col, spec in items:
            if isinstance(spec, tuple) and len(spec) == 2:
                op, val = spec
            else:
                op, val = "eq", spec
            op_str = str(op)
            params.append((str(col), f"{op_str}.{_encode_filter_value(op_str, val)}"))
        return params

    for f in filters:
        params.append((f.column, f"{f.op}.{_encode_filter_value(f.op, f.value)}"))
    return params


def _parse_content_range_total(header: str | None) -> int | None:
    """Extract the total from a ``Content-Range: 0-9/42`` (or ``*/42``) header."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1].strip()
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


def raise_for_supabase_error(resp: httpx.Response) -> None:
    """Map an error response to the SupabaseError hierarchy (no-op below 400)."""
    if resp.status_code < 400:
        return

    message = resp.text
    code = details = hint = None

    try:
        payload = resp.json()
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error") or message
            code = payload.get("code")
            details = payload.get("details")
            hint = payload.get("hint")
    except ValueError:
        pass

    err_cls: type[SupabaseError]
    if resp.status_code in (401, 403):
        err_cls = SupabaseAuthError
    elif resp.status_code == 404:
        err_cls = SupabaseNotFoundError
    elif resp.status_code == 409:
        err_cls = SupabaseConflictError
    else:
        err_cls = SupabaseError

    # Avoid including secrets in the exception string.
    raise err_cls(
        status_code=resp.status_code,
        message=str(message),
        code=code,
        details=details,
        hint=hint,
    )


class SupabaseClient:
    """Minimal async PostgREST client (service role) with typed results."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        default_schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._default_schema = default_schema or "public"
        self._timeout_seconds = float(timeout_seconds)
        self._client = http_client or _get_shared_async_client()

    @property
    def base_rest_url(self) -> str:
        return f"{self._supabase_url}/rest/v1"

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    def _schema_headers(self, method: str) -> dict[str, str]:
        headers = {"Accept-Profile": self._default_schema}
        if method.upper() in ("POST", "PATCH", "PUT", "DELETE"):
            headers["Content-Profile"] = self._default_schema
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = {
            **self._auth_headers(),
            **self._schema_headers(method),
        }
        if prefer:
            headers["Prefer"] = prefer

        resp = await self._client.request(
            method,
            f"{self.base_rest_url}/{table}",
            params=params or [],
            json=json_body,
            headers=headers,
            timeout=self._timeout_seconds,
        )
        raise_for_supabase_error(resp)
        return resp

    @staticmethod
    def _expect_list(resp: httpx.Response, operation: str) -> list[dict[str, Any]]:
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(
                status_code=500, message=f"expected list response from {operation}",
            )
        return payload

    async def select(
        self,
        table: str,
        filters: Filters = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = _filters_to_params(filters)
        params.append(("select", columns))
        if limit is not None:
            params.append(("limit", str(int(limit))))
        if order:
            params.append(("order", order))

        resp = await self._request("GET", table, params=params)
        return self._expect_list(resp, "select")

    async def count(self, table: str, filters: Filters = None) -> int:
        """Return the exact number of rows matching ``filters``."""
        params = _filters_to_params(filters)
        params.append(("select", "id"))
        params.append(("limit", "1"))

        resp = await self._request("GET", table, params=params, prefer="count=exact")
        total = _parse_content_range_total(resp.headers.get("content-range"))
        if total is None:
            raise SupabaseError(
                status_code=500, message="missing Content-Range total in count response",
            )
        return total

    async def insert(
        self,
        table: str,
        data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        resp = await self._request(
            "POST", table, json_body=data, prefer="return=representation",
        )
        return self._expect_list(resp, "insert")

    async def update(
        self,
        table: str,
        filters: Filters,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """PATCH rows matching ``filters``; returns the rows actually updated.

        An empty list means no row matched, which is how conditional updates
        report a lost race.
        """
        if not filters:
            raise ValueError("update requires at least one filter")
        resp = await self._request(
            "PATCH",
            table,
            params=_filters_to_params(filters),
            json_body=data,
            prefer="return=representation",
        )
        return self._expect_list(resp, "update")

    async def delete(
        self,
        table: str,
        filters: Filters,
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        resp = await self._request(
            "DELETE",
            table,
            params=_filters_to_params(filters),
            prefer="return=representation",
        )
        return self._expect_list(resp, "delete")
