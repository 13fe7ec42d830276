"""Async Supabase Storage client for the share file bucket.

Covers the three object operations the service needs: upload, signed
download URL minting, and removal. Errors map onto the same SupabaseError
hierarchy as the PostgREST client.
"""

from __future__ import annotations

from typing import Collection
from urllib.parse import quote

import httpx

from .errors import SupabaseError
from .supabase_client import _get_shared_async_client, raise_for_supabase_error


class SupabaseStorageClient:
    """ObjectStorage backed by a Supabase Storage bucket (service role)."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        bucket: str = "files",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._bucket = bucket
        self._timeout_seconds = float(timeout_seconds)
        self._client = http_client or _get_shared_async_client()

    @property
    def base_storage_url(self) -> str:
        return f"{self._supabase_url}/storage/v1"

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    def _object_url(self, prefix: str, path: str) -> str:
        return f"{self.base_storage_url}/{prefix}/{self._bucket}/{quote(path.lstrip('/'))}"

    async def put(
        self, path: str, data: bytes, content_type: str = "application/octet-stream",
    ) -> None:
        resp = await self._client.request(
            "POST",
            self._object_url("object", path),
            content=data,
            headers={
                **self._auth_headers(),
                "Content-Type": content_type,
                "x-upsert": "false",
            },
            timeout=self._timeout_seconds,
        )
        raise_for_supabase_error(resp)

    async def signed_get(self, path: str, ttl_seconds: int) -> str:
        resp = await self._client.request(
            "POST",
            self._object_url("object/sign", path),
            json={"expiresIn": int(ttl_seconds)},
            headers=self._auth_headers(),
            timeout=self._timeout_seconds,
        )
        raise_for_supabase_error(resp)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise SupabaseError(
                status_code=502, message=f"sign response is not JSON: {exc}"
            ) from exc
        signed = None
        if isinstance(payload, dict):
            signed = payload.get("signedURL") or payload.get("signedUrl")
        if not isinstance(signed, str) or not signed:
            raise SupabaseError(status_code=502, message="signed URL missing from response")
        if signed.startswith("http"):
            return signed
        return f"{self.base_storage_url}{signed}"

    async def remove(self, paths: Collection[str]) -> None:
        prefixes = [p for p in paths if p]
        if not prefixes:
            return
        resp = await self._client.request(
            "DELETE",
            f"{self.base_storage_url}/object/{self._bucket}",
            json={"prefixes": prefixes},
            headers=self._auth_headers(),
            timeout=self._timeout_seconds,
        )
        raise_for_supabase_error(resp)
