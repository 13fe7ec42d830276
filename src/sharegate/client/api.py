"""Async client for the sharegate HTTP API.

Wraps the owner upload flow (encrypt → store object → create metadata) and
the recipient download flow (verify password → gate → fetch → decrypt).
Passphrases stay on the client; only ciphertext and the IV leave it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

import httpx

from ..app.sharing.model import (
    ShareRecord,
    ShareStatus,
    evaluate_share_status,
    format_timestamp,
    generate_share_token,
    utcnow,
)
from .encryption import decrypt_file_content, encrypt_file_content
from .retry import ConflictError, ConflictRetryPolicy, RateLimitedError, retry_on_conflict

logger = logging.getLogger(__name__)


class ShareGateError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


@dataclass(frozen=True)
class UploadedShare:
    file_id: str
    token: str
    stored_path: str
    encryption_iv: str | None = None


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class ShareGateClient:
    """Client for owners and recipients.

    Args:
        base_url: Root URL of the sharegate service.
        http_client: Client used for API calls and object fetches.
        access_token: Owner bearer token, needed only for uploads.
        object_storage: Bucket the owner uploads into before creating a share.
        retry_policy: Backoff for gate conflicts.
        fetch_object: Override for downloading a signed URL's bytes.
        sleep: Awaitable sleep used between conflict retries.
    """

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        access_token: str | None = None,
        object_storage=None,
        retry_policy: ConflictRetryPolicy | None = None,
        fetch_object: Callable[[str], Awaitable[bytes]] | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=30.0)
        self._access_token = access_token
        self._storage = object_storage
        self._retry_policy = retry_policy or ConflictRetryPolicy()
        self._fetch_object = fetch_object or self._fetch_signed_url
        self._sleep = sleep

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(
        self, path: str, payload: dict[str, Any], *, auth: bool = False,
    ) -> httpx.Response:
        headers = {}
        if auth:
            if not self._access_token:
                raise ShareGateError(401, "An access token is required for this call")
            headers["Authorization"] = f"Bearer {self._access_token}"
        return await self._http.post(f"{self._base_url}{path}", json=payload, headers=headers)

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> dict[str, Any]:
        body = _json_body(resp)
        if resp.status_code == 429:
            retry_after = body.get("retryAfterSeconds") or resp.headers.get("Retry-After") or 60
            raise RateLimitedError(int(retry_after), body.get("error", ""))
        if resp.status_code >= 400 or not body.get("success", False):
            raise ShareGateError(resp.status_code, body.get("error") or resp.reason_phrase)
        return body

    # ── Owner flow ────────────────────────────────────────────────

    async def upload_share(
        self,
        data: bytes,
        original_name: str,
        *,
        owner_id: str,
        passphrase: str | None = None,
        password: str | None = None,
        expires_at: datetime | None = None,
        max_downloads: int | None = None,
    ) -> UploadedShare:
        """Store ``data`` and register a share for it."""
        if self._storage is None:
            raise ShareGateError(500, "No object storage configured for uploads")

        token = generate_share_token()
        encryption_iv = None
        object_name = original_name
        if passphrase:
            encrypted = encrypt_file_content(data, passphrase)
            data, encryption_iv = encrypted.ciphertext, encrypted.iv_b64
            object_name = f"{original_name}.enc"

        stored_path = f"{owner_id}/{token}-{object_name}"
        await self._storage.put(stored_path, data)

        resp = await self._post(
            "/create-share-metadata",
            {
                "originalName": original_name,
                "storedPath": stored_path,
                "token": token,
                "expiresAt": format_timestamp(expires_at),
                "maxDownloads": max_downloads,
                "password": password,
                "encryptionEnabled": encryption_iv is not None,
                "encryptionIv": encryption_iv,
            },
            auth=True,
        )
        body = self._raise_for_status(resp)
        return UploadedShare(
            file_id=body["fileId"],
            token=body.get("token", token),
            stored_path=stored_path,
            encryption_iv=encryption_iv,
        )

    # ── Recipient flow ────────────────────────────────────────────

    async def verify_password(self, file_id: str, password: str) -> bool:
        resp = await self._post(
            "/verify-file-password", {"fileId": file_id, "password": password},
        )
        return bool(self._raise_for_status(resp).get("valid"))

    async def validate_and_download(self, file_id: str) -> str:
        """Signed URL for one download, retrying gate conflicts.

        Raises:
            RateLimitedError: The gate throttled this client.
            ConflictRetryExhausted: Conflicts outlasted the retry budget.
            ShareGateError: Any other refusal.
        """

        async def attempt() -> str:
            resp = await self._post("/validate-and-download", {"fileId": file_id})
            if resp.status_code == 409:
                raise ConflictError(_json_body(resp).get("error", "conflict"))
            return self._raise_for_status(resp)["signedUrl"]

        return await retry_on_conflict(attempt, self._retry_policy, sleep=self._sleep)

    async def download(
        self,
        file_id: str,
        *,
        password: str | None = None,
        passphrase: str | None = None,
        encryption_iv: str | None = None,
    ) -> bytes:
        """Run the full recipient flow and return the plaintext bytes."""
        if encryption_iv and not passphrase:
            raise ValueError("passphrase is required for an encrypted share")
        if password is not None and not await self.verify_password(file_id, password):
            raise ShareGateError(403, "Invalid password")

        signed_url = await self.validate_and_download(file_id)
        data = await self._fetch_object(signed_url)
        if encryption_iv:
            return decrypt_file_content(data, passphrase, encryption_iv)
        return data

    async def _fetch_signed_url(self, url: str) -> bytes:
        resp = await self._http.get(url)
        if resp.status_code != 200:
            raise ShareGateError(resp.status_code, "Unable to fetch file")
        return resp.content

    @staticmethod
    def advisory_status(record: ShareRecord, now: datetime | None = None) -> ShareStatus:
        """Status for display only; the server re-checks on every download."""
        return evaluate_share_status(record, now or utcnow())
