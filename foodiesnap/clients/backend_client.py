from __future__ import annotations

import base64
import logging
import secrets
import time
from typing import Any

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)


class BackendClientError(RuntimeError):
    """Raised when a backend-as-a-service request fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    """Minimal REST client for the managed backend (tables + storage buckets).

    Every mutation the offline queue can replay goes through here. Failures of
    any kind (transport, timeout, non-2xx) surface as BackendClientError so the
    queue processor can treat them uniformly.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        photo_bucket: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.baas_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.baas_api_key
        self._timeout = float(timeout or settings.baas_timeout)
        self._photo_bucket = photo_bucket or settings.baas_photo_bucket
        self._transport = transport

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {access_token or self._api_key}"
        elif access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        json: Any = None,
        content: bytes | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        headers = self._headers(access_token)
        if extra_headers:
            headers.update(extra_headers)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=json, content=content, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Backend request %s %s failed: %s", method, path, exc)
            raise BackendClientError(f"Backend request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Backend returned %s for %s %s: %s", response.status_code, method, path, response.text[:200])
            raise BackendClientError(
                f"Backend returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _first_row(data: Any) -> dict[str, Any]:
        if isinstance(data, list):
            return data[0] if data and isinstance(data[0], dict) else {}
        return data if isinstance(data, dict) else {}

    async def send_message(
        self,
        *,
        conversation_id: str,
        sender_id: str,
        content: str,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/rest/v1/messages",
            access_token=access_token,
            json={"conversation_id": conversation_id, "sender_id": sender_id, "content": content},
            extra_headers={"Prefer": "return=representation"},
        )
        return self._first_row(data)

    async def send_friend_request(
        self,
        *,
        user_id: str,
        friend_id: str,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/rest/v1/friends",
            access_token=access_token,
            json={"user_id": user_id, "friend_id": friend_id, "status": "pending"},
            extra_headers={"Prefer": "return=representation"},
        )
        return self._first_row(data)

    async def upload_photo(
        self,
        *,
        user_id: str,
        image_base64: str,
        content_type: str = "image/jpeg",
        path: str | None = None,
        access_token: str | None = None,
    ) -> dict[str, str]:
        try:
            body = base64.b64decode(image_base64, validate=True)
        except ValueError as exc:
            raise BackendClientError("Photo payload is not valid base64") from exc

        object_path = path or f"{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(4)}.jpg"
        await self._request(
            "POST",
            f"/storage/v1/object/{self._photo_bucket}/{object_path}",
            access_token=access_token,
            content=body,
            extra_headers={"Content-Type": content_type},
        )
        public_url = f"{self._base_url}/storage/v1/object/public/{self._photo_bucket}/{object_path}"
        return {"path": object_path, "public_url": public_url}


__all__ = ["BackendClient", "BackendClientError"]
