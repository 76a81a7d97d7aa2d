"""
backend_client.py - Hosted backend client (record insert, object upload, auth)

Talks to a Supabase-style REST backend over aiohttp. Network problems and
5xx responses surface as TransientRemoteError so callers can tell them
apart from rejections (RecordInsertError, UploadError, DuplicateObjectError).
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from ..config import Settings
from .errors import (
    BackendNotConfiguredError,
    DuplicateObjectError,
    RecordInsertError,
    TransientRemoteError,
    UploadError,
)

logger = logging.getLogger("BackendClient")


class BackendClient:
    """Async client for the remote record service and media store."""

    def __init__(self, settings: Settings, timeout: Optional[float] = None):
        self.base_url = settings.supabase_url.rstrip('/')
        self.anon_key = settings.supabase_anon_key
        self.access_token = settings.supabase_access_token
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.submit_timeout_seconds)

    def is_configured(self) -> bool:
        return bool(self.base_url and self.anon_key)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        if not self.is_configured():
            raise BackendNotConfiguredError("Set SUPABASE_URL and SUPABASE_ANON_KEY")
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    # ==================== Records ====================

    async def insert_record(self, table: str, record: Dict[str, Any]) -> Optional[str]:
        """
        Insert one row and return its id when the service echoes it back.

        Raises:
            TransientRemoteError: network failure, timeout or 5xx
            RecordInsertError: any other rejection
        """
        endpoint = f"{self.base_url}/rest/v1/{table}"
        headers = self._headers({
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(endpoint, json=record, headers=headers) as response:
                    if response.status >= 500:
                        text = await response.text()
                        raise TransientRemoteError(f"Insert into {table} failed: HTTP {response.status} {text[:200]}",
                                                   status=response.status)
                    if response.status >= 400:
                        text = await response.text()
                        raise RecordInsertError(f"Insert into {table} rejected: HTTP {response.status} {text[:200]}",
                                                status=response.status)
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
        except asyncio.TimeoutError:
            raise TransientRemoteError(f"Insert into {table} timed out")
        except aiohttp.ClientError as e:
            raise TransientRemoteError(f"Insert into {table} connection error: {e}")

        if isinstance(body, list) and body and isinstance(body[0], dict):
            body = body[0]
        if isinstance(body, dict) and body.get("id") is not None:
            return str(body["id"])
        return None

    # ==================== Media ====================

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{quote(path)}"

    async def upload_object(self, bucket: str, path: str, data: bytes,
                            content_type: str = "application/octet-stream") -> str:
        """
        Upload raw bytes to a fresh path and return the public URL.

        Raises:
            DuplicateObjectError: the path is already taken
            UploadError: the media store rejected the upload
            TransientRemoteError: network failure or timeout
        """
        endpoint = f"{self.base_url}/storage/v1/object/{bucket}/{quote(path)}"
        headers = self._headers({
            "Content-Type": content_type,
            "x-upsert": "false",
        })

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(endpoint, data=data, headers=headers) as response:
                    if response.status < 400:
                        return self.public_url(bucket, path)

                    text = await response.text()
                    if response.status == 409 or "already exists" in text.lower() or "duplicate" in text.lower():
                        raise DuplicateObjectError(f"Object already exists: {bucket}/{path}",
                                                   status=response.status)
                    raise UploadError(f"Upload to {bucket}/{path} failed: HTTP {response.status} {text[:200]}",
                                      status=response.status)
        except asyncio.TimeoutError:
            raise TransientRemoteError(f"Upload to {bucket}/{path} timed out")
        except aiohttp.ClientError as e:
            raise TransientRemoteError(f"Upload to {bucket}/{path} connection error: {e}")

    # ==================== Auth ====================

    async def get_current_user_id(self) -> Optional[str]:
        """Best-effort lookup of the signed-in user; None when unknown."""
        if not self.access_token or not self.is_configured():
            return None

        endpoint = f"{self.base_url}/auth/v1/user"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(endpoint, headers=self._headers()) as response:
                    if response.status != 200:
                        logger.debug(f"No authenticated user (HTTP {response.status})")
                        return None
                    data = await response.json(content_type=None)
                    user_id = data.get("id") if isinstance(data, dict) else None
                    return str(user_id) if user_id else None
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.debug(f"User lookup failed: {e}")
            return None

    async def health_check(self) -> bool:
        """True when the backend answers at all."""
        if not self.is_configured():
            return False

        endpoint = f"{self.base_url}/auth/v1/health"
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=5)) as session:
                async with session.get(endpoint, headers=self._headers()) as response:
                    return response.status < 500
        except (asyncio.TimeoutError, aiohttp.ClientError):
            return False
