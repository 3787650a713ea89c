# Overview: Object storage backends for uploaded files (in-memory or Supabase Storage REST).

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from flask import current_app

EXTENSION_KEY = "efectivio.object_storage"


class StorageError(Exception):
    """Raised when the object storage backend fails."""
    pass


@dataclass
class StoredObject:
    data: bytes
    content_type: str | None


class ObjectStorage:
    name = "base"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> None:
        raise NotImplementedError

    def delete(self, bucket: str, path: str) -> None:
        raise NotImplementedError

    def signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        raise NotImplementedError


class InMemoryObjectStorage(ObjectStorage):
    """
    Development stand-in used when no storage service is configured.

    Signed URLs are HMAC-signed but there is nothing serving them.
    """
    name = "memory"

    def __init__(self, secret: str = "dev"):
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self._secret = secret.encode("utf-8")

    def upload(self, bucket, path, data, content_type=None):
        if (bucket, path) in self.objects:
            raise StorageError(f"Object already exists: {bucket}/{path}")
        self.objects[(bucket, path)] = StoredObject(data=data, content_type=content_type)

    def delete(self, bucket, path):
        self.objects.pop((bucket, path), None)

    def signed_url(self, bucket, path, expires_in):
        expires = int(time.time()) + int(expires_in)
        message = f"{bucket}/{path}:{expires}".encode("utf-8")
        signature = hmac.new(self._secret, message, hashlib.sha256).hexdigest()
        return f"memory://{bucket}/{quote(path)}?expires={expires}&token={signature}"


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage over its REST API. No retries."""
    name = "supabase"

    def __init__(self, *, base_url: str, service_key: str, timeout: float = 10.0,
                 transport: httpx.BaseTransport | None = None):
        if not base_url or not service_key:
            raise StorageError("STORAGE_URL and STORAGE_SERVICE_KEY are required")
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=f"{self.base_url}/storage/v1",
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {service_key}", "apikey": service_key},
        )

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            current_app.logger.error("Object storage request failed: %s %s: %s", method, url, exc)
            raise StorageError("Object storage unavailable") from exc
        if resp.status_code >= 400:
            current_app.logger.warning("Object storage returned %s for %s %s", resp.status_code, method, url)
            raise StorageError(f"Object storage error ({resp.status_code})")
        return resp

    def upload(self, bucket, path, data, content_type=None):
        self._request(
            "POST",
            f"/object/{bucket}/{quote(path)}",
            content=data,
            headers={"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"},
        )

    def delete(self, bucket, path):
        self._request("DELETE", f"/object/{bucket}", json={"prefixes": [path]})

    def signed_url(self, bucket, path, expires_in):
        resp = self._request("POST", f"/object/sign/{bucket}/{quote(path)}", json={"expiresIn": int(expires_in)})
        signed = resp.json().get("signedURL") or resp.json().get("signedUrl")
        if not signed:
            raise StorageError("Object storage returned no signed URL")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"


def build_object_storage(config) -> ObjectStorage:
    kind = (config.get("STORAGE_BACKEND") or "memory").lower()
    if kind == "memory":
        return InMemoryObjectStorage(secret=config.get("SECRET_KEY") or "dev")
    if kind == "supabase":
        return SupabaseObjectStorage(
            base_url=config.get("STORAGE_URL"),
            service_key=config.get("STORAGE_SERVICE_KEY"),
            timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10.0),
        )
    raise StorageError(f"Unknown STORAGE_BACKEND: {kind}")


def init_object_storage(app) -> None:
    app.extensions[EXTENSION_KEY] = build_object_storage(app.config)


def get_object_storage() -> ObjectStorage:
    return current_app.extensions[EXTENSION_KEY]
