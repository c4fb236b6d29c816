"""Blob storage for artisan uploads.

``ObjectStore`` is the interface the portal services depend on. The bundled
``LocalObjectStore`` keeps blobs under a root directory and hands out
expiring download links signed with itsdangerous; ``GET /files/{signed}``
redeems them.
"""

import logging
from pathlib import Path
from typing import Protocol

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.concurrency import run_in_threadpool

from gmbs_portal.common.config import PortalSettings

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str: ...

    async def delete(self, paths: list[str]) -> None: ...

    def signed_url(self, path: str, expires_in: int | None = None) -> str | None: ...


class LocalObjectStore:
    """Filesystem-backed object store with signed download URLs."""

    def __init__(self, settings: PortalSettings, base_url: str = ""):
        self.root = Path(settings.storage_root).resolve()
        self.default_ttl = settings.signed_url_ttl
        self.base_url = base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(settings.signing_key, salt="portal-file")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise ValueError(f"Path escapes storage root: {path!r}")
        return target

    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._resolve(path)
        if target.exists():
            raise FileExistsError(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await run_in_threadpool(_write)
        return path

    async def delete(self, paths: list[str]) -> None:
        def _remove() -> None:
            for path in paths:
                try:
                    self._resolve(path).unlink()
                except FileNotFoundError:
                    logger.debug("Blob already gone: %s", path)

        await run_in_threadpool(_remove)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def signed_url(self, path: str, expires_in: int | None = None) -> str | None:
        if not self.exists(path):
            return None
        signed = self._serializer.dumps({"p": path, "ttl": expires_in or self.default_ttl})
        return f"{self.base_url}/files/{signed}"

    def open_signed(self, signed: str) -> Path | None:
        """Return the blob path for a signed link, or None if invalid/expired."""
        try:
            payload = self._serializer.loads(signed, max_age=self.default_ttl * 24)
        except (BadSignature, SignatureExpired):
            return None
        # The ttl embedded in the payload is the real expiry.
        try:
            self._serializer.loads(signed, max_age=int(payload.get("ttl", self.default_ttl)))
        except SignatureExpired:
            return None
        target = self._resolve(payload["p"])
        return target if target.is_file() else None
