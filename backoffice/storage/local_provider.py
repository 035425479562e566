"""
Local filesystem storage provider for development and tests.

Upload and download URLs point back at this API (``/api/v1/uploads/local``)
and carry a signed, expiring token in place of a cloud SAS signature.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from jose import JWTError, jwt

from backoffice.config import settings
from backoffice.storage.provider import StorageProvider

logger = logging.getLogger(__name__)

LOCAL_ROUTE = "/api/v1/uploads/local"


class LocalStorageProvider(StorageProvider):
    name = "local"

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self.base_dir = Path(base_dir or settings.LOCAL_STORAGE_DIR)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        clean = key.lstrip("/").replace("\\", "/")
        path = (self.base_dir / clean).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Key escapes the storage root: {key!r}")
        return path

    # ── Signed URLs ─────────────────────────────────────────────────

    def _signed_url(self, key: str, op: str, expires_s: int) -> str:
        token = jwt.encode(
            {
                "key": key.lstrip("/"),
                "op": op,
                "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_s),
            },
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        return f"{settings.PUBLIC_BASE_URL}{LOCAL_ROUTE}/{quote(key.lstrip('/'))}?token={token}"

    @staticmethod
    def verify_token(token: str, key: str, op: str) -> bool:
        try:
            claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        except JWTError:
            return False
        return claims.get("key") == key.lstrip("/") and claims.get("op") == op

    # ── StorageProvider ─────────────────────────────────────────────

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        return self._signed_url(key, "write", expires_s)

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        if not self.exists(key):
            return None
        return self._signed_url(key, "read", expires_s)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def write(self, key: str, data: bytes) -> int:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Stored %d bytes at %s", len(data), path)
        return len(data)
