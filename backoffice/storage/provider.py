"""Object storage abstraction used by the uploads API."""

from typing import Optional


class StorageProvider:
    """Presigned-URL style storage: clients move bytes, the API hands out URLs."""

    name = "abstract"

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        raise NotImplementedError

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def upload_headers(self, content_type: str) -> dict[str, str]:
        """Headers the client must send with the upload request."""
        return {"Content-Type": content_type}
