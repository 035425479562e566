"""Azure Blob Storage provider issuing short-lived SAS URLs."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, generate_blob_sas

from backoffice.common.exceptions import ServerConfigurationException
from backoffice.config import settings
from backoffice.storage.provider import StorageProvider

logger = logging.getLogger(__name__)


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(
        self,
        connection_string: Optional[str] = None,
        container: Optional[str] = None,
    ) -> None:
        connection_string = connection_string or settings.AZURE_BLOB_CONNECTION
        container = container or settings.AZURE_BLOB_CONTAINER
        if not connection_string or not container:
            raise ServerConfigurationException(
                "AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set for blob storage.",
            )
        self._service = BlobServiceClient.from_connection_string(connection_string)
        self._container = container

    def _blob(self, key: str):
        return self._service.get_blob_client(self._container, key.lstrip("/"))

    def _sas_url(self, key: str, permission: BlobSasPermissions, expires_s: int, **extra) -> str:
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=permission,
            expiry=datetime.now(timezone.utc) + timedelta(seconds=expires_s),
            **extra,
        )
        return f"{self._blob(key).url}?{sas}"

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        return self._sas_url(
            key,
            BlobSasPermissions(write=True, create=True),
            expires_s,
            content_type=content_type,
        )

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        return self._sas_url(key, BlobSasPermissions(read=True), expires_s)

    def exists(self, key: str) -> bool:
        return self._blob(key).exists()

    def delete(self, key: str) -> None:
        try:
            self._blob(key).delete_blob()
        except ResourceNotFoundError:
            logger.info("Blob %s already absent", key)

    def upload_headers(self, content_type: str) -> dict[str, str]:
        return {"Content-Type": content_type, "x-ms-blob-type": "BlockBlob"}
