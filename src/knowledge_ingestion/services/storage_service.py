"""Azure Blob Storage service for document downloads."""

from typing import Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient

from knowledge_ingestion.config import StorageSettings, get_settings
from knowledge_ingestion.utils.errors import StorageError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("storage_service")


class StorageService:
    """
    Service for reading document blobs from Azure Blob Storage.

    A missing blob is reported as empty bytes so the pipeline can record
    the empty-download outcome; any other storage failure raises StorageError.
    """

    def __init__(
        self,
        storage_settings: Optional[StorageSettings] = None,
        client: Optional[BlobServiceClient] = None,
    ):
        """Initialize storage service."""
        self._settings = storage_settings or get_settings().storage
        self._client: Optional[BlobServiceClient] = client
        self._credential: Optional[DefaultAzureCredential] = None

    async def _get_client(self) -> BlobServiceClient:
        """
        Get or create BlobServiceClient.

        Returns:
            BlobServiceClient instance

        Raises:
            StorageError: If client creation fails
        """
        if self._client is not None:
            return self._client

        try:
            if self._settings.connection_string:
                self._client = BlobServiceClient.from_connection_string(
                    self._settings.connection_string
                )
                logger.info("Created BlobServiceClient with connection string")
            elif self._settings.use_managed_identity and self._settings.account_name:
                account_url = f"https://{self._settings.account_name}.blob.core.windows.net"
                self._credential = DefaultAzureCredential()
                self._client = BlobServiceClient(account_url=account_url, credential=self._credential)
                logger.info(f"Created BlobServiceClient with Managed Identity: {self._settings.account_name}")
            else:
                raise StorageError(
                    "Storage not configured. Set STORAGE_ACCOUNT_NAME and either "
                    "STORAGE_USE_MANAGED_IDENTITY or STORAGE_CONNECTION_STRING"
                )
            return self._client
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to create BlobServiceClient: {e}", exc_info=True)
            raise StorageError(f"Failed to initialize storage client: {str(e)}") from e

    async def download(self, bucket_name: Optional[str], blob_key: Optional[str]) -> bytes:
        """
        Download a document's bytes.

        Args:
            bucket_name: Container name (defaults to STORAGE_DEFAULT_CONTAINER)
            blob_key: Blob name within the container

        Returns:
            File content as bytes; empty when the blob does not exist or no key is set

        Raises:
            StorageError: If the download fails for any other reason
        """
        if not blob_key:
            logger.warning("Document has no blob key; nothing to download")
            return b""

        container_name = bucket_name or self._settings.default_container
        logger.info(f"Downloading file: container={container_name}, blob={blob_key}")

        try:
            client = await self._get_client()
            blob_client = client.get_container_client(container_name).get_blob_client(blob_key)
            download_stream = await blob_client.download_blob()
            file_data = await download_stream.readall()
        except ResourceNotFoundError:
            logger.warning(f"Blob not found: {container_name}/{blob_key}")
            return b""
        except AzureError as e:
            logger.error(f"Azure Storage error downloading {container_name}/{blob_key}: {e}", exc_info=True)
            raise StorageError(
                f"Failed to download file from storage: {str(e)}",
                details={"container": container_name, "blob": blob_key},
            ) from e

        logger.info(f"Successfully downloaded {container_name}/{blob_key}, size={len(file_data)} bytes")
        return file_data

    async def close(self) -> None:
        """Close storage client."""
        if self._client:
            try:
                await self._client.close()
                logger.info("Storage client closed")
            except AzureError as e:
                logger.error(f"Error closing storage client: {e}", exc_info=True)
            finally:
                self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
