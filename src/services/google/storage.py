from typing import IO, Optional

from google.cloud import storage
from google.oauth2 import service_account

from src.services.config import ClientConfig
from src.services.constants import ERROR_MESSAGES
from src.services.errors import SDK_ERRORS, ClientInitError, ListError, ReadError, WriteError
from src.services.utils import StringList, collect_names, get_logger

logger = get_logger("storage")


class StorageClient:
    """
    A client for interacting with Google Cloud Storage.
    """
    def __init__(
        self,
        project_id: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        client: Optional[storage.Client] = None,
    ):
        self.config = config or ClientConfig()
        self.client = client
        if self.client is None:
            try:
                if self.config.credential_file:
                    credentials = service_account.Credentials.from_service_account_file(
                        self.config.credential_file
                    )
                    self.client = storage.Client(project=project_id, credentials=credentials)
                else:
                    self.client = storage.Client(project=project_id)
            except SDK_ERRORS as e:
                logger.error(f"Failed to initialize Storage client: {e}")
                raise ClientInitError(ERROR_MESSAGES['init_storage_client_failed'], e) from e
        self.project_id = project_id or getattr(self.client, "project", None)

        logger.info("Storage client initialized (project={})", self.project_id)

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        client, self.client = self.client, None
        if client is not None:
            client.close()

    def get_bucket_names(self, project_id: Optional[str] = None) -> StringList:
        try:
            return collect_names(
                self.client.list_buckets(
                    project=project_id or self.project_id, timeout=self.config.timeout
                ),
                "name",
            )
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_bucket_names_failed'], e) from e

    def get_file_names(self, bucket_name: str, prefix: Optional[str] = None) -> StringList:
        try:
            return collect_names(
                self.client.list_blobs(bucket_name, prefix=prefix, timeout=self.config.timeout),
                "name",
            )
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_file_names_failed'], e) from e

    def is_file_exists(self, bucket_name: str, file_name: str) -> bool:
        """True when the object exists; any lookup failure counts as absent."""
        try:
            return self.client.bucket(bucket_name).blob(file_name).exists(
                timeout=self.config.timeout
            )
        except SDK_ERRORS as e:
            logger.debug(f"Could not look up gs://{bucket_name}/{file_name}: {e}")
            return False

    def stream_file(self, bucket_name: str, file_name: str) -> IO[bytes]:
        """Open an object for reading. The caller closes the returned reader."""
        try:
            return self.client.bucket(bucket_name).blob(file_name).open("rb")
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['stream_failed'], e) from e

    def download_file(self, bucket_name: str, file_name: str) -> bytes:
        try:
            return self.client.bucket(bucket_name).blob(file_name).download_as_bytes(
                timeout=self.config.timeout
            )
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['download_failed'], e) from e

    def upload_file(
        self,
        bucket_name: str,
        file_name: str,
        source_path: str,
        content_type: Optional[str] = None,
    ) -> None:
        try:
            self.client.bucket(bucket_name).blob(file_name).upload_from_filename(
                source_path, content_type=content_type
            )
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['upload_failed'], e) from e
        logger.info(f"Uploaded {source_path} to gs://{bucket_name}/{file_name}")

    def upload_bytes(
        self,
        bucket_name: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> None:
        try:
            self.client.bucket(bucket_name).blob(file_name).upload_from_string(
                data, content_type=content_type
            )
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['upload_failed'], e) from e

    def copy_file(
        self,
        source_bucket: str,
        source_name: str,
        destination_bucket: str,
        destination_name: Optional[str] = None,
    ) -> None:
        """Copy an object; keeps its name when ``destination_name`` is not given."""
        bucket = self.client.bucket(source_bucket)
        try:
            bucket.copy_blob(
                bucket.blob(source_name),
                self.client.bucket(destination_bucket),
                destination_name or source_name,
            )
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['copy_failed'], e) from e
        logger.info(
            f"Copied gs://{source_bucket}/{source_name} to "
            f"gs://{destination_bucket}/{destination_name or source_name}"
        )
