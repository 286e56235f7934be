import threading
from typing import Optional

from src.services.config import ClientConfig
from .bigquery import BigQueryClient
from .bigtable import BigtableClient, instance_key
from .registry import ClientRegistry
from .storage import StorageClient


class Google:
    """
    Registry of Google Cloud service clients, one per project (and instance).

    Construct one and pass it to the code that needs it, or use
    ``Google.default()`` for a process-wide instance.
    """
    _instance = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        bigquery_factory=BigQueryClient,
        bigtable_factory=BigtableClient,
        storage_factory=StorageClient,
    ):
        self.config = config or ClientConfig.from_env()
        self._bigquery = ClientRegistry(bigquery_factory, "BigQuery client")
        self._bigtable = ClientRegistry(bigtable_factory, "Bigtable client")
        self._storage = ClientRegistry(storage_factory, "Storage client")

    @classmethod
    def default(cls) -> "Google":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def bigquery(self, project_id: str, config: Optional[ClientConfig] = None) -> BigQueryClient:
        return self._bigquery.get(project_id, project_id, config=config or self.config)

    def bigtable(
        self, project_id: str, instance_id: str, config: Optional[ClientConfig] = None
    ) -> BigtableClient:
        return self._bigtable.get(
            instance_key(project_id, instance_id),
            project_id,
            instance_id,
            config=config or self.config,
        )

    def storage(
        self, project_id: Optional[str] = None, config: Optional[ClientConfig] = None
    ) -> StorageClient:
        return self._storage.get(project_id or "", project_id, config=config or self.config)

    def close(self) -> None:
        """Close every cached client. Only call once callers are done with them."""
        self._bigquery.close_all()
        self._bigtable.close_all()
        self._storage.close_all()


__all__ = [
    "Google",
    "BigQueryClient",
    "BigtableClient",
    "StorageClient",
    "ClientRegistry",
]
