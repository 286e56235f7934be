import threading
from typing import Callable, Dict, Generic, Hashable, TypeVar

from src.services.utils import get_logger

logger = get_logger("client-registry")

T = TypeVar("T")


class ClientRegistry(Generic[T]):
    """One live client per identity, built lazily and reused.

    Lookups and creation run under a single lock. A failed construction
    propagates to the caller and is never cached, so the next lookup for
    the same identity tries again.

    ``close_all`` does not wait for in-flight calls on cached clients; only
    call it once every user of the registry has finished.
    """

    def __init__(self, factory: Callable[..., T], name: str = "client"):
        self._factory = factory
        self._name = name
        self._clients: Dict[Hashable, T] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable, *args, **kwargs) -> T:
        """Return the client cached under ``key``, building it on first use.

        Extra arguments are forwarded to the factory.
        """
        with self._lock:
            client = self._clients.get(key)
            if client is not None:
                return client
            logger.info("Creating {} for {}", self._name, key)
            client = self._factory(*args, **kwargs)
            self._clients[key] = client
            return client

    def close_all(self) -> None:
        """Close every cached client and forget them."""
        with self._lock:
            clients = list(self._clients.items())
            self._clients.clear()
        for key, client in clients:
            logger.info("Closing {} for {}", self._name, key)
            client.close()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)
