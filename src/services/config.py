"""Configuration objects for the Google Cloud service wrappers."""
import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from src.services.constants import (
    DEFAULT_EXPORT_DELAY,
    DEFAULT_EXPORT_RETRIES,
    DEFAULT_LIST_TIMEOUT,
    DELIMITER_COMMA,
)


@dataclass
class ClientConfig:
    """Settings used when constructing a client wrapper.

    credential_file: service account JSON; ambient credentials when unset.
    timeout: seconds allowed for listing calls.
    """
    credential_file: Optional[str] = None
    timeout: float = DEFAULT_LIST_TIMEOUT

    def __post_init__(self):
        if self.timeout is None or self.timeout <= 0:
            self.timeout = DEFAULT_LIST_TIMEOUT

    @classmethod
    def from_env(cls) -> "ClientConfig":
        load_dotenv()
        timeout = os.getenv("GCP_LIST_TIMEOUT")
        try:
            timeout = float(timeout) if timeout else DEFAULT_LIST_TIMEOUT
        except ValueError as e:
            raise ValueError(
                f"Invalid GCP_LIST_TIMEOUT environment variable: {timeout!r}"
            ) from e
        return cls(
            credential_file=os.getenv("GCP_CREDENTIAL_FILE") or None,
            timeout=timeout,
        )


@dataclass
class QueryConfig:
    """Settings for a single query call.

    timeout: overall deadline in seconds, ``None`` for no deadline.
    labels: key/value tags attached to the query job.
    """
    timeout: Optional[float] = None
    labels: Optional[Dict[str, str]] = None

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            self.timeout = None


@dataclass
class ExportConfig(QueryConfig):
    """Settings for exporting a query result to Cloud Storage.

    Invalid values fall back to their defaults.
    """
    retries: int = DEFAULT_EXPORT_RETRIES
    delay: float = DEFAULT_EXPORT_DELAY
    compressed: bool = False
    delimiter: str = DELIMITER_COMMA
    disable_header: bool = False

    def __post_init__(self):
        super().__post_init__()
        if self.retries is None or self.retries < 0:
            self.retries = DEFAULT_EXPORT_RETRIES
        if self.delay is None or self.delay < 0:
            self.delay = DEFAULT_EXPORT_DELAY
        if not self.delimiter:
            self.delimiter = DELIMITER_COMMA
