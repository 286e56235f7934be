import concurrent.futures
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd
from google.cloud import bigquery
from google.oauth2 import service_account

from src.services.config import ClientConfig, ExportConfig, QueryConfig
from src.services.constants import DRY_RUN_NOT_APPLICABLE, ERROR_MESSAGES
from src.services.errors import (
    SDK_ERRORS,
    ClientInitError,
    ExportError,
    ListError,
    QueryError,
    ReadError,
    TemporaryTableNotFoundError,
    WriteError,
)
from src.services.google.columns import Columns
from src.services.utils import StringList, collect_names, get_logger

logger = get_logger("bigquery")

Row = Dict[str, Any]


class BigQueryClient:
    """
    A client for interacting with Google BigQuery.
    """
    def __init__(
        self,
        project_id: str,
        config: Optional[ClientConfig] = None,
        client: Optional[bigquery.Client] = None,
    ):
        self.project_id = project_id
        self.config = config or ClientConfig()
        self.client = client
        if self.client is None:
            try:
                if self.config.credential_file:
                    credentials = service_account.Credentials.from_service_account_file(
                        self.config.credential_file
                    )
                    self.client = bigquery.Client(project=project_id, credentials=credentials)
                else:
                    self.client = bigquery.Client(project=project_id)
            except SDK_ERRORS as e:
                logger.error(f"Failed to initialize BigQuery client for {project_id}: {e}")
                raise ClientInitError(ERROR_MESSAGES['init_bigquery_client_failed'], e) from e

        logger.info("BigQuery client initialized (project={})", self.project_id)

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        client, self.client = self.client, None
        if client is not None:
            client.close()

    def _table_ref(self, dataset_id: str, table_id: str) -> str:
        return f"{self.project_id}.{dataset_id}.{table_id}"

    def get_project_names(self) -> StringList:
        """Return the ids of every project visible to the credentials."""
        try:
            return collect_names(
                self.client.list_projects(timeout=self.config.timeout), "project_id"
            )
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_project_names_failed'], e) from e

    def get_dataset_names(self) -> StringList:
        try:
            return collect_names(
                self.client.list_datasets(self.project_id, timeout=self.config.timeout),
                "dataset_id",
            )
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_dataset_names_failed'], e) from e

    def get_table_names(self, dataset_id: str) -> StringList:
        try:
            return collect_names(
                self.client.list_tables(
                    f"{self.project_id}.{dataset_id}", timeout=self.config.timeout
                ),
                "table_id",
            )
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_bigquery_table_names_failed'], e) from e

    def create_table(
        self, dataset_id: str, table_id: str, schema: List[bigquery.SchemaField]
    ) -> None:
        table = bigquery.Table(self._table_ref(dataset_id, table_id), schema=schema)
        try:
            self.client.create_table(table)
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['create_bigquery_table_failed'], e) from e
        logger.info("Created table {}", table.table_id)

    def delete_table(self, dataset_id: str, table_id: str) -> None:
        try:
            self.client.delete_table(self._table_ref(dataset_id, table_id))
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['delete_bigquery_table_failed'], e) from e
        logger.info("Deleted table {}", table_id)

    def get_table_schema(self, dataset_id: str, table_id: str) -> List[bigquery.SchemaField]:
        try:
            table = self.client.get_table(self._table_ref(dataset_id, table_id))
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['get_table_schema_failed'], e) from e
        return list(table.schema)

    def get_column_metadata(self, dataset_id: str, table_id: str) -> Columns:
        """Return (column name, declared type) pairs in schema order."""
        try:
            table = self.client.get_table(self._table_ref(dataset_id, table_id))
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['get_column_metadata_failed'], e) from e
        return Columns.from_schema(table.schema)

    def insert_rows(self, dataset_id: str, table_id: str, rows: Iterable[Row]) -> None:
        """Stream rows into a table. Rows rejected by the service raise WriteError."""
        rows = list(rows)
        if not rows:
            return
        try:
            errors = self.client.insert_rows_json(self._table_ref(dataset_id, table_id), rows)
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['insert_row_failed'], e) from e
        if errors:
            logger.error(f"Error inserting rows into {table_id}: {errors}")
            raise WriteError(ERROR_MESSAGES['insert_row_failed'], RuntimeError(str(errors)))

    def dry_run_query(self, query: str, config: Optional[QueryConfig] = None) -> int:
        """
        Estimate the bytes a query would process without running it.

        Returns DRY_RUN_NOT_APPLICABLE for an empty query.
        """
        if not query:
            return DRY_RUN_NOT_APPLICABLE

        config = config or QueryConfig()
        job_config = bigquery.QueryJobConfig(
            dry_run=True, use_query_cache=False, labels=config.labels or {}
        )
        try:
            job = self.client.query(query, job_config=job_config, timeout=config.timeout)
        except SDK_ERRORS as e:
            raise QueryError(ERROR_MESSAGES['dry_run_query_failed'], e) from e
        if job.error_result:
            raise QueryError(
                ERROR_MESSAGES['dry_run_query_failed'],
                RuntimeError(job.error_result.get("message", str(job.error_result))),
            )
        return job.total_bytes_processed

    def _read(self, query: str, config: QueryConfig):
        job_config = bigquery.QueryJobConfig(labels=config.labels or {})
        query_job = self.client.query(query, job_config=job_config)
        return query_job.result(timeout=config.timeout)

    def run_query(self, query: str, config: Optional[QueryConfig] = None) -> List[Row]:
        """Run a query and buffer every row in memory."""
        if not query:
            return []
        try:
            return [dict(row.items()) for row in self._read(query, config or QueryConfig())]
        except SDK_ERRORS as e:
            raise QueryError(ERROR_MESSAGES['run_query_failed'], e) from e

    def run_query_func(
        self,
        query: str,
        func: Callable[[Row], Optional[bool]],
        config: Optional[QueryConfig] = None,
    ) -> int:
        """
        Run a query and hand each row to ``func``.

        ``func`` returning ``False`` stops the scan. Returns the number of rows
        passed to ``func``.
        """
        if not query or func is None:
            return 0

        count = 0
        try:
            for row in self._read(query, config or QueryConfig()):
                count += 1
                if func(dict(row.items())) is False:
                    break
        except Exception as e:
            raise QueryError(ERROR_MESSAGES['run_query_failed'], e) from e
        return count

    def query_dataframe(self, query: str, config: Optional[QueryConfig] = None) -> pd.DataFrame:
        """
        Execute a BigQuery query and return the results as a pandas DataFrame.
        """
        if not query:
            return pd.DataFrame()
        try:
            return self._read(query, config or QueryConfig()).to_dataframe()
        except SDK_ERRORS as e:
            raise QueryError(ERROR_MESSAGES['run_query_failed'], e) from e

    def run_query_to_csv(
        self, query: str, gcs_uri: str, config: Optional[ExportConfig] = None
    ) -> None:
        """
        Run a query and store the result as CSV in Cloud Storage.

        Use a wildcard to write several files, e.g. ``gs://bucket/sample-*.csv``
        produces ``sample-000000000000.csv``, ``sample-000000000001.csv``...
        """
        self._export(query, gcs_uri, bigquery.DestinationFormat.CSV, config)

    def run_query_to_json(
        self, query: str, gcs_uri: str, config: Optional[ExportConfig] = None
    ) -> None:
        """
        Run a query and store the result as newline delimited JSON in Cloud Storage.
        """
        self._export(query, gcs_uri, bigquery.DestinationFormat.NEWLINE_DELIMITED_JSON, config)

    def _export(
        self,
        query: str,
        gcs_uri: str,
        destination_format: str,
        config: Optional[ExportConfig],
    ) -> None:
        if not query or not gcs_uri:
            return

        config = config or ExportConfig()
        deadline = time.monotonic() + config.timeout if config.timeout else None

        # The query itself is not retried.
        job_config = bigquery.QueryJobConfig(labels=config.labels or {})
        try:
            query_job = self.client.query(query, job_config=job_config)
            query_job.result(timeout=_remaining(deadline))
        except SDK_ERRORS as e:
            raise ExportError(ERROR_MESSAGES['export_query_failed'], e) from e

        temporary_table = getattr(query_job, "destination", None)
        if temporary_table is None:
            raise TemporaryTableNotFoundError(ERROR_MESSAGES['temporary_table_not_found'])

        extract_config = bigquery.ExtractJobConfig(
            destination_format=destination_format, labels=config.labels or {}
        )
        if config.compressed:
            extract_config.compression = bigquery.Compression.GZIP
        if destination_format == bigquery.DestinationFormat.CSV:
            extract_config.field_delimiter = config.delimiter
            extract_config.print_header = not config.disable_header

        last_error = None
        for attempt in range(1, config.retries + 2):
            if attempt > 1 and not _expired(deadline):
                time.sleep(config.delay)
            if attempt > 1 and _expired(deadline):
                logger.error("Export deadline exceeded after {} attempts", attempt - 1)
                break
            extract_job = None
            try:
                extract_job = self.client.extract_table(
                    temporary_table, gcs_uri, job_config=extract_config
                )
                extract_job.result(timeout=_remaining(deadline))
                logger.info(f"Exported query result to {gcs_uri} (attempt {attempt})")
                return
            except SDK_ERRORS as e:
                last_error = e
                logger.warning(f"Extract to {gcs_uri} failed on attempt {attempt}: {e}")
                # A job we stopped waiting for keeps running server side.
                if extract_job is not None and (_is_timeout(e) or _expired(deadline)):
                    _cancel(extract_job)

        raise ExportError(ERROR_MESSAGES['extract_failed'], last_error) from last_error


def _is_timeout(error: BaseException) -> bool:
    return isinstance(error, (TimeoutError, concurrent.futures.TimeoutError))


def _cancel(job) -> None:
    try:
        job.cancel()
        logger.info("Cancelled extract job {}", getattr(job, "job_id", None))
    except SDK_ERRORS as e:
        logger.warning(f"Could not cancel extract job: {e}")


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() >= deadline
