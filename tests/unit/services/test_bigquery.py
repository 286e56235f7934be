"""Unit tests for the BigQuery wrapper (listing, CRUD and queries)."""

from __future__ import annotations

import concurrent.futures
from types import SimpleNamespace

import pandas as pd
import pytest
from google.api_core.exceptions import BadRequest, NotFound, ServiceUnavailable
from google.cloud import bigquery

from src.services.config import QueryConfig
from src.services.constants import DRY_RUN_NOT_APPLICABLE
from src.services.errors import ListError, QueryError, ReadError, WriteError
from src.services.google.bigquery import BigQueryClient
from src.services.google.columns import Column


class _FakePageIterator:
    def __init__(self, pages: list[list[SimpleNamespace]]) -> None:
        self.pages = pages


class _FailingPageIterator:
    @property
    def pages(self):
        yield [SimpleNamespace(table_id="t1")]
        raise ServiceUnavailable("page fetch failed")


class _FakeQueryJob:
    def __init__(self, rows=None, error=None, total_bytes_processed=0) -> None:
        self.rows = rows or []
        self.error = error
        self.error_result = None
        self.total_bytes_processed = total_bytes_processed

    def result(self, timeout=None):
        if self.error is not None:
            raise self.error
        return iter(self.rows)


class _FakeBigQuery:
    def __init__(self) -> None:
        self.calls = []
        self.tables = {}
        self.job = _FakeQueryJob()
        self.insert_errors = []
        self.closed = 0

    def list_projects(self, timeout=None):
        self.calls.append(("list_projects", timeout))
        return _FakePageIterator(
            [[SimpleNamespace(project_id="p1")], [SimpleNamespace(project_id="p2")]]
        )

    def list_datasets(self, project, timeout=None):
        self.calls.append(("list_datasets", project, timeout))
        return _FakePageIterator([])

    def list_tables(self, dataset, timeout=None):
        self.calls.append(("list_tables", dataset, timeout))
        return _FakePageIterator(
            [
                [SimpleNamespace(table_id="a"), SimpleNamespace(table_id="b")],
                [SimpleNamespace(table_id="c"), SimpleNamespace(table_id="d")],
                [SimpleNamespace(table_id="e")],
            ]
        )

    def create_table(self, table):
        self.calls.append(("create_table", table.table_id))

    def delete_table(self, table):
        if table not in self.tables:
            raise NotFound("no such table")
        self.calls.append(("delete_table", table))

    def get_table(self, table):
        if table not in self.tables:
            raise NotFound("no such table")
        return self.tables[table]

    def insert_rows_json(self, table, rows):
        self.calls.append(("insert_rows_json", table, rows))
        return self.insert_errors

    def query(self, query, job_config=None, timeout=None):
        self.calls.append(("query", query, job_config))
        return self.job

    def close(self) -> None:
        self.closed += 1


@pytest.fixture()
def fake() -> _FakeBigQuery:
    return _FakeBigQuery()


@pytest.fixture()
def client(fake: _FakeBigQuery) -> BigQueryClient:
    return BigQueryClient("proj", client=fake)


def test_get_project_names_drains_pages(client: BigQueryClient, fake: _FakeBigQuery) -> None:
    """Project ids from every page should be returned with the list timeout."""
    assert client.get_project_names() == ["p1", "p2"] and fake.calls == [("list_projects", 30.0)]


def test_get_table_names_keeps_page_order(client: BigQueryClient) -> None:
    """Pages of 2, 2 and 1 tables should produce five names in page order."""
    assert client.get_table_names("sales") == ["a", "b", "c", "d", "e"]


def test_get_dataset_names_empty_is_not_an_error(client: BigQueryClient) -> None:
    """An empty listing should return an empty list."""
    assert client.get_dataset_names() == []


def test_listing_failure_aborts_with_list_error(client: BigQueryClient, fake) -> None:
    """A failing page should abort the whole listing with a tagged error."""
    fake.list_tables = lambda dataset, timeout=None: _FailingPageIterator()

    with pytest.raises(ListError) as excinfo:
        client.get_table_names("sales")

    assert "could not get BigQuery table names" in str(excinfo.value) and isinstance(
        excinfo.value.__cause__, ServiceUnavailable
    )


def test_create_table_uses_full_reference(client: BigQueryClient, fake) -> None:
    """Tables should be created under the client's project."""
    client.create_table("sales", "orders", [bigquery.SchemaField("id", "INTEGER")])

    assert fake.calls == [("create_table", "orders")]


def test_delete_missing_table_raises_write_error(client: BigQueryClient) -> None:
    """Deleting is a direct delegation, so a missing table is an error."""
    with pytest.raises(WriteError):
        client.delete_table("sales", "missing")


def test_get_column_metadata(client: BigQueryClient, fake) -> None:
    """Column metadata should mirror the table schema."""
    fake.tables["proj.sales.orders"] = SimpleNamespace(
        schema=[bigquery.SchemaField("id", "INTEGER"), bigquery.SchemaField("note", "STRING")]
    )

    columns = client.get_column_metadata("sales", "orders")

    assert columns == [Column("id", "INTEGER"), Column("note", "STRING")]


def test_get_table_schema_missing_table(client: BigQueryClient) -> None:
    """Schema reads should fail with a read error."""
    with pytest.raises(ReadError):
        client.get_table_schema("sales", "missing")


def test_insert_rows_reports_row_errors(client: BigQueryClient, fake) -> None:
    """Rows rejected by the service should raise a write error."""
    fake.insert_errors = [{"index": 0, "errors": [{"reason": "invalid"}]}]

    with pytest.raises(WriteError):
        client.insert_rows("sales", "orders", [{"id": "x"}])


def test_insert_rows_skips_empty_input(client: BigQueryClient, fake) -> None:
    """Nothing should be sent when there are no rows."""
    client.insert_rows("sales", "orders", [])

    assert fake.calls == []


def test_dry_run_empty_query_returns_sentinel(client: BigQueryClient, fake) -> None:
    """An empty query has nothing to estimate and is not an error."""
    assert client.dry_run_query("") == DRY_RUN_NOT_APPLICABLE and fake.calls == []


def test_dry_run_returns_bytes_processed(client: BigQueryClient, fake) -> None:
    """Dry runs should return the estimated bytes and never use the cache."""
    fake.job = _FakeQueryJob(total_bytes_processed=2048)

    estimated = client.dry_run_query("SELECT 1")
    job_config = fake.calls[0][2]

    assert estimated == 2048 and job_config.dry_run and job_config.use_query_cache is False


def test_dry_run_failure_is_tagged(client: BigQueryClient, fake) -> None:
    """Invalid queries should surface as query errors."""
    def fail(query, job_config=None, timeout=None):
        raise BadRequest("syntax error")

    fake.query = fail

    with pytest.raises(QueryError, match="could not dry run query"):
        client.dry_run_query("SELEC 1")


def test_run_query_buffers_rows(client: BigQueryClient, fake) -> None:
    """Rows should be returned as dictionaries."""
    fake.job = _FakeQueryJob(rows=[{"id": 1}, {"id": 2}])

    assert client.run_query("SELECT id FROM t") == [{"id": 1}, {"id": 2}]


def test_run_query_empty_query(client: BigQueryClient, fake) -> None:
    """An empty query should return no rows without calling the service."""
    assert client.run_query("") == [] and fake.calls == []


def test_run_query_failure_is_tagged(client: BigQueryClient, fake) -> None:
    """Execution failures should be wrapped with the query tag."""
    fake.job = _FakeQueryJob(error=BadRequest("bad"))

    with pytest.raises(QueryError, match="could not run query"):
        client.run_query("SELECT 1")


def test_run_query_wait_timeout_is_tagged(client: BigQueryClient, fake) -> None:
    """A result wait that times out should surface as a query error."""
    fake.job = _FakeQueryJob(error=concurrent.futures.TimeoutError())

    with pytest.raises(QueryError, match="could not run query"):
        client.run_query("SELECT 1", QueryConfig(timeout=5))


def test_run_query_func_stops_when_callback_returns_false(client: BigQueryClient, fake) -> None:
    """Returning False from the callback should end the scan early."""
    fake.job = _FakeQueryJob(rows=[{"id": 1}, {"id": 2}, {"id": 3}])
    seen = []

    def handle(row):
        seen.append(row["id"])
        return row["id"] < 2

    count = client.run_query_func("SELECT id FROM t", handle)

    assert seen == [1, 2] and count == 2


def test_run_query_func_wraps_callback_errors(client: BigQueryClient, fake) -> None:
    """Errors raised by the callback should be reported as query errors."""
    fake.job = _FakeQueryJob(rows=[{"id": 1}])

    def handle(row):
        raise KeyError("missing")

    with pytest.raises(QueryError):
        client.run_query_func("SELECT id FROM t", handle)


def test_run_query_func_without_callback_is_noop(client: BigQueryClient, fake) -> None:
    """A missing callback should not run the query."""
    assert client.run_query_func("SELECT 1", None) == 0 and fake.calls == []


def test_close_is_idempotent(client: BigQueryClient, fake) -> None:
    """Closing twice should close the SDK client once."""
    client.close()
    client.close()

    assert fake.closed == 1 and client.client is None


def test_query_dataframe_returns_frame(client: BigQueryClient, fake) -> None:
    """DataFrame queries should convert the row iterator with to_dataframe."""
    frame = pd.DataFrame({"id": [1, 2]})

    class _FrameJob:
        def result(self, timeout=None):
            return SimpleNamespace(to_dataframe=lambda: frame)

    fake.job = _FrameJob()

    assert client.query_dataframe("SELECT id FROM t") is frame


def test_query_dataframe_empty_query(client: BigQueryClient, fake) -> None:
    """An empty query should return an empty frame without calling the service."""
    assert client.query_dataframe("").empty and fake.calls == []
