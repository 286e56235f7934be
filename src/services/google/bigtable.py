import datetime
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Union

from google.cloud import bigtable
from google.cloud.bigtable.row_data import PartialRowData
from google.cloud.bigtable.row_filters import RowFilter, RowFilterChain
from google.cloud.bigtable.row_set import RowSet
from google.oauth2 import service_account

from src.services.config import ClientConfig
from src.services.constants import ERROR_MESSAGES
from src.services.errors import SDK_ERRORS, ClientInitError, ListError, ReadError, WriteError
from src.services.utils import StringList, get_logger

logger = get_logger("bigtable")

CellValue = Union[bytes, str, int]


def instance_key(project_id: str, instance_id: str) -> str:
    """Registry key for one Bigtable instance."""
    return f"{project_id}.{instance_id}"


class BigtableClient:
    """A client for one Bigtable instance, covering both admin and data calls.

    Notes
    -----
    - Table and column family creation is skipped when the name already
      exists, deletion when it does not.
    - When several filters are given they are chained, so a cell must pass
      all of them.
    """

    def __init__(
        self,
        project_id: str,
        instance_id: str,
        config: Optional[ClientConfig] = None,
        client: Optional[bigtable.Client] = None,
    ):
        self.project_id = project_id
        self.instance_id = instance_id
        self.config = config or ClientConfig()
        self.client = client
        try:
            if self.client is None:
                credentials = None
                if self.config.credential_file:
                    credentials = service_account.Credentials.from_service_account_file(
                        self.config.credential_file
                    )
                self.client = bigtable.Client(
                    project=project_id, credentials=credentials, admin=True
                )
            self.instance = self.client.instance(instance_id)
        except SDK_ERRORS as e:
            logger.error(f"Failed to initialize Bigtable client for {instance_key(project_id, instance_id)}: {e}")
            raise ClientInitError(ERROR_MESSAGES['init_bigtable_client_failed'], e) from e

        logger.info("Bigtable client initialized ({})", instance_key(project_id, instance_id))

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        client, self.client = self.client, None
        if client is not None:
            client.close()

    def get_table_names(self) -> StringList:
        """
        Return the table ids of the instance.

        The admin ``list_tables`` call takes no timeout, so ``config.timeout``
        does not apply here.
        """
        try:
            tables = self.instance.list_tables()
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_bigtable_table_names_failed'], e) from e
        return StringList(table.table_id for table in tables)

    def create_table(self, table_name: str) -> None:
        """Create a table unless it already exists."""
        if self.get_table_names().contains(table_name):
            return
        try:
            self.instance.table(table_name).create()
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['create_bigtable_table_failed'], e) from e
        logger.info("Created Bigtable table {}", table_name)

    def delete_table(self, table_name: str) -> None:
        """Delete a table if it exists."""
        if not self.get_table_names().contains(table_name):
            return
        try:
            self.instance.table(table_name).delete()
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['delete_bigtable_table_failed'], e) from e
        logger.info("Deleted Bigtable table {}", table_name)

    def get_column_families(self, table_name: str) -> StringList:
        try:
            families = self.instance.table(table_name).list_column_families()
        except SDK_ERRORS as e:
            raise ListError(ERROR_MESSAGES['get_family_names_failed'], e) from e
        return StringList(families.keys())

    def create_column_family(self, table_name: str, column_family: str) -> None:
        """Create a column family unless the table already has it."""
        if self.get_column_families(table_name).contains(column_family):
            return
        try:
            self.instance.table(table_name).column_family(column_family).create()
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['create_family_name_failed'], e) from e
        logger.info("Created column family {} on {}", column_family, table_name)

    def add_row(
        self,
        table_name: str,
        row_key: str,
        column_family: str,
        columns: Mapping[str, CellValue],
    ) -> None:
        """Write every column of ``columns`` to one row, stamped with the current time."""
        row = self.instance.table(table_name).direct_row(row_key)
        timestamp = datetime.datetime.now(datetime.timezone.utc)
        for column, value in columns.items():
            row.set_cell(column_family, column, value, timestamp=timestamp)
        try:
            status = row.commit()
        except SDK_ERRORS as e:
            raise WriteError(ERROR_MESSAGES['add_row_failed'], e) from e
        if status is not None and status.code != 0:
            raise WriteError(ERROR_MESSAGES['add_row_failed'], RuntimeError(status.message))

    def read_row(
        self, table_name: str, row_key: str, filters: Sequence[RowFilter] = ()
    ) -> Optional[PartialRowData]:
        """Return a single row, or None when the key is absent."""
        try:
            return self.instance.table(table_name).read_row(
                row_key, filter_=_chain(filters)
            )
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['read_row_by_key_failed'], e) from e

    def read_rows_by_keys(
        self, table_name: str, row_keys: Iterable[str], filters: Sequence[RowFilter] = ()
    ) -> List[PartialRowData]:
        row_keys = list(row_keys)
        # An empty row set would scan the whole table.
        if not row_keys:
            return []
        row_set = RowSet()
        for row_key in row_keys:
            row_set.add_row_key(row_key)
        return self._collect(table_name, row_set, filters, 'read_rows_by_keys_failed')

    def read_rows_by_key_prefix(
        self, table_name: str, key_prefix: str, filters: Sequence[RowFilter] = ()
    ) -> List[PartialRowData]:
        """Read every row whose key starts with ``key_prefix``; empty reads the whole table."""
        row_set = None
        if key_prefix:
            row_set = RowSet()
            row_set.add_row_range_with_prefix(key_prefix)
        return self._collect(table_name, row_set, filters, 'read_rows_by_key_prefix_failed')

    def read_rows_by_key_range(
        self,
        table_name: str,
        start_key: str,
        end_key: str,
        filters: Sequence[RowFilter] = (),
    ) -> List[PartialRowData]:
        """Rows with ``start_key <= key < end_key``."""
        row_set = RowSet()
        row_set.add_row_range_from_keys(start_key=start_key, end_key=end_key)
        return self._collect(table_name, row_set, filters, 'read_rows_by_key_range_failed')

    def _collect(self, table_name, row_set, filters, error_key) -> List[PartialRowData]:
        try:
            return list(
                self.instance.table(table_name).read_rows(
                    row_set=row_set, filter_=_chain(filters)
                )
            )
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES[error_key], e) from e

    def read_rows(
        self,
        table_name: str,
        func: Callable[[PartialRowData], None],
        count: int = 0,
        row_set: Optional[RowSet] = None,
        filters: Sequence[RowFilter] = (),
    ) -> int:
        """
        Scan a table and hand each row to ``func``.

        The scan is cancelled once ``count`` rows were delivered (no limit when
        ``count`` is 0). A missing ``row_set`` scans the whole table. Returns the
        number of rows delivered.
        """
        delivered = 0
        try:
            rows = self.instance.table(table_name).read_rows(
                row_set=row_set, filter_=_chain(filters)
            )
            for row in rows:
                func(row)
                delivered += 1
                if 0 < count <= delivered:
                    rows.cancel()
                    break
        except SDK_ERRORS as e:
            raise ReadError(ERROR_MESSAGES['read_rows_failed'], e) from e
        return delivered


def _chain(filters: Sequence[RowFilter]) -> Optional[RowFilter]:
    filters = list(filters or ())
    if not filters:
        return None
    if len(filters) == 1:
        return filters[0]
    return RowFilterChain(filters=filters)
