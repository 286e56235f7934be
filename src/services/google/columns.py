from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class Column:
    """A table column name and its declared BigQuery type."""
    column_name: str
    data_type: str

    def to_dict(self) -> Dict[str, str]:
        return {"columnName": self.column_name, "dataType": self.data_type}


class Columns(list):
    """Ordered column metadata for one table."""

    @classmethod
    def from_schema(cls, schema) -> "Columns":
        return cls(Column(field.name, str(field.field_type)) for field in schema)

    def sort(self, *, reverse: bool = False) -> None:
        # list.sort is stable, so equal names keep their schema order.
        super().sort(key=lambda column: column.column_name, reverse=reverse)

    def names(self) -> List[str]:
        return [column.column_name for column in self]

    def to_dicts(self) -> List[Dict[str, str]]:
        return [column.to_dict() for column in self]
