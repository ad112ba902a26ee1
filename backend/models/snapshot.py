"""In-memory data snapshot: rows per table, shaped by a SchemaModel."""
import logging
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field, model_validator

from core.exceptions import UnknownTableError
from models.schema import SchemaModel

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class DataSnapshot(BaseModel):
    source_schema: SchemaModel
    tables: dict[str, list[Row]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_tables(self):
        unknown = [name for name in self.tables if not self.source_schema.has_table(name)]
        if unknown:
            raise ValueError(f"snapshot holds tables not declared in the schema: {unknown}")
        return self

    @classmethod
    def empty(cls, schema: SchemaModel) -> "DataSnapshot":
        """Schema-only clone: every declared table, no rows."""
        return cls(source_schema=schema, tables={name: [] for name in schema.table_names})

    @property
    def table_names(self) -> list[str]:
        return list(self.tables.keys())

    def rows(self, table_name: str) -> list[Row]:
        self.source_schema.get_table(table_name)
        return self.tables.get(table_name, [])

    def row_count(self, table_name: str | None = None) -> int:
        if table_name is not None:
            return len(self.rows(table_name))
        return sum(len(r) for r in self.tables.values())

    def merge(self, data: Mapping[str, Iterable[Mapping[str, Any]]]) -> int:
        """
        Merge rows from a {table: [row, ...]} mapping.
        Rows of undeclared tables are ignored and undeclared columns are dropped.
        Returns the number of rows merged.
        """
        merged = 0
        for table_name, rows in data.items():
            if not self.source_schema.has_table(table_name):
                logger.debug("Ignoring rows for undeclared table %s", table_name)
                continue
            columns = self.source_schema.get_table(table_name).column_names
            target = self.tables.setdefault(table_name, [])
            for row in rows or []:
                target.append({c: row[c] for c in columns if c in row})
                merged += 1
        return merged

    def replace_rows(self, table_name: str, rows: list[Row]) -> None:
        if not self.source_schema.has_table(table_name):
            raise UnknownTableError(table_name)
        self.tables[table_name] = rows

    def clear(self) -> None:
        for name in self.tables:
            self.tables[name] = []

    def copy_data(self) -> "DataSnapshot":
        return self.model_copy(deep=True)

    def copy_schema_only(self) -> "DataSnapshot":
        return DataSnapshot.empty(self.source_schema)

    def to_dict(self) -> dict[str, list[Row]]:
        return {name: [dict(r) for r in rows] for name, rows in self.tables.items()}
