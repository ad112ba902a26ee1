"""
Command builder — turns table/column/key metadata into parameterized SQL.

One template per (table, command kind) is generated in a single pass the
first time the builder is used after a schema is attached. Changing the
quote characters drops the templates; they are rebuilt on next use.
Parameters are bound by name as :p1 … :pN in the order listed on the template.
"""
import logging
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import TextClause

from config import settings
from core.exceptions import NotInitializedError, SchemaError, UnknownTableError
from core.ordering import dependency_order
from models.schema import SchemaModel, TableDescriptor

logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    INSERT_IDENTITY = "insert_identity"
    DELETE = "delete"           # by primary key
    DELETE_ALL = "delete_all"
    UPDATE = "update"           # by primary key


KEYED_KINDS = (CommandKind.DELETE, CommandKind.UPDATE)


class CommandTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str
    kind: CommandKind
    sql: str
    parameters: tuple[str, ...] = ()   # column bound to :p1, :p2, …

    def bind(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {f"p{i}": row.get(col) for i, col in enumerate(self.parameters, start=1)}

    def statement(self) -> TextClause:
        return text(self.sql)


class CommandBuilder:
    """Base builder; provider subclasses override individual template rules."""

    def __init__(self, engine: Engine, quote_prefix: Optional[str] = None, quote_suffix: Optional[str] = None):
        self._engine = engine
        self._quote_prefix = settings.QUOTE_PREFIX if quote_prefix is None else quote_prefix
        self._quote_suffix = settings.QUOTE_SUFFIX if quote_suffix is None else quote_suffix
        self._schema: Optional[SchemaModel] = None
        self._templates: Optional[dict[tuple[str, CommandKind], Optional[CommandTemplate]]] = None
        self._order: list[str] = []

    # ── Capability surface ───────────────────────────────────────────────────

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def schema(self) -> SchemaModel:
        if self._schema is None:
            raise NotInitializedError("build_commands() must be called with a schema first")
        return self._schema

    @property
    def quote_prefix(self) -> str:
        return self._quote_prefix

    @quote_prefix.setter
    def quote_prefix(self, value: str) -> None:
        if value != self._quote_prefix:
            self._quote_prefix = value
            self._invalidate()

    @property
    def quote_suffix(self) -> str:
        return self._quote_suffix

    @quote_suffix.setter
    def quote_suffix(self, value: str) -> None:
        if value != self._quote_suffix:
            self._quote_suffix = value
            self._invalidate()

    @property
    def is_built(self) -> bool:
        return self._templates is not None

    def build_commands(self, schema: SchemaModel) -> None:
        """Attach a schema. Templates are generated lazily on first use."""
        self._schema = schema
        self._invalidate()

    def ensure_built(self) -> None:
        if self._templates is not None:
            return
        schema = self.schema
        order = dependency_order(schema)
        templates: dict[tuple[str, CommandKind], Optional[CommandTemplate]] = {}
        keyed = {CommandKind.DELETE: self.delete_template, CommandKind.UPDATE: self.update_template}
        for table in schema.tables:
            templates[(table.name, CommandKind.SELECT)] = self.select_template(table)
            templates[(table.name, CommandKind.INSERT)] = self.insert_template(table)
            templates[(table.name, CommandKind.INSERT_IDENTITY)] = self.insert_identity_template(table)
            templates[(table.name, CommandKind.DELETE_ALL)] = self.delete_all_template(table)
            for kind in KEYED_KINDS:
                templates[(table.name, kind)] = keyed[kind](table) if table.has_primary_key else None
        self._order = order
        self._templates = templates
        logger.debug("Built %d command templates for %d tables", len(templates), len(schema.tables))

    def get(self, table_name: str, kind: CommandKind) -> CommandTemplate:
        self.ensure_built()
        key = (table_name, kind)
        if key not in self._templates:
            raise UnknownTableError(table_name)
        template = self._templates[key]
        if template is None:
            raise SchemaError(
                f"Table '{table_name}' has no primary key; {kind.value} by key is not possible"
            )
        return template

    @property
    def insert_order(self) -> list[str]:
        self.ensure_built()
        return list(self._order)

    @property
    def delete_order(self) -> list[str]:
        self.ensure_built()
        return list(reversed(self._order))

    # ── Template rules ───────────────────────────────────────────────────────

    def quote(self, identifier: str) -> str:
        return f"{self._quote_prefix}{identifier}{self._quote_suffix}"

    def _column_list(self, columns: list[str]) -> str:
        return ", ".join(self.quote(c) for c in columns)

    @staticmethod
    def _param_list(start: int, count: int) -> str:
        return ", ".join(f":p{i}" for i in range(start, start + count))

    def _assignments(self, columns: list[str], start: int) -> str:
        return ", ".join(f"{self.quote(c)}=:p{i}" for i, c in enumerate(columns, start=start))

    def _key_clause(self, table: TableDescriptor, start: int) -> str:
        return " AND ".join(f"{self.quote(k)}=:p{i}" for i, k in enumerate(table.primary_key, start=start))

    def select_template(self, table: TableDescriptor) -> CommandTemplate:
        sql = f"SELECT {self._column_list(table.column_names)} FROM {self.quote(table.name)}"
        return CommandTemplate(table=table.name, kind=CommandKind.SELECT, sql=sql)

    def _insert(self, table: TableDescriptor, kind: CommandKind, columns: list[str], marker: str = "") -> CommandTemplate:
        if not columns:
            sql = f"INSERT INTO {self.quote(table.name)} DEFAULT VALUES"
            return CommandTemplate(table=table.name, kind=kind, sql=sql)
        values = f"VALUES({self._param_list(1, len(columns))})"
        if marker:
            values = f"{marker} {values}"
        sql = f"INSERT INTO {self.quote(table.name)}({self._column_list(columns)}) {values}"
        return CommandTemplate(table=table.name, kind=kind, sql=sql, parameters=tuple(columns))

    def insert_template(self, table: TableDescriptor) -> CommandTemplate:
        return self._insert(table, CommandKind.INSERT, table.non_identity_columns)

    def insert_identity_template(self, table: TableDescriptor) -> CommandTemplate:
        return self._insert(table, CommandKind.INSERT_IDENTITY, table.column_names)

    def delete_template(self, table: TableDescriptor) -> CommandTemplate:
        sql = f"DELETE FROM {self.quote(table.name)} WHERE {self._key_clause(table, 1)}"
        return CommandTemplate(
            table=table.name, kind=CommandKind.DELETE, sql=sql, parameters=tuple(table.primary_key)
        )

    def delete_all_template(self, table: TableDescriptor) -> CommandTemplate:
        return CommandTemplate(table=table.name, kind=CommandKind.DELETE_ALL, sql=f"DELETE FROM {self.quote(table.name)}")

    def update_template(self, table: TableDescriptor) -> CommandTemplate:
        # All-key tables re-assign their keys so the statement still reports matched rows
        set_columns = table.non_key_columns or list(table.primary_key)
        where_start = len(set_columns) + 1
        sql = (
            f"UPDATE {self.quote(table.name)} SET {self._assignments(set_columns, 1)} "
            f"WHERE {self._key_clause(table, where_start)}"
        )
        return CommandTemplate(
            table=table.name,
            kind=CommandKind.UPDATE,
            sql=sql,
            parameters=tuple(set_columns) + tuple(table.primary_key),
        )

    def _invalidate(self) -> None:
        if self._templates is not None:
            logger.debug("Command templates invalidated")
        self._templates = None
        self._order = []


class SqliteCommandBuilder(CommandBuilder):
    """SQLite accepts the base rules as-is."""


class PostgresCommandBuilder(CommandBuilder):
    def insert_identity_template(self, table: TableDescriptor) -> CommandTemplate:
        # GENERATED ALWAYS identity columns reject explicit values without the override
        marker = "OVERRIDING SYSTEM VALUE" if table.identity_columns else ""
        return self._insert(table, CommandKind.INSERT_IDENTITY, table.column_names, marker)
