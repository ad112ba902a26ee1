"""
Database operations — apply a data snapshot through a command builder's
templates on an open connection. The caller owns the transaction.
"""
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection

from core.commands import CommandBuilder, CommandKind, CommandTemplate
from models.snapshot import DataSnapshot, Row

logger = logging.getLogger(__name__)


class DbOperations:
    """Row-by-row statement execution shared by every provider."""

    def _execute(self, conn: Connection, template: CommandTemplate, row: Row | None = None) -> int:
        params = template.bind(row) if row is not None else {}
        logger.debug("%s %s %s", template.kind.value, template.table, params)
        result = conn.execute(template.statement(), params)
        return max(result.rowcount or 0, 0)

    def _apply_rows(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection,
                    kind: CommandKind, order: list[str]) -> int:
        affected = 0
        for table_name in order:
            rows = snapshot.tables.get(table_name) or []
            if not rows:
                continue
            template = builder.get(table_name, kind)
            for row in rows:
                affected += self._execute(conn, template, row)
            logger.info("%s: %d rows into %s", kind.value, len(rows), table_name)
        return affected

    def insert(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        return self._apply_rows(snapshot, builder, conn, CommandKind.INSERT, builder.insert_order)

    def insert_identity(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        return self._apply_rows(snapshot, builder, conn, CommandKind.INSERT_IDENTITY, builder.insert_order)

    def delete(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        return self._apply_rows(snapshot, builder, conn, CommandKind.DELETE, builder.delete_order)

    def delete_all(self, builder: CommandBuilder, conn: Connection) -> int:
        affected = 0
        for table_name in builder.delete_order:
            affected += self._execute(conn, builder.get(table_name, CommandKind.DELETE_ALL))
        return affected

    def update(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        return self._apply_rows(snapshot, builder, conn, CommandKind.UPDATE, builder.insert_order)

    def refresh(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        """Update rows whose key exists, insert (keeping their keys) the rest."""
        affected = 0
        for table_name in builder.insert_order:
            rows = snapshot.tables.get(table_name) or []
            if not rows:
                continue
            update = builder.get(table_name, CommandKind.UPDATE)
            insert = builder.get(table_name, CommandKind.INSERT_IDENTITY)
            inserted = 0
            for row in rows:
                # Row count, not value comparison, decides whether the key exists
                count = self._execute(conn, update, row)
                if count == 0:
                    count = self._execute(conn, insert, row)
                    inserted += 1
                affected += count
            logger.info("refresh: %s updated=%d inserted=%d", table_name, len(rows) - inserted, inserted)
        return affected


class SqliteDbOperations(DbOperations):
    pass


class PostgresDbOperations(DbOperations):
    def insert_identity(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        affected = super().insert_identity(snapshot, builder, conn)
        self._resync_sequences(snapshot, builder, conn)
        return affected

    def refresh(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> int:
        affected = super().refresh(snapshot, builder, conn)
        self._resync_sequences(snapshot, builder, conn)
        return affected

    def _resync_sequences(self, snapshot: DataSnapshot, builder: CommandBuilder, conn: Connection) -> None:
        """Move each serial sequence past the explicit identity values just written."""
        for table in builder.schema.tables:
            if not snapshot.tables.get(table.name):
                continue
            for column in table.identity_columns:
                qualified = builder.quote(table.name)
                stmt = text(
                    f"SELECT setval(pg_get_serial_sequence(:table, :column), "
                    f"COALESCE(MAX({builder.quote(column)}), 1), MAX({builder.quote(column)}) IS NOT NULL) "
                    f"FROM {qualified}"
                )
                conn.execute(stmt, {"table": qualified, "column": column})
                logger.debug("Resynced sequence for %s.%s", table.name, column)
