"""
Fixture session — owns one schema, one working data snapshot and one
command builder, and runs operations and fetches against the database.

Each perform_operation / fetch_from_database call checks out its own
connection and always closes it. The session holds no locks; callers
sharing a session across threads must serialise access.
"""
import logging
import time
from typing import Any, Callable, Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from config import settings
from core.commands import CommandBuilder, CommandKind, PostgresCommandBuilder, SqliteCommandBuilder
from core.db_connector import create_engine_from_request
from core.exceptions import NotInitializedError, OperationError, UnknownTableError
from core.operations import DbOperations, PostgresDbOperations, SqliteDbOperations
from core.readers import DataSource, SchemaSource, describe_source, load_data, load_schema
from models.connection import ConnectionRequest
from models.operation import DbOperation, OperationContext, OperationResult
from models.schema import SchemaModel
from models.snapshot import DataSnapshot

logger = logging.getLogger(__name__)

OperationHook = Callable[[OperationContext], Any]


class DbFixture:
    """Base session; providers supply the builder and operations via the factory hooks."""

    def __init__(self, engine: Union[Engine, str]):
        self._engine = create_engine(engine, pool_pre_ping=settings.POOL_PRE_PING) if isinstance(engine, str) else engine
        self._builder: Optional[CommandBuilder] = None
        self._operations: Optional[DbOperations] = None
        self._snapshot: Optional[DataSnapshot] = None
        self._schema_source: Optional[tuple] = None
        self._data_source: Optional[tuple] = None
        self.pre_operation: Optional[OperationHook] = None
        self.post_operation: Optional[OperationHook] = None

    # ── Provider factories ───────────────────────────────────────────────────

    def create_command_builder(self) -> CommandBuilder:
        raise NotImplementedError

    def create_operations(self) -> DbOperations:
        raise NotImplementedError

    @property
    def builder(self) -> CommandBuilder:
        if self._builder is None:
            self._builder = self.create_command_builder()
        return self._builder

    @property
    def operations(self) -> DbOperations:
        if self._operations is None:
            self._operations = self.create_operations()
        return self._operations

    # ── Configuration ────────────────────────────────────────────────────────

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def quote_prefix(self) -> str:
        return self.builder.quote_prefix

    @quote_prefix.setter
    def quote_prefix(self, value: str) -> None:
        self.builder.quote_prefix = value

    @property
    def quote_suffix(self) -> str:
        return self.builder.quote_suffix

    @quote_suffix.setter
    def quote_suffix(self, value: str) -> None:
        self.builder.quote_suffix = value

    @property
    def is_initialized(self) -> bool:
        return self._snapshot is not None

    @property
    def schema(self) -> SchemaModel:
        self._check_initialized()
        return self._snapshot.source_schema

    @property
    def row_count(self) -> int:
        """Rows in the working snapshot, counted without copying it."""
        self._check_initialized()
        return self._snapshot.row_count()

    # ── Reading ──────────────────────────────────────────────────────────────

    def read_schema(self, source: SchemaSource) -> None:
        """Read a schema and reset the working snapshot. Re-reading the same source is a no-op."""
        descriptor = describe_source(source)
        if descriptor is not None and descriptor == self._schema_source and self.is_initialized:
            logger.debug("Schema source unchanged; skipping re-read")
            return
        schema = load_schema(source)
        self.builder.build_commands(schema)
        self._snapshot = DataSnapshot.empty(schema)
        self._schema_source = descriptor
        self._data_source = None

    def read_data(self, source: DataSource) -> int:
        """Replace the working snapshot's rows. Returns the number of rows loaded."""
        self._check_initialized()
        descriptor = describe_source(source)
        if descriptor is not None and descriptor == self._data_source:
            logger.debug("Data source unchanged; skipping re-read")
            return self._snapshot.row_count()
        data = load_data(source, self._snapshot.source_schema)
        self._snapshot.clear()
        merged = self._snapshot.merge(data)
        self._data_source = descriptor
        logger.info("Loaded %d rows into %d tables", merged, len(data))
        return merged

    def copy_data(self) -> DataSnapshot:
        self._check_initialized()
        return self._snapshot.copy_data()

    def copy_schema_only(self) -> DataSnapshot:
        self._check_initialized()
        return self._snapshot.copy_schema_only()

    # ── Operations ───────────────────────────────────────────────────────────

    def perform_operation(self, operation: DbOperation) -> OperationResult:
        self._check_initialized()
        operation = DbOperation(operation)
        if operation == DbOperation.NONE:
            return OperationResult(operation=operation)

        # Templates and ordering fail here, before a connection exists
        self.builder.ensure_built()

        t0 = time.time()
        logger.info("Starting %s", operation.value)
        with self._connect() as conn:
            transaction = conn.begin()
            context = OperationContext(operation=operation, connection=conn, transaction=transaction)
            try:
                if self.pre_operation is not None:
                    self.pre_operation(context)
                affected = self._dispatch(operation, conn)
                if self.post_operation is not None:
                    self.post_operation(context)
                transaction.commit()
            except Exception:
                logger.warning("%s failed; rolling back", operation.value)
                transaction.rollback()
                raise

        duration = round(time.time() - t0, 3)
        logger.info("Finished %s: %d rows affected in %.3fs", operation.value, affected, duration)
        return OperationResult(operation=operation, rows_affected=affected, duration_seconds=duration)

    def _dispatch(self, operation: DbOperation, conn: Connection) -> int:
        ops, builder, snapshot = self.operations, self.builder, self._snapshot
        if operation == DbOperation.INSERT:
            return ops.insert(snapshot, builder, conn)
        if operation == DbOperation.INSERT_IDENTITY:
            return ops.insert_identity(snapshot, builder, conn)
        if operation == DbOperation.DELETE:
            return ops.delete(snapshot, builder, conn)
        if operation == DbOperation.DELETE_ALL:
            return ops.delete_all(builder, conn)
        if operation == DbOperation.UPDATE:
            return ops.update(snapshot, builder, conn)
        if operation == DbOperation.REFRESH:
            return ops.refresh(snapshot, builder, conn)
        if operation == DbOperation.CLEAN_INSERT:
            return ops.delete_all(builder, conn) + ops.insert(snapshot, builder, conn)
        if operation == DbOperation.CLEAN_INSERT_IDENTITY:
            return ops.delete_all(builder, conn) + ops.insert_identity(snapshot, builder, conn)
        raise ValueError(f"Unsupported operation: {operation}")

    # ── Fetching ─────────────────────────────────────────────────────────────

    def fetch_from_database(self, table_names: Optional[list[str]] = None) -> DataSnapshot:
        """Read the given tables (default: all schema tables) into a fresh snapshot."""
        self._check_initialized()
        schema = self.schema
        if table_names is None:
            table_names = schema.table_names
        for name in table_names:
            if not schema.has_table(name):
                raise UnknownTableError(name)

        self.builder.ensure_built()
        result = self._snapshot.copy_schema_only()
        with self._connect() as conn:
            for name in table_names:
                template = self.builder.get(name, CommandKind.SELECT)
                columns = schema.get_table(name).column_names
                rows = [dict(zip(columns, r)) for r in conn.execute(template.statement())]
                result.replace_rows(name, rows)
                logger.debug("Fetched %d rows from %s", len(rows), name)
        return result

    def dispose(self) -> None:
        self._engine.dispose()

    # ── Internals ────────────────────────────────────────────────────────────

    def _connect(self) -> Connection:
        try:
            return self._engine.connect()
        except OperationalError as e:
            raise OperationError(f"Could not connect to database: {e}") from e

    def _check_initialized(self) -> None:
        if self._snapshot is None:
            raise NotInitializedError("read_schema() must be called successfully first")


class SqliteDbFixture(DbFixture):
    def create_command_builder(self) -> CommandBuilder:
        return SqliteCommandBuilder(self.engine)

    def create_operations(self) -> DbOperations:
        return SqliteDbOperations()


class PostgresDbFixture(DbFixture):
    def create_command_builder(self) -> CommandBuilder:
        return PostgresCommandBuilder(self.engine)

    def create_operations(self) -> DbOperations:
        return PostgresDbOperations()


FIXTURE_CLASSES: dict[str, type[DbFixture]] = {
    "sqlite": SqliteDbFixture,
    "postgresql": PostgresDbFixture,
}


def create_fixture(req: ConnectionRequest) -> DbFixture:
    """Build a provider-specific fixture for a validated connection."""
    fixture_cls = FIXTURE_CLASSES[req.db_type]
    return fixture_cls(create_engine_from_request(req))
