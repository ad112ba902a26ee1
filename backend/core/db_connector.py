"""
Database connector — SQLAlchemy engine factory and schema reflection.
Supports SQLite and PostgreSQL. Extracts tables, columns, types, PK/FK constraints
into a SchemaModel usable by the command builder.
"""
import logging
from typing import Optional
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from config import settings
from core.exceptions import OperationError, SchemaError
from models.connection import ConnectionRequest
from models.schema import ColumnDescriptor, ForeignKeyReference, SchemaModel, TableDescriptor

logger = logging.getLogger(__name__)


def create_engine_from_request(req: ConnectionRequest) -> Engine:
    """Build and test a SQLAlchemy engine from a ConnectionRequest."""
    url = req.get_sqlalchemy_url()
    engine = create_engine(url, pool_pre_ping=settings.POOL_PRE_PING)
    # Validate the connection immediately
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        engine.dispose()
        raise OperationError(f"Could not connect to database: {e}") from e
    return engine


def reflect_schema(engine: Engine, table_names: Optional[list[str]] = None) -> SchemaModel:
    """
    Reflect tables from the target database.
    Returns a SchemaModel with columns, primary keys and composite foreign keys.
    """
    insp = inspect(engine)
    schema_name = _get_default_schema(engine)
    names = table_names or insp.get_table_names(schema=schema_name)
    logger.info("Reflecting %d tables from %s", len(names), engine.url.render_as_string(hide_password=True))

    tables: list[TableDescriptor] = []
    for table_name in names:
        pk_cols = insp.get_pk_constraint(table_name, schema=schema_name).get("constrained_columns") or []
        columns = _reflect_columns(insp, table_name, schema_name, pk_cols, engine.dialect.name)
        foreign_keys = [
            ForeignKeyReference(
                columns=tuple(fk["constrained_columns"]),
                referenced_table=fk["referred_table"],
                referenced_columns=tuple(fk["referred_columns"]),
            )
            for fk in insp.get_foreign_keys(table_name, schema=schema_name)
            if fk.get("referred_table") in names
        ]
        tables.append(TableDescriptor(
            name=table_name,
            columns=tuple(columns),
            primary_key=tuple(pk_cols),
            foreign_keys=tuple(foreign_keys),
        ))

    if not tables:
        raise SchemaError("No tables found to reflect")
    return SchemaModel(tables=tuple(tables))


def _reflect_columns(insp, table_name: str, schema: Optional[str], pk_cols: list[str], dialect: str) -> list[ColumnDescriptor]:
    raw_cols = insp.get_columns(table_name, schema=schema)
    result = []
    for col in raw_cols:
        data_type = str(col["type"]).upper()
        # Simplify long type strings
        if "(" in data_type:
            data_type = data_type.split("(")[0]
        result.append(ColumnDescriptor(
            name=col["name"],
            data_type=data_type,
            nullable=col.get("nullable", True),
            identity=_is_identity(col, data_type, pk_cols, dialect),
        ))
    return result


def _is_identity(col: dict, data_type: str, pk_cols: list[str], dialect: str) -> bool:
    if col.get("identity"):
        return True
    default = str(col.get("default") or "")
    if default.startswith("nextval("):
        return True
    # SQLite: a lone INTEGER PRIMARY KEY aliases the rowid
    if dialect == "sqlite":
        return data_type == "INTEGER" and pk_cols == [col["name"]]
    return col.get("autoincrement") is True


def _get_default_schema(engine: Engine) -> Optional[str]:
    if engine.dialect.name == "postgresql":
        return "public"
    return None   # SQLite has no schema concept

