"""
Schema and data readers for JSON descriptions.

Schema document:
    {"tables": [{"name": "Role",
                 "columns": [{"name": "ID", "data_type": "INTEGER", "nullable": false, "identity": true}, ...],
                 "primary_key": ["ID"],
                 "foreign_keys": [{"columns": ["RoleID"], "referenced_table": "Role",
                                   "referenced_columns": ["ID"]}]}]}

Data document:
    {"Role": [{"ID": 1, "Name": "Admin"}, ...], "User": [...]}
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from core.exceptions import SchemaError
from models.schema import SchemaModel
from models.snapshot import DataSnapshot

logger = logging.getLogger(__name__)

SchemaSource = Union[SchemaModel, Mapping[str, Any], str, os.PathLike]
DataSource = Union[DataSnapshot, Mapping[str, Any], str, os.PathLike]


def describe_source(source: Any) -> Optional[tuple]:
    """
    Identity of a source for idempotent re-reads.
    Paths compare by resolved location, mappings and models by value.
    Streams return None: they are always read.
    """
    if isinstance(source, (str, os.PathLike)):
        return ("path", Path(source).resolve())
    if isinstance(source, SchemaModel):
        return ("schema", source)
    if isinstance(source, DataSnapshot):
        return ("snapshot", json.dumps(source.to_dict(), sort_keys=True, default=str))
    if isinstance(source, Mapping):
        return ("mapping", json.dumps(source, sort_keys=True, default=str))
    return None


def _read_json(source: Any, what: str) -> Any:
    if hasattr(source, "read"):
        try:
            return json.load(source)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Malformed {what} stream: {e}") from e
    if not str(source):
        raise SchemaError(f"{what.capitalize()} file cannot be empty")
    path = Path(source)
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise SchemaError(f"{what.capitalize()} file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise SchemaError(f"Malformed {what} file {path}: {e}") from e


def load_schema(source: SchemaSource) -> SchemaModel:
    """Parse and validate a schema description."""
    if isinstance(source, SchemaModel):
        return source
    raw = source if isinstance(source, Mapping) else _read_json(source, "schema")
    if not isinstance(raw, Mapping):
        raise SchemaError("Schema description must be a JSON object with a 'tables' list")
    try:
        schema = SchemaModel.model_validate(raw)
    except ValidationError as e:
        raise SchemaError(f"Invalid schema description: {e}") from e
    if not schema.tables:
        raise SchemaError("Schema description declares no tables")
    logger.info("Loaded schema with %d tables", len(schema.tables))
    return schema


def load_data(source: DataSource, schema: Optional[SchemaModel] = None) -> dict[str, list[dict[str, Any]]]:
    """
    Parse a data description into {table: [row, ...]}; shape errors raise SchemaError.
    With a schema, entries naming undeclared tables are skipped before any shape check.
    """
    if isinstance(source, DataSnapshot):
        return source.to_dict()
    raw = source if isinstance(source, Mapping) else _read_json(source, "data")
    if not isinstance(raw, Mapping):
        raise SchemaError("Data description must be a JSON object keyed by table name")
    data: dict[str, list[dict[str, Any]]] = {}
    for table_name, rows in raw.items():
        if rows is None:
            continue
        if schema is not None and not schema.has_table(table_name):
            logger.debug("Ignoring data for undeclared table %s", table_name)
            continue
        if not isinstance(rows, list) or not all(isinstance(r, Mapping) for r in rows):
            raise SchemaError(f"Rows for table '{table_name}' must be a list of objects")
        data[table_name] = [dict(r) for r in rows]
    return data
