"""Operation kinds, hook context and API schemas for database operations."""
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel
from sqlalchemy.engine import Connection, Transaction


class DbOperation(str, Enum):
    NONE = "none"
    INSERT = "insert"
    INSERT_IDENTITY = "insert_identity"
    DELETE = "delete"
    DELETE_ALL = "delete_all"
    UPDATE = "update"
    REFRESH = "refresh"               # update when the key exists, else insert
    CLEAN_INSERT = "clean_insert"     # delete_all + insert
    CLEAN_INSERT_IDENTITY = "clean_insert_identity"


@dataclass
class OperationContext:
    """Passed to pre/post operation hooks. A hook vetoes the operation by raising."""
    operation: DbOperation
    connection: Connection
    transaction: Transaction


class OperationRequest(BaseModel):
    operation: DbOperation


class OperationResult(BaseModel):
    operation: DbOperation
    rows_affected: int = 0
    duration_seconds: float = 0.0
