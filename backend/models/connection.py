"""Pydantic schemas for fixture session requests and responses."""
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field


class ConnectionRequest(BaseModel):
    db_type: Literal["sqlite", "postgresql"] = Field(..., description="Database engine type")
    session_name: str = Field(..., description="Unique name for this fixture session")

    # SQLite only
    file_path: Optional[str] = Field(None, description="Absolute path to .db file (SQLite only)")

    # PostgreSQL only
    host: Optional[str] = Field(None, description="Database host")
    port: Optional[int] = Field(5432, description="Database port")
    database: Optional[str] = Field(None, description="Database name")
    username: Optional[str] = Field(None, description="Username")
    password: Optional[str] = Field(None, description="Password")

    def get_sqlalchemy_url(self) -> str:
        if self.db_type == "sqlite":
            return f"sqlite:///{self.file_path}"
        return (
            f"postgresql+psycopg2://{self.username}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class SessionRequest(BaseModel):
    connection: ConnectionRequest
    schema_definition: Optional[dict[str, Any]] = None   # None = reflect from the database
    quote_prefix: Optional[str] = None
    quote_suffix: Optional[str] = None


class SessionResponse(BaseModel):
    session_name: str
    db_type: str
    tables: list[str]
    insert_order: list[str]


class SessionListItem(BaseModel):
    session_name: str
    db_type: str
    tables_count: int
    rows_loaded: int
