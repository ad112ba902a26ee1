"""POST/GET/DELETE /api/sessions — fixture session registry and data loading."""
import logging
from typing import Any
from fastapi import APIRouter, HTTPException

from core.db_connector import reflect_schema
from core.exceptions import FixtureError, NotInitializedError, OperationError, SchemaError, UnknownTableError
from core.fixture import DbFixture, create_fixture
from models.connection import SessionListItem, SessionRequest, SessionResponse

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory registry: session_name → DbFixture
_session_registry: dict[str, DbFixture] = {}


def get_session(session_name: str) -> DbFixture:
    if session_name not in _session_registry:
        raise HTTPException(404, detail=f"Session '{session_name}' not found. Please create it first.")
    return _session_registry[session_name]


def to_http_error(e: FixtureError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(e, UnknownTableError):
        return HTTPException(404, detail=str(e))
    if isinstance(e, NotInitializedError):
        return HTTPException(409, detail=str(e))
    if isinstance(e, SchemaError):
        return HTTPException(422, detail=str(e))
    if isinstance(e, OperationError):
        return HTTPException(502, detail=str(e))
    return HTTPException(500, detail=str(e))


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(req: SessionRequest):
    """
    1. Validate DB connection
    2. Read the given schema, or reflect it from the database
    3. Build command templates and dependency order
    """
    name = req.connection.session_name
    try:
        fixture = create_fixture(req.connection)
    except FixtureError as e:
        raise to_http_error(e)

    try:
        if req.quote_prefix is not None:
            fixture.quote_prefix = req.quote_prefix
        if req.quote_suffix is not None:
            fixture.quote_suffix = req.quote_suffix
        fixture.read_schema(req.schema_definition or reflect_schema(fixture.engine))
        order = fixture.builder.insert_order
    except FixtureError as e:
        fixture.dispose()
        raise to_http_error(e)

    previous = _session_registry.pop(name, None)
    if previous is not None:
        previous.dispose()
    _session_registry[name] = fixture
    logger.info("Session %s ready with %d tables", name, len(order))

    return SessionResponse(
        session_name=name,
        db_type=req.connection.db_type,
        tables=fixture.schema.table_names,
        insert_order=order,
    )


@router.get("/sessions")
def list_sessions():
    result = []
    for name, fixture in _session_registry.items():
        result.append(SessionListItem(
            session_name=name,
            db_type=fixture.engine.dialect.name,
            tables_count=len(fixture.schema.tables),
            rows_loaded=fixture.row_count,
        ))
    return {"sessions": result}


@router.delete("/sessions/{session_name}")
def delete_session(session_name: str):
    fixture = get_session(session_name)
    del _session_registry[session_name]
    fixture.dispose()
    return {"message": f"Session '{session_name}' removed successfully."}


@router.post("/sessions/{session_name}/data")
def load_data(session_name: str, data: dict[str, Any]):
    fixture = get_session(session_name)
    try:
        loaded = fixture.read_data(data)
    except FixtureError as e:
        raise to_http_error(e)
    snapshot = fixture.copy_data()
    return {
        "session_name": session_name,
        "rows_loaded": loaded,
        "tables": {name: len(rows) for name, rows in snapshot.tables.items()},
    }


@router.get("/sessions/{session_name}/data")
def get_data(session_name: str):
    fixture = get_session(session_name)
    return {"session_name": session_name, "tables": fixture.copy_data().to_dict()}
