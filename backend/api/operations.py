"""POST /api/sessions/{name}/operations and GET /api/sessions/{name}/snapshot."""
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from api.sessions import get_session, to_http_error
from core.exceptions import FixtureError
from models.operation import OperationRequest, OperationResult

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sessions/{session_name}/operations", response_model=OperationResult)
def perform_operation(session_name: str, req: OperationRequest):
    fixture = get_session(session_name)
    try:
        return fixture.perform_operation(req.operation)
    except FixtureError as e:
        raise to_http_error(e)
    except SQLAlchemyError as e:
        logger.exception("Operation %s failed for %s", req.operation.value, session_name)
        raise HTTPException(500, detail=f"{req.operation.value} failed and was rolled back: {e}")


@router.get("/sessions/{session_name}/snapshot")
def fetch_snapshot(session_name: str, tables: Optional[list[str]] = Query(None)):
    fixture = get_session(session_name)
    try:
        snapshot = fixture.fetch_from_database(tables)
    except FixtureError as e:
        raise to_http_error(e)
    except SQLAlchemyError as e:
        logger.exception("Fetch failed for %s", session_name)
        raise HTTPException(500, detail=f"Fetch failed: {e}")
    return {"session_name": session_name, "tables": snapshot.to_dict()}
