"""GET /api/health — liveness and session count."""
import logging
from fastapi import APIRouter

from api.sessions import _session_registry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    return {"status": "ok", "sessions": len(_session_registry)}
