"""Health check endpoint with database connectivity check."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.envelope import ApiResponse, ok
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=ApiResponse[HealthResponse], response_model_exclude_unset=True)
def get_health(db: Session = Depends(get_db)) -> dict[str, object]:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"
    return ok(HealthResponse(status="ok", environment=settings.APP_ENV, database=db_status))
