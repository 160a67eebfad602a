from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from app.config import settings
from app.db.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status", examples=["healthy"])
    service: str = Field(..., description="Service name", examples=["offer-service"])
    version: str = Field(..., description="Service version", examples=["1.0.0"])
    database: str = Field(..., description="Database reachability", examples=["up"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="""
    Health check endpoint for monitoring and load balancer health checks.

    Returns the service status, name, version and whether the database answers.
    """,
)
async def health(db: Session = Depends(get_db)):
    """Health check endpoint"""
    database = "up"
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")
        database = "down"

    return HealthResponse(
        status="healthy" if database == "up" else "degraded",
        service=settings.app_name,
        version=SERVICE_VERSION,
        database=database,
    )
