from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..schemas import HealthResponse

router = APIRouter(prefix="/api", tags=["Health Check"])

HEALTH_PATH = "/api/health"

SEND_ENDPOINTS = [
    "/api/send-job-alert",
    "/api/send-job-application",
    "/api/send-matching-job",
    "/api/send-proposal-approval",
    "/api/send-verification",
]


@router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "service": settings.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "endpoints": SEND_ENDPOINTS,
    }
