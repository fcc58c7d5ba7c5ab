from .health import HEALTH_PATH, SEND_ENDPOINTS
from .health import router as health_router
from .jobs import router as jobs_router
from .proposals import router as proposals_router
from .verification import router as verification_router

__all__ = [
    "HEALTH_PATH",
    "SEND_ENDPOINTS",
    "health_router",
    "jobs_router",
    "proposals_router",
    "verification_router",
]
