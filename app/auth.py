"""
API key gate shared by every send endpoint
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from .config import Settings, get_settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"


def check_api_key(presented: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare the presented key against the configured one.

    Raises ConfigurationError when no key is configured so callers can
    never authorize a request against an empty secret.
    """
    if not expected:
        raise ConfigurationError("EMAIL_API_KEY not configured in environment")
    if presented is None:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def verify_api_key(presented: Optional[str], expected: Optional[str]) -> bool:
    """Fail-closed variant of check_api_key"""
    try:
        return check_api_key(presented, expected)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        return False


async def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request with 401 unless X-API-KEY matches EMAIL_API_KEY"""
    if not verify_api_key(x_api_key, settings.email_api_key):
        logger.warning("🔒 Rejected request with missing or invalid API key")
        raise HTTPException(status_code=401, detail="Unauthorized")
