"""
Email Verification Routes
Sends the one-time code generated by the fellowship backend
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..config import Settings, get_settings
from ..email_service import send_verification_code_email
from ..schemas import SendEmailResponse, VerificationCodeRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["verification"], dependencies=[Depends(require_api_key)])


@router.post("/send-verification", response_model=SendEmailResponse)
async def send_verification_code(
    data: VerificationCodeRequest, settings: Settings = Depends(get_settings)
):
    """
    Email a verification code.
    Returns 200 with the message id on success, 500 with the relay error on failure
    """
    try:
        logger.info(f"📨 Verification code send request for {data.email}")
        result = await send_verification_code_email(data, settings)
    except Exception as e:
        logger.error(f"❌ Failed to send verification code to {data.email}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return result.to_dict()
