"""
Job Email Routes - alerts, single job matches and application forwarding
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..config import Settings, get_settings
from ..email_service import (
    send_job_alert_email,
    send_job_application_email,
    send_matching_job_email,
)
from ..schemas import (
    JobAlertRequest,
    JobApplicationRequest,
    MatchingJobRequest,
    SendEmailResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Jobs"], dependencies=[Depends(require_api_key)])


@router.post("/send-job-alert", response_model=SendEmailResponse)
async def send_job_alert(data: JobAlertRequest, settings: Settings = Depends(get_settings)):
    """Send a digest of new jobs matching a saved alert"""
    try:
        result = await send_job_alert_email(data, settings)
    except Exception as e:
        logger.error(f"❌ Job alert email failed for {data.user_email}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    logger.info(f"🎯 Job alert '{data.alert_title}' sent with {len(data.jobs)} job(s)")
    return result.to_dict()


@router.post("/send-matching-job", response_model=SendEmailResponse)
async def send_matching_job(data: MatchingJobRequest, settings: Settings = Depends(get_settings)):
    """Send a single job that matches the user's profile"""
    try:
        result = await send_matching_job_email(data, settings)
    except Exception as e:
        logger.error(f"❌ Matching job email failed for {data.user_email}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return result.to_dict()


@router.post("/send-job-application", response_model=SendEmailResponse)
async def send_job_application(
    data: JobApplicationRequest, settings: Settings = Depends(get_settings)
):
    """
    Forward a job application to the recruiter.
    The resume is attached when resumeUrl can be downloaded; otherwise the
    application is still sent, just without the attachment.
    """
    try:
        result = await send_job_application_email(data, settings)
    except Exception as e:
        logger.error(f"❌ Job application email failed for {data.recruiter_email}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return result.to_dict()
