import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..config import Settings, get_settings
from ..email_service import send_proposal_approval_email
from ..schemas import ProposalApprovalRequest, SendEmailResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Fellowships"], dependencies=[Depends(require_api_key)])


@router.post("/send-proposal-approval", response_model=SendEmailResponse)
async def send_proposal_approval(
    data: ProposalApprovalRequest, settings: Settings = Depends(get_settings)
):
    """Tell a student that a company accepted their challenge proposal"""
    try:
        result = await send_proposal_approval_email(data, settings)
    except Exception as e:
        logger.error(f"❌ Proposal approval email failed for {data.student_email}: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    logger.info(f"🎉 Proposal approval for '{data.challenge_title}' sent to {data.student_email}")
    return result.to_dict()
