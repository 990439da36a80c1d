"""Inbound trigger API routes."""

from fastapi import APIRouter

from autorules.api.deps import OwnerDep, ServiceDep
from autorules.core.logging import get_logger
from autorules.schemas.common import APIResponse
from autorules.schemas.execution import EmailTriggerRequest, EmailTriggerResponse

router = APIRouter(prefix="/triggers", tags=["triggers"])

logger = get_logger(__name__)


@router.post("/email", response_model=APIResponse[EmailTriggerResponse])
async def trigger_email(
    data: EmailTriggerRequest,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[EmailTriggerResponse]:
    """Feed an email to the trigger matcher.

    Matched rules are queued and run in the background; the response only
    lists which rules matched.
    """
    matched = await service.process_email(data.to_event(owner_id))
    logger.info("Email trigger submitted", owner_id=owner_id, matched=len(matched))

    return APIResponse(
        message=f"{len(matched)} rule(s) matched",
        data=EmailTriggerResponse(matched_rule_ids=matched),
    )
