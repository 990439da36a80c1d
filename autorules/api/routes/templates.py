"""Rule template API routes."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from autorules.api.deps import OwnerDep, ServiceDep
from autorules.api.routes.rules import to_response
from autorules.core.errors import TemplateNotFoundError
from autorules.schemas.common import APIResponse
from autorules.schemas.rule import RuleResponse, TemplateInstantiate, TemplateResponse

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=APIResponse[list[TemplateResponse]])
async def list_templates(service: ServiceDep) -> APIResponse[list[TemplateResponse]]:
    """List the built-in rule templates."""
    return APIResponse(
        data=[TemplateResponse(**template.to_dict()) for template in service.list_templates()],
    )


@router.post("/{template_id}", response_model=APIResponse[RuleResponse])
async def create_from_template(
    template_id: str,
    owner_id: OwnerDep,
    service: ServiceDep,
    data: TemplateInstantiate | None = None,
) -> APIResponse[RuleResponse]:
    """Create a rule for the caller from a template."""
    overrides = data.model_dump(exclude_none=True) if data else None
    try:
        rule = await service.create_rule_from_template(owner_id, template_id, overrides)
    except TemplateNotFoundError:
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )

    return APIResponse(data=to_response(rule, service))
