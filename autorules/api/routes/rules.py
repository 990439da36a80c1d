"""Rule management API routes."""

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from autorules.api.deps import OwnerDep, PaginationDep, ServiceDep
from autorules.core.errors import RuleNotFoundError
from autorules.engine.service import AutomationService
from autorules.models.rule import Rule, TriggerKind
from autorules.schemas.common import APIResponse, PaginatedResponse
from autorules.schemas.execution import ExecutionResponse
from autorules.schemas.rule import (
    RuleCreate,
    RuleDeleteResponse,
    RuleExecuteRequest,
    RuleResponse,
    RuleStatusUpdate,
    RuleUpdate,
)

router = APIRouter(prefix="/rules", tags=["rules"])


def to_response(rule: Rule, service: AutomationService) -> RuleResponse:
    return RuleResponse(
        **rule.model_dump(),
        next_run_at=service.scheduler.next_fire_time(rule) if rule.enabled else None,
    )


@router.post("", response_model=APIResponse[RuleResponse])
async def create_rule(
    data: RuleCreate,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[RuleResponse]:
    """Create a new rule."""
    rule = await service.create_rule(data.to_rule(owner_id))
    return APIResponse(data=to_response(rule, service))


@router.get("", response_model=PaginatedResponse[RuleResponse])
async def list_rules(
    owner_id: OwnerDep,
    service: ServiceDep,
    pagination: PaginationDep,
    trigger_kind: TriggerKind | None = Query(default=None, description="Filter by trigger kind"),
    enabled: bool | None = Query(default=None, description="Filter by enabled status"),
) -> PaginatedResponse[RuleResponse]:
    """List the caller's rules with optional filtering."""
    rules = await service.list_rules_for_owner(owner_id)

    if trigger_kind is not None:
        rules = [r for r in rules if r.trigger.kind == trigger_kind]
    if enabled is not None:
        rules = [r for r in rules if r.enabled == enabled]

    return PaginatedResponse(
        data=[to_response(r, service) for r in pagination.slice(rules)],
        total=len(rules),
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/{rule_id}", response_model=APIResponse[RuleResponse])
async def get_rule(
    rule_id: str,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[RuleResponse]:
    """Get a single rule by ID."""
    rule = await service.get_rule(rule_id, owner_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=to_response(rule, service))


@router.patch("/{rule_id}", response_model=APIResponse[RuleResponse])
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[RuleResponse]:
    """Partially update an existing rule."""
    changes = data.model_dump(exclude_unset=True)
    try:
        rule = await service.update_rule(rule_id, owner_id, changes)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )

    return APIResponse(data=to_response(rule, service))


@router.delete("/{rule_id}", response_model=APIResponse[RuleDeleteResponse])
async def delete_rule(
    rule_id: str,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[RuleDeleteResponse]:
    """Delete a rule."""
    try:
        outcome = await service.delete_rule(rule_id, owner_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(
        message=f"Rule {rule_id} deleted",
        data=RuleDeleteResponse(rule_id=rule_id, store_error=outcome.store_error),
    )


@router.patch("/{rule_id}/status", response_model=APIResponse[RuleResponse])
async def update_rule_status(
    rule_id: str,
    data: RuleStatusUpdate,
    owner_id: OwnerDep,
    service: ServiceDep,
) -> APIResponse[RuleResponse]:
    """Enable or disable a rule."""
    try:
        rule = await service.toggle_rule(rule_id, owner_id, data.enabled)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=to_response(rule, service))


@router.post("/{rule_id}/execute", response_model=APIResponse[ExecutionResponse])
async def execute_rule(
    rule_id: str,
    owner_id: OwnerDep,
    service: ServiceDep,
    data: RuleExecuteRequest | None = None,
) -> APIResponse[ExecutionResponse]:
    """Run a rule now and return its execution record.

    A missing or disabled rule is not an HTTP error; the response carries
    ``success=false`` instead.
    """
    result = await service.execute_rule(
        rule_id,
        trigger_data=data.trigger_data if data else None,
        owner_id=owner_id,
    )
    return APIResponse(
        message=result.message,
        data=ExecutionResponse(
            success=result.success,
            message=result.message,
            execution_log=result.execution_log,
        ),
    )
