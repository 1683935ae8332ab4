"""FastAPI authorization endpoints.

GET  /v1/workspaces/{workspace_id}/authz/settings                 — normalized settings
PUT  /v1/workspaces/{workspace_id}/authz/settings/{setting_type}  — guarded settings write
GET  /v1/workspaces/{workspace_id}/authz/roles/{principal_id}     — effective workspace role
POST /v1/workspaces/{workspace_id}/authz/decisions                — decision (always 200)
POST /v1/workspaces/{workspace_id}/authz/enforce                  — decision or 403
POST /v1/workspaces/{workspace_id}/authz/boards/{board_id}/deletion-plan

Missing workspace/board -> 404; denied -> 403 with the decision's reason.
"""

from functools import lru_cache
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.authz.cache import TTLCache
from src.authz.errors import ConfirmationMismatch, InvalidSettingUpdate, ResourceNotFound
from src.authz.models import PermissionDecision
from src.authz.service import AuthorizationService
from src.authz.stores import AuthzStore, CachedAuthzStore, InMemoryAuthzStore
from src.config.settings import Settings, get_settings

router = APIRouter(prefix="/v1/workspaces/{workspace_id}/authz", tags=["authz"])

# ---------------------------------------------------------------------------
# In-memory store (replaced by a database-backed AuthzStore in production)
# ---------------------------------------------------------------------------

_store = InMemoryAuthzStore()


def get_authz_store() -> AuthzStore:
    return _store


@lru_cache
def get_row_cache() -> TTLCache:
    return TTLCache(default_ttl=get_settings().CACHE_DEFAULT_TTL_SECONDS)


def get_authz_service(
    store: AuthzStore = Depends(get_authz_store),
    cache: TTLCache = Depends(get_row_cache),
    settings: Settings = Depends(get_settings),
) -> AuthorizationService:
    cached = CachedAuthzStore(
        store, cache, boards_ttl=settings.CACHE_WORKSPACE_BOARDS_TTL_SECONDS,
    )
    return AuthorizationService(cached)


def raise_for_decision(decision: PermissionDecision) -> None:
    """Turn a deny into HTTP 403 carrying the decision's own reason."""
    if not decision.allowed:
        raise HTTPException(status_code=403, detail=decision.reason)


def _not_found(exc: ResourceNotFound) -> HTTPException:
    return HTTPException(status_code=404, detail=exc.detail)


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class DiagnosticResponse(BaseModel):
    setting_type: str
    reason: str


class SettingsResponse(BaseModel):
    workspace_id: str
    membership_restriction: str
    board_creation: str
    board_deletion: str
    diagnostics: list[DiagnosticResponse]


class UpdateSettingRequest(BaseModel):
    principal_id: UUID
    value: Any


class UpdateSettingResponse(BaseModel):
    success: bool
    setting_type: str


class RoleResponse(BaseModel):
    workspace_id: str
    principal_id: str
    role: str


class DecisionRequest(BaseModel):
    principal_id: UUID
    action: str
    board_id: UUID | None = None
    target_id: UUID | None = None
    author_id: UUID | None = None
    new_role: str | None = None


class DecisionResponse(BaseModel):
    action: str
    allowed: bool
    reason: str
    effective_role: str


class DeletionPlanRequest(BaseModel):
    principal_id: UUID
    confirmation_name: str | None = None


class DeletionStepResponse(BaseModel):
    table: str
    column: str
    value: str
    through: str | None = None


class DeletionPlanResponse(BaseModel):
    resource: str
    resource_id: str
    steps: list[DeletionStepResponse]


def _decision_response(decision: PermissionDecision) -> DecisionResponse:
    return DecisionResponse(
        action=decision.action,
        allowed=decision.allowed,
        reason=decision.reason,
        effective_role=decision.effective_role.value,
    )


def _decide(
    service: AuthorizationService, workspace_id: UUID, body: DecisionRequest,
) -> PermissionDecision:
    try:
        return service.decide(
            body.principal_id,
            workspace_id,
            body.action,
            board_id=body.board_id,
            target_id=body.target_id,
            author_id=body.author_id,
            new_role=body.new_role,
        )
    except ResourceNotFound as exc:
        raise _not_found(exc) from exc


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/settings", response_model=SettingsResponse)
async def get_workspace_settings(
    workspace_id: UUID,
    service: AuthorizationService = Depends(get_authz_service),
) -> SettingsResponse:
    """Normalized workspace settings plus rows that could not be used."""
    try:
        resolution = service.settings_resolution(workspace_id)
    except ResourceNotFound as exc:
        raise _not_found(exc) from exc

    settings = resolution.settings
    return SettingsResponse(
        workspace_id=str(workspace_id),
        membership_restriction=settings.membership_restriction,
        board_creation=settings.board_creation,
        board_deletion=settings.board_deletion,
        diagnostics=[
            DiagnosticResponse(setting_type=d.setting_type, reason=d.reason)
            for d in resolution.diagnostics
        ],
    )


@router.put("/settings/{setting_type}", response_model=UpdateSettingResponse)
async def update_workspace_setting(
    workspace_id: UUID,
    setting_type: str,
    body: UpdateSettingRequest,
    service: AuthorizationService = Depends(get_authz_service),
) -> UpdateSettingResponse:
    """Write one setting; admins and the owner only."""
    try:
        decision = service.update_setting(body.principal_id, workspace_id, setting_type, body.value)
    except ResourceNotFound as exc:
        raise _not_found(exc) from exc
    except InvalidSettingUpdate as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    raise_for_decision(decision)
    return UpdateSettingResponse(success=True, setting_type=setting_type)


@router.get("/roles/{principal_id}", response_model=RoleResponse)
async def get_workspace_role(
    workspace_id: UUID,
    principal_id: UUID,
    service: AuthorizationService = Depends(get_authz_service),
) -> RoleResponse:
    try:
        role = service.workspace_role(principal_id, workspace_id)
    except ResourceNotFound as exc:
        raise _not_found(exc) from exc
    return RoleResponse(
        workspace_id=str(workspace_id), principal_id=str(principal_id), role=role.value,
    )


@router.post("/decisions", response_model=DecisionResponse)
async def evaluate_decision(
    workspace_id: UUID,
    body: DecisionRequest,
    service: AuthorizationService = Depends(get_authz_service),
) -> DecisionResponse:
    """Evaluate an action and report the decision, allowed or not."""
    return _decision_response(_decide(service, workspace_id, body))


@router.post("/enforce", response_model=DecisionResponse)
async def enforce_decision(
    workspace_id: UUID,
    body: DecisionRequest,
    service: AuthorizationService = Depends(get_authz_service),
) -> DecisionResponse:
    """Evaluate an action; a deny becomes 403 with the specific reason."""
    decision = _decide(service, workspace_id, body)
    raise_for_decision(decision)
    return _decision_response(decision)


@router.post("/boards/{board_id}/deletion-plan", response_model=DeletionPlanResponse)
async def board_deletion_plan(
    workspace_id: UUID,
    board_id: UUID,
    body: DeletionPlanRequest,
    service: AuthorizationService = Depends(get_authz_service),
) -> DeletionPlanResponse:
    """Check board deletion and return the ordered cascade."""
    try:
        decision, plan = service.board_deletion(
            body.principal_id,
            board_id,
            body.confirmation_name,
            workspace_id=workspace_id,
        )
    except ResourceNotFound as exc:
        raise _not_found(exc) from exc
    except ConfirmationMismatch as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    raise_for_decision(decision)
    if plan is None:
        raise HTTPException(status_code=500, detail="Deletion plan missing for allowed decision")
    return DeletionPlanResponse(
        resource=plan.resource,
        resource_id=str(plan.resource_id),
        steps=[
            DeletionStepResponse(
                table=step.table,
                column=step.column,
                value=str(step.value),
                through=step.through,
            )
            for step in plan.steps
        ],
    )
