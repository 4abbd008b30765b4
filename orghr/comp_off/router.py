"""Comp-off router: grant, apply, listings."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.dependencies import get_organization_id, require_employee, require_role
from orghr.auth.models import AppUser
from orghr.comp_off.schemas import (
    CompOffApplyOut,
    CompOffApplyRequest,
    CompOffGrantCreate,
    CompOffGrantOut,
)
from orghr.comp_off.service import CompOffService
from orghr.common.constants import UserRole
from orghr.database import get_db

router = APIRouter(prefix="", tags=["comp-off"])

_admin = require_role(UserRole.org_admin)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=CompOffGrantOut, status_code=201)
async def grant_comp_off(
    body: CompOffGrantCreate,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record comp-off earned for overtime or holiday work."""
    return await CompOffService.grant(db, organization_id, body, actor_id=user.id)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_grants(
    employee_id: Optional[uuid.UUID] = Query(None),
    is_applied: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CompOffService.list_grants(
        db,
        organization_id,
        employee_id=employee_id,
        is_applied=is_applied,
        page=page,
        page_size=page_size,
    )


# ── GET /pending ────────────────────────────────────────────────────

@router.get("/pending", response_model=list[CompOffGrantOut])
async def pending_grants(
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Grants not yet credited to a leave balance."""
    return await CompOffService.list_pending(db, organization_id)


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my", response_model=list[CompOffGrantOut])
async def my_grants(
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    return await CompOffService.list_for_employee(
        db, user.organization_id, user.employee_id,
    )


# ── POST /{id}/apply ────────────────────────────────────────────────

@router.post("/{grant_id}/apply", response_model=CompOffApplyOut)
async def apply_comp_off(
    grant_id: uuid.UUID,
    body: CompOffApplyRequest = CompOffApplyRequest(),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Credit the grant to the employee's comp-off balance. Fails if already applied."""
    return await CompOffService.apply(
        db, organization_id, grant_id, year=body.year, actor_id=user.id,
    )
