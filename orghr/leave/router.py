"""Leave router: policies, requests, approvals, balances, ledger history.

All endpoints require authentication. Admin endpoints enforce role checks;
self-service endpoints act on the caller's own employee record.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.dependencies import (
    get_current_user,
    get_organization_id,
    is_admin,
    require_employee,
    require_role,
)
from orghr.auth.models import AppUser
from orghr.common.constants import LeaveStatus, UserRole
from orghr.common.exceptions import ForbiddenException
from orghr.common.rate_limit import limiter
from orghr.database import get_db
from orghr.leave.schemas import (
    BalanceAdjustRequest,
    BalanceSetAdjustmentRequest,
    LeaveBalanceOut,
    LeavePolicyCreate,
    LeavePolicyOut,
    LeavePolicyUpdate,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveReviewRequest,
    LeaveTransactionOut,
)
from orghr.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])

_admin = require_role(UserRole.org_admin)


def _own_scope(user: AppUser) -> Optional[uuid.UUID]:
    """Employee filter for endpoints shared by admins and employees."""
    if is_admin(user):
        return None
    if user.employee_id is None:
        raise ForbiddenException(detail="This action requires an employee account.")
    return user.employee_id


# ═════════════════════════════════════════════════════════════════════
# Policies
# ═════════════════════════════════════════════════════════════════════


@router.get("/policies", response_model=list[LeavePolicyOut])
async def list_policies(
    is_active: Optional[bool] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the organization's leave policies, by code. Employees see active ones only."""
    if not is_admin(user):
        is_active = True
    return await LeaveService.list_policies(db, organization_id, is_active=is_active)


@router.post("/policies", response_model=LeavePolicyOut, status_code=201)
async def create_policy(
    body: LeavePolicyCreate,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_policy(db, organization_id, body, actor_id=user.id)


@router.get("/policies/{policy_id}", response_model=LeavePolicyOut)
async def get_policy(
    policy_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_policy(db, organization_id, policy_id)


@router.patch("/policies/{policy_id}", response_model=LeavePolicyOut)
async def update_policy(
    policy_id: uuid.UUID,
    body: LeavePolicyUpdate,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update a policy. Set ``is_active`` to false to retire it."""
    return await LeaveService.update_policy(
        db, organization_id, policy_id, body, actor_id=user.id,
    )


@router.delete("/policies/{policy_id}", status_code=204)
async def delete_policy(
    policy_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a policy nobody has used yet."""
    await LeaveService.delete_policy(db, organization_id, policy_id, actor_id=user.id)


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("20/minute")
async def submit_request(
    request: Request,
    body: LeaveRequestCreate,
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request for the caller. Days are charged on approval."""
    return await LeaveService.submit_request(
        db, user.organization_id, user.employee_id, body, actor_id=user.id,
    )


# ── GET /requests/my ────────────────────────────────────────────────

@router.get("/requests/my")
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    policy_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own leave requests, newest first."""
    return await LeaveService.list_requests(
        db,
        user.organization_id,
        employee_id=user.employee_id,
        status=status,
        policy_id=policy_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


# ── GET /requests/pending ───────────────────────────────────────────
# Registered before /requests/{request_id} so the literal path wins.

@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_requests(
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approval queue, oldest first."""
    return await LeaveService.list_pending(db, organization_id)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests")
async def list_requests(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    policy_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """All leave requests of the organization with filters and pagination."""
    return await LeaveService.list_requests(
        db,
        organization_id,
        employee_id=employee_id,
        status=status,
        policy_id=policy_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins see any request of the organization; employees only their own."""
    return await LeaveService.get_request(
        db,
        organization_id,
        request_id,
        employee_id=_own_scope(user),
    )


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_request(
    request_id: uuid.UUID,
    body: LeaveReviewRequest = LeaveReviewRequest(),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending request. Deducts from balance."""
    return await LeaveService.approve_request(
        db, organization_id, request_id, actor_id=user.id, notes=body.notes,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveReviewRequest = LeaveReviewRequest(),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending request."""
    return await LeaveService.reject_request(
        db, organization_id, request_id, actor_id=user.id, notes=body.notes,
    )


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    body: LeaveReviewRequest = LeaveReviewRequest(),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or approved request. Restores days if it was approved."""
    return await LeaveService.cancel_request(
        db,
        organization_id,
        request_id,
        actor_id=user.id,
        employee_id=_own_scope(user),
        notes=body.notes,
    )


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


@router.get("/balances/my", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balances for a year."""
    return await LeaveService.get_balances(
        db, user.organization_id, user.employee_id, year,
    )


@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balances(db, organization_id, employee_id, year)


@router.get("/balances/{employee_id}/{policy_id}", response_model=LeaveBalanceOut)
async def employee_policy_balance(
    employee_id: uuid.UUID,
    policy_id: uuid.UUID,
    year: Optional[int] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """One balance. Returns zeros (``id`` null) when no row exists yet."""
    return await LeaveService.get_balance(
        db, organization_id, employee_id, policy_id, year,
    )


@router.post("/balances/{employee_id}/initialize", response_model=list[LeaveBalanceOut])
async def initialize_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create the year's balance rows for every active policy."""
    return await LeaveService.initialize_balances(
        db, organization_id, employee_id, year, actor_id=user.id,
    )


@router.post("/balances/{employee_id}/adjust", response_model=LeaveBalanceOut)
async def adjust_balance(
    employee_id: uuid.UUID,
    body: BalanceAdjustRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Credit or debit a balance by a signed amount."""
    return await LeaveService.adjust_balance(
        db,
        organization_id,
        employee_id,
        body.policy_id,
        body.amount,
        body.reason,
        year=body.year,
        actor_id=user.id,
    )


@router.put("/balances/{employee_id}/adjustment", response_model=LeaveBalanceOut)
async def set_balance_adjustment(
    employee_id: uuid.UUID,
    body: BalanceSetAdjustmentRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Overwrite the adjustment component of a balance."""
    return await LeaveService.set_balance_adjustment(
        db,
        organization_id,
        employee_id,
        body.policy_id,
        body.value,
        body.reason,
        year=body.year,
        actor_id=user.id,
    )


# ═════════════════════════════════════════════════════════════════════
# Ledger history
# ═════════════════════════════════════════════════════════════════════


@router.get("/transactions/my", response_model=list[LeaveTransactionOut])
async def my_transactions(
    policy_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None),
    user: AppUser = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_transactions(
        db, user.organization_id, user.employee_id, policy_id=policy_id, year=year,
    )


@router.get("/transactions/{employee_id}", response_model=list[LeaveTransactionOut])
async def employee_transactions(
    employee_id: uuid.UUID,
    policy_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None),
    organization_id: uuid.UUID = Depends(get_organization_id),
    user: AppUser = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every ledger write for an employee, newest first."""
    return await LeaveService.get_transactions(
        db, organization_id, employee_id, policy_id=policy_id, year=year,
    )
