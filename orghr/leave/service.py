"""Leave service layer: policies, request workflow, admin balance corrections.

Business logic:
  - Policy registry CRUD, scoped per organization
  - Request submission (validation only, no balance reservation)
  - pending → approved | rejected | cancelled, approved → cancelled,
    each guarded by a conditional UPDATE on the current status
  - Balance deduction on approval and restoration on cancel-after-approve,
    through the ledger, in the same transaction as the status change
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.audit import create_audit_entry
from orghr.common.constants import LeaveStatus, LeaveTransactionType
from orghr.common.exceptions import (
    ConflictError,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from orghr.common.pagination import PaginationMeta
from orghr.leave.ledger import BalanceLedger
from orghr.leave.models import LeaveBalance, LeavePolicy, LeaveRequest
from orghr.leave.schemas import (
    LeaveBalanceOut,
    LeavePolicyBrief,
    LeavePolicyCreate,
    LeavePolicyOut,
    LeavePolicyUpdate,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTransactionOut,
)
from orghr.notifications.service import (
    notify_balance_adjusted,
    notify_leave_decision,
    notify_leave_request,
)
from orghr.organizations.models import Employee
from orghr.organizations.schemas import EmployeeBrief
from orghr.organizations.service import OrganizationService

logger = logging.getLogger(__name__)

# Allowed source states for each target state
_TRANSITIONS: dict[LeaveStatus, tuple[LeaveStatus, ...]] = {
    LeaveStatus.approved: (LeaveStatus.pending,),
    LeaveStatus.rejected: (LeaveStatus.pending,),
    LeaveStatus.cancelled: (LeaveStatus.pending, LeaveStatus.approved),
}


def count_leave_days(start_date: date, end_date: date) -> Decimal:
    """Inclusive calendar-day count between two dates."""
    return Decimal((end_date - start_date).days + 1)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: policies, requests, approvals, corrections."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
        policy_id: uuid.UUID,
    ) -> LeavePolicy:
        result = await db.execute(
            select(LeavePolicy).where(
                LeavePolicy.id == policy_id,
                LeavePolicy.organization_id == organization_id,
            )
        )
        policy = result.scalars().first()
        if policy is None:
            raise NotFoundException("LeavePolicy", str(policy_id))
        return policy

    @staticmethod
    async def _get_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        employee_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """Load a request of this organization (and employee, if given) or 404."""
        query = select(LeaveRequest).where(
            LeaveRequest.id == request_id,
            LeaveRequest.organization_id == organization_id,
        )
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)

        result = await db.execute(query)
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _ensure_code_free(
        db: AsyncSession,
        organization_id: uuid.UUID,
        code: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeavePolicy.id).where(
            LeavePolicy.organization_id == organization_id,
            func.upper(LeavePolicy.code) == code.upper(),
        )
        if exclude_id is not None:
            query = query.where(LeavePolicy.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("code", code)

    @staticmethod
    async def _transition(
        db: AsyncSession,
        leave_req: LeaveRequest,
        target: LeaveStatus,
        values: dict[str, Any],
    ) -> LeaveStatus:
        """Move *leave_req* to *target* with a single conditional UPDATE.

        Returns the status it moved from. A concurrent writer that got there
        first makes the UPDATE match nothing, which surfaces as
        InvalidTransitionException.
        """
        source = leave_req.status
        if source not in _TRANSITIONS[target]:
            raise InvalidTransitionException("LeaveRequest", source, target)

        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave_req.id,
                LeaveRequest.status == source,
            )
            .values(status=target, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.refresh(leave_req, ["status"])
            logger.warning(
                "Lost race moving leave request %s to %s (now %s)",
                leave_req.id, target.value, leave_req.status.value,
            )
            raise InvalidTransitionException("LeaveRequest", leave_req.status, target)

        await db.refresh(
            leave_req,
            ["status", "updated_at", "reviewed_by", "reviewed_at", "review_notes", "cancelled_at"],
        )
        logger.info(
            "Leave request %s: %s -> %s", leave_req.id, source.value, target.value,
        )
        return source

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
        policy: Optional[LeavePolicy] = None,
        available_balance: Optional[Decimal] = None,
    ) -> LeaveRequestOut:
        """Build LeaveRequestOut from ORM, optionally enriching."""
        out = LeaveRequestOut.model_validate(req)
        if employee is not None:
            out.employee = EmployeeBrief.model_validate(employee)
        if policy is not None:
            out.policy = LeavePolicyBrief.model_validate(policy)
        out.available_balance = available_balance
        return out

    # ─────────────────────────────────────────────────────────────────
    # Policies
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_policies(
        db: AsyncSession,
        organization_id: uuid.UUID,
        *,
        is_active: Optional[bool] = None,
    ) -> list[LeavePolicyOut]:
        query = (
            select(LeavePolicy)
            .where(LeavePolicy.organization_id == organization_id)
            .order_by(LeavePolicy.code)
        )
        if is_active is not None:
            query = query.where(LeavePolicy.is_active.is_(is_active))

        result = await db.execute(query)
        return [LeavePolicyOut.model_validate(p) for p in result.scalars().all()]

    @staticmethod
    async def get_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
        policy_id: uuid.UUID,
    ) -> LeavePolicyOut:
        policy = await LeaveService._get_policy(db, organization_id, policy_id)
        return LeavePolicyOut.model_validate(policy)

    @staticmethod
    async def create_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: LeavePolicyCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeavePolicyOut:
        """Add a policy. Codes are unique per organization, case-insensitively."""
        code = data.code.strip().upper()
        await LeaveService._ensure_code_free(db, organization_id, code)

        values = data.model_dump()
        values["code"] = code
        policy = LeavePolicy(organization_id=organization_id, **values)
        db.add(policy)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_policy",
            entity_id=policy.id,
            organization_id=organization_id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json") | {"code": code},
        )
        logger.info("Created leave policy %s in organization %s", code, organization_id)
        return LeavePolicyOut.model_validate(policy)

    @staticmethod
    async def update_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
        policy_id: uuid.UUID,
        data: LeavePolicyUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeavePolicyOut:
        """Patch a policy. Deactivating hides it from new requests only."""
        policy = await LeaveService._get_policy(db, organization_id, policy_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("code") is not None:
            changes["code"] = changes["code"].strip().upper()
            await LeaveService._ensure_code_free(
                db, organization_id, changes["code"], exclude_id=policy.id,
            )

        effective_from = changes.get("effective_from", policy.effective_from)
        effective_to = changes.get("effective_to", policy.effective_to)
        if effective_from and effective_to and effective_to < effective_from:
            raise ValidationException(
                {"effective_to": ["effective_to must be on or after effective_from."]}
            )

        old_values = LeavePolicyOut.model_validate(policy).model_dump(
            mode="json", include=set(changes),
        )
        for key, value in changes.items():
            if value is None and key not in ("effective_from", "effective_to"):
                continue
            setattr(policy, key, value)
        policy.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_policy",
            entity_id=policy.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=LeavePolicyOut.model_validate(policy).model_dump(
                mode="json", include=set(changes),
            ),
        )
        return LeavePolicyOut.model_validate(policy)

    @staticmethod
    async def delete_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
        policy_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete an unused policy. Referenced policies must be deactivated instead."""
        policy = await LeaveService._get_policy(db, organization_id, policy_id)

        for model in (LeaveBalance, LeaveRequest):
            in_use = await db.execute(
                select(model.id).where(model.policy_id == policy.id).limit(1)
            )
            if in_use.first() is not None:
                raise ConflictError(
                    "policy_id",
                    policy.id,
                    detail=(
                        f"Leave policy '{policy.code}' is referenced by existing "
                        "balances or requests; deactivate it instead."
                    ),
                )

        await create_audit_entry(
            db,
            action="delete",
            entity_type="leave_policy",
            entity_id=policy.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"code": policy.code, "display_name": policy.display_name},
        )
        await db.delete(policy)
        await db.flush()

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequestOut:
        """Create a pending request.

        Checks dates, policy state and overlap. The balance is read for
        display only; nothing is reserved until approval.
        """
        if data.end_date < data.start_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )
        if data.start_date.year != data.end_date.year:
            raise ValidationException(
                {"end_date": [
                    "Leave cannot span calendar years; submit one request per year."
                ]}
            )

        employee = await OrganizationService.get_employee(db, organization_id, employee_id)
        policy = await LeaveService._get_policy(db, organization_id, data.policy_id)

        if not policy.is_active:
            raise ValidationException(
                {"policy_id": [f"Leave policy '{policy.code}' is not active."]}
            )
        if (policy.effective_from and data.start_date < policy.effective_from) or (
            policy.effective_to and data.end_date > policy.effective_to
        ):
            raise ValidationException(
                {"policy_id": [
                    f"Leave policy '{policy.code}' is not in effect for the selected dates."
                ]}
            )

        # ── Overlap with live requests ──────────────────────────────
        overlap = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap.scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "A pending or approved leave request already overlaps these dates."
                ]}
            )

        total_days = count_leave_days(data.start_date, data.end_date)
        balance = await BalanceLedger.get_balance(
            db, organization_id, employee_id, policy.id, data.start_date.year,
        )

        leave_request = LeaveRequest(
            organization_id=organization_id,
            employee_id=employee_id,
            policy_id=policy.id,
            leave_type=policy.code,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            reason=data.reason,
            status=LeaveStatus.pending,
        )
        db.add(leave_request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            organization_id=organization_id,
            actor_id=actor_id,
            new_values={
                "leave_type": policy.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": str(total_days),
                "status": LeaveStatus.pending.value,
            },
        )
        await notify_leave_request(db, leave_request, employee.full_name)

        logger.info(
            "Leave request %s submitted: employee %s, %s x%s",
            leave_request.id, employee_id, policy.code, total_days,
        )
        return LeaveService._build_request_response(
            leave_request,
            employee=employee,
            policy=policy,
            available_balance=balance.available,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject / Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request and charge its days to ``used``.

        The ledger write runs first and refuses to go negative (unless the
        policy allows it), so a shortfall leaves the request pending.
        """
        leave_req = await LeaveService._get_request(db, organization_id, request_id)
        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException(
                "LeaveRequest", leave_req.status, LeaveStatus.approved,
            )
        policy = await LeaveService._get_policy(db, organization_id, leave_req.policy_id)

        await BalanceLedger.apply_delta(
            db,
            organization_id,
            leave_req.employee_id,
            leave_req.policy_id,
            leave_req.start_date.year,
            "used",
            leave_req.total_days,
            require_non_negative=not policy.allow_negative_balance,
            transaction_type=LeaveTransactionType.request,
            reference_id=leave_req.id,
            notes=f"Approved {leave_req.leave_type} {leave_req.start_date}..{leave_req.end_date}",
            actor_id=actor_id,
        )

        now = datetime.now(timezone.utc)
        source = await LeaveService._transition(
            db,
            leave_req,
            LeaveStatus.approved,
            {"reviewed_by": actor_id, "reviewed_at": now, "review_notes": notes},
        )

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave_req.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"status": source.value},
            new_values={"status": LeaveStatus.approved.value, "notes": notes},
        )
        await notify_leave_decision(db, leave_req)

        return LeaveService._build_request_response(leave_req, policy=policy)

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Reject a pending request. No balance effect."""
        leave_req = await LeaveService._get_request(db, organization_id, request_id)

        now = datetime.now(timezone.utc)
        source = await LeaveService._transition(
            db,
            leave_req,
            LeaveStatus.rejected,
            {"reviewed_by": actor_id, "reviewed_at": now, "review_notes": notes},
        )

        await create_audit_entry(
            db,
            action="reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"status": source.value},
            new_values={"status": LeaveStatus.rejected.value, "notes": notes},
        )
        await notify_leave_decision(db, leave_req)

        return LeaveService._build_request_response(leave_req)

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Cancel a pending or approved request.

        With *employee_id* set, only that employee's requests are visible.
        Cancelling an approved request gives back exactly the days charged.
        """
        leave_req = await LeaveService._get_request(
            db, organization_id, request_id, employee_id=employee_id,
        )

        now = datetime.now(timezone.utc)
        source = await LeaveService._transition(
            db,
            leave_req,
            LeaveStatus.cancelled,
            {"cancelled_at": now, "review_notes": notes},
        )

        if source == LeaveStatus.approved:
            await BalanceLedger.apply_delta(
                db,
                organization_id,
                leave_req.employee_id,
                leave_req.policy_id,
                leave_req.start_date.year,
                "used",
                -leave_req.total_days,
                transaction_type=LeaveTransactionType.cancellation,
                reference_id=leave_req.id,
                notes=f"Cancelled {leave_req.leave_type} {leave_req.start_date}..{leave_req.end_date}",
                actor_id=actor_id,
            )

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"status": source.value},
            new_values={"status": LeaveStatus.cancelled.value, "notes": notes},
        )
        await notify_leave_decision(db, leave_req)

        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        employee_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService._get_request(
            db, organization_id, request_id, employee_id=employee_id,
        )
        return LeaveService._build_request_response(leave_req)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        organization_id: uuid.UUID,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        policy_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """List requests of an organization, newest first, with filters."""
        query = (
            select(LeaveRequest, Employee)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(LeaveRequest.organization_id == organization_id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)
        )

        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        if policy_id:
            query = query.where(LeaveRequest.policy_id == policy_id)
        if from_date:
            query = query.where(LeaveRequest.end_date >= from_date)
        if to_date:
            query = query.where(LeaveRequest.start_date <= to_date)

        # Count
        count_q = query.with_only_columns(func.count()).order_by(None)
        total = (await db.execute(count_q)).scalar_one()

        # Paginate
        offset = (page - 1) * page_size
        result = await db.execute(query.offset(offset).limit(page_size))

        return {
            "data": [
                LeaveService._build_request_response(req, employee=emp)
                for req, emp in result.all()
            ],
            "meta": PaginationMeta.build(page, page_size, total),
        }

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> list[LeaveRequestOut]:
        """Approval queue, oldest first."""
        result = await db.execute(
            select(LeaveRequest, Employee)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(
                LeaveRequest.organization_id == organization_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .order_by(LeaveRequest.created_at.asc(), LeaveRequest.start_date)
        )
        return [
            LeaveService._build_request_response(req, employee=emp)
            for req, emp in result.all()
        ]

    # ─────────────────────────────────────────────────────────────────
    # Balances (admin corrections)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def adjust_balance(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        amount: Decimal,
        reason: str,
        *,
        year: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalanceOut:
        """Add a signed *amount* to ``adjustment``. May drive the balance negative."""
        target_year = year or datetime.now(timezone.utc).year
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )
        policy = await LeaveService._get_policy(db, organization_id, policy_id)

        before = await BalanceLedger.get_balance(
            db, organization_id, employee_id, policy_id, target_year,
        )
        await BalanceLedger.apply_delta(
            db,
            organization_id,
            employee_id,
            policy_id,
            target_year,
            "adjustment",
            amount,
            transaction_type=LeaveTransactionType.adjustment,
            notes=reason,
            actor_id=actor_id,
        )
        return await LeaveService._after_adjustment(
            db, organization_id, employee_id, policy, target_year,
            before=before, amount=amount, reason=reason, actor_id=actor_id,
        )

    @staticmethod
    async def set_balance_adjustment(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        value: Decimal,
        reason: str,
        *,
        year: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalanceOut:
        """Overwrite ``adjustment`` with *value*. May drive the balance negative."""
        target_year = year or datetime.now(timezone.utc).year
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )
        policy = await LeaveService._get_policy(db, organization_id, policy_id)

        before = await BalanceLedger.get_balance(
            db, organization_id, employee_id, policy_id, target_year,
        )
        await BalanceLedger.set_adjustment(
            db,
            organization_id,
            employee_id,
            policy_id,
            target_year,
            value,
            notes=reason,
            actor_id=actor_id,
        )
        return await LeaveService._after_adjustment(
            db, organization_id, employee_id, policy, target_year,
            before=before, amount=Decimal(value) - before.adjustment,
            reason=reason, actor_id=actor_id,
        )

    @staticmethod
    async def _after_adjustment(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy: LeavePolicy,
        year: int,
        *,
        before: LeaveBalanceOut,
        amount: Decimal,
        reason: str,
        actor_id: Optional[uuid.UUID],
    ) -> LeaveBalanceOut:
        after = await BalanceLedger.get_balance(
            db, organization_id, employee_id, policy.id, year,
        )
        after.policy = LeavePolicyBrief.model_validate(policy)

        await create_audit_entry(
            db,
            action="adjust",
            entity_type="leave_balance",
            entity_id=after.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"adjustment": str(before.adjustment)},
            new_values={
                "adjustment": str(after.adjustment),
                "delta": str(amount),
                "reason": reason,
            },
        )
        balance_row = await db.get(LeaveBalance, after.id)
        await notify_balance_adjusted(db, balance_row, amount, policy.display_name, reason)

        logger.info(
            "Adjusted %s balance of employee %s for %s by %s",
            policy.code, employee_id, year, amount,
        )
        return after

    # ─────────────────────────────────────────────────────────────────
    # Balances (reads)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        """All balances of an employee for *year* (default: current year)."""
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )
        target_year = year or datetime.now(timezone.utc).year
        return await BalanceLedger.list_balances(db, organization_id, employee_id, target_year)

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> LeaveBalanceOut:
        """One balance; all zeros when the employee has no row for that year yet."""
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )
        policy = await LeaveService._get_policy(db, organization_id, policy_id)
        target_year = year or datetime.now(timezone.utc).year

        out = await BalanceLedger.get_balance(
            db, organization_id, employee_id, policy.id, target_year,
        )
        out.policy = LeavePolicyBrief.model_validate(policy)
        return out

    @staticmethod
    async def get_transactions(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        policy_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> list[LeaveTransactionOut]:
        await OrganizationService.get_employee(
            db, organization_id, employee_id, active_only=False,
        )
        return await BalanceLedger.list_transactions(
            db, organization_id, employee_id, policy_id=policy_id, year=year,
        )

    @staticmethod
    async def initialize_balances(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveBalanceOut]:
        """Create the year's rows for every active policy. Safe to repeat."""
        await OrganizationService.get_employee(db, organization_id, employee_id)
        target_year = year or datetime.now(timezone.utc).year

        balances = await BalanceLedger.initialize_balances(
            db, organization_id, employee_id, target_year, actor_id=actor_id,
        )
        await create_audit_entry(
            db,
            action="initialize",
            entity_type="employee",
            entity_id=employee_id,
            organization_id=organization_id,
            actor_id=actor_id,
            new_values={
                "year": target_year,
                "policies": [b.policy.code for b in balances if b.policy],
            },
        )
        return balances
