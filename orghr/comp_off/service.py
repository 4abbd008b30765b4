"""Comp-off service layer: grant, apply to leave balance, listings.

A grant starts unapplied. Applying it is one-way: the ``is_applied`` flag
flips through a conditional UPDATE and the grant's days are added to the
``adjustment`` component of the employee's comp-off balance, both in the
caller's transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.comp_off.models import CompOffGrant
from orghr.comp_off.schemas import CompOffApplyOut, CompOffGrantCreate, CompOffGrantOut
from orghr.common.audit import create_audit_entry
from orghr.common.constants import LeaveTransactionType
from orghr.common.exceptions import (
    AlreadyAppliedException,
    NotFoundException,
    ValidationException,
)
from orghr.common.pagination import PaginationMeta
from orghr.config import settings
from orghr.leave.ledger import BalanceLedger
from orghr.leave.models import LeavePolicy
from orghr.leave.schemas import LeavePolicyBrief
from orghr.notifications.service import notify_comp_off
from orghr.organizations.models import Employee
from orghr.organizations.schemas import EmployeeBrief
from orghr.organizations.service import OrganizationService

logger = logging.getLogger(__name__)


class CompOffService:
    """Async comp-off operations."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_grant(
        db: AsyncSession,
        organization_id: uuid.UUID,
        grant_id: uuid.UUID,
    ) -> CompOffGrant:
        result = await db.execute(
            select(CompOffGrant).where(
                CompOffGrant.id == grant_id,
                CompOffGrant.organization_id == organization_id,
            )
        )
        grant = result.scalars().first()
        if grant is None:
            raise NotFoundException("CompOffGrant", str(grant_id))
        return grant

    @staticmethod
    async def _comp_off_policy(
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> LeavePolicy:
        """The organization's active policy that receives comp-off credit."""
        code = settings.COMP_OFF_POLICY_CODE
        result = await db.execute(
            select(LeavePolicy).where(
                LeavePolicy.organization_id == organization_id,
                func.upper(LeavePolicy.code) == code.upper(),
                LeavePolicy.is_active.is_(True),
            )
        )
        policy = result.scalars().first()
        if policy is None:
            raise ValidationException(
                {"policy": [f"No active '{code}' leave policy is configured."]}
            )
        return policy

    @staticmethod
    def _to_out(grant: CompOffGrant, employee: Optional[Employee] = None) -> CompOffGrantOut:
        out = CompOffGrantOut.model_validate(grant)
        if employee is not None:
            out.employee = EmployeeBrief.model_validate(employee)
        return out

    # ── Grant ───────────────────────────────────────────────────────

    @staticmethod
    async def grant(
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: CompOffGrantCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CompOffGrantOut:
        """Record earned comp-off for an active employee. Nothing is credited yet."""
        if data.hours_worked < 0 or data.days_granted < 0:
            raise ValidationException(
                {"days_granted": ["hours_worked and days_granted must be non-negative."]}
            )
        employee = await OrganizationService.get_employee(
            db, organization_id, data.employee_id,
        )

        grant = CompOffGrant(
            organization_id=organization_id,
            employee_id=employee.id,
            work_date=data.work_date,
            hours_worked=data.hours_worked,
            days_granted=data.days_granted,
            source=data.source,
            reason=data.reason,
            granted_by=actor_id,
            is_applied=False,
        )
        db.add(grant)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="comp_off_grant",
            entity_id=grant.id,
            organization_id=organization_id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        await notify_comp_off(db, grant)

        logger.info(
            "Comp-off granted: employee %s, %s day(s) for %s",
            employee.id, data.days_granted, data.work_date,
        )
        return CompOffService._to_out(grant, employee)

    # ── Apply ───────────────────────────────────────────────────────

    @staticmethod
    async def apply(
        db: AsyncSession,
        organization_id: uuid.UUID,
        grant_id: uuid.UUID,
        *,
        year: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CompOffApplyOut:
        """Credit a grant's days to the employee's comp-off balance, once.

        Raises:
            NotFoundException: unknown grant or another organization's.
            AlreadyAppliedException: the grant was credited before, possibly
                by a concurrent call.
            ValidationException: no active comp-off policy.
        """
        grant = await CompOffService._get_grant(db, organization_id, grant_id)
        if grant.is_applied:
            raise AlreadyAppliedException(grant.id)

        policy = await CompOffService._comp_off_policy(db, organization_id)
        now = datetime.now(timezone.utc)
        target_year = year or now.year

        result = await db.execute(
            update(CompOffGrant)
            .where(
                CompOffGrant.id == grant.id,
                CompOffGrant.is_applied.is_(False),
            )
            .values(is_applied=True, applied_at=now, balance_year=target_year)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("Lost race applying comp-off grant %s", grant.id)
            raise AlreadyAppliedException(grant.id)
        await db.refresh(grant, ["is_applied", "applied_at", "balance_year"])

        await BalanceLedger.apply_delta(
            db,
            organization_id,
            grant.employee_id,
            policy.id,
            target_year,
            "adjustment",
            grant.days_granted,
            transaction_type=LeaveTransactionType.comp_off,
            reference_id=grant.id,
            notes=f"Comp-off for {grant.work_date}",
            actor_id=actor_id,
        )
        balance = await BalanceLedger.get_balance(
            db, organization_id, grant.employee_id, policy.id, target_year,
        )
        balance.policy = LeavePolicyBrief.model_validate(policy)

        await create_audit_entry(
            db,
            action="apply",
            entity_type="comp_off_grant",
            entity_id=grant.id,
            organization_id=organization_id,
            actor_id=actor_id,
            old_values={"is_applied": False},
            new_values={
                "is_applied": True,
                "balance_year": target_year,
                "days_granted": str(grant.days_granted),
            },
        )
        await notify_comp_off(db, grant)

        logger.info(
            "Comp-off grant %s applied: +%s %s for %s",
            grant.id, grant.days_granted, policy.code, target_year,
        )
        return CompOffApplyOut(grant=CompOffService._to_out(grant), balance=balance)

    # ── Listings ────────────────────────────────────────────────────

    @staticmethod
    async def list_grants(
        db: AsyncSession,
        organization_id: uuid.UUID,
        *,
        employee_id: Optional[uuid.UUID] = None,
        is_applied: Optional[bool] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """Grants of an organization, newest work date first."""
        query = (
            select(CompOffGrant, Employee)
            .join(Employee, Employee.id == CompOffGrant.employee_id)
            .where(CompOffGrant.organization_id == organization_id)
            .order_by(CompOffGrant.work_date.desc(), CompOffGrant.created_at.desc())
        )
        if employee_id:
            query = query.where(CompOffGrant.employee_id == employee_id)
        if is_applied is not None:
            query = query.where(CompOffGrant.is_applied.is_(is_applied))

        count_q = query.with_only_columns(func.count()).order_by(None)
        total = (await db.execute(count_q)).scalar_one()

        offset = (page - 1) * page_size
        result = await db.execute(query.offset(offset).limit(page_size))

        return {
            "data": [CompOffService._to_out(g, emp) for g, emp in result.all()],
            "meta": PaginationMeta.build(page, page_size, total),
        }

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> list[CompOffGrantOut]:
        """Unapplied grants, oldest work date first."""
        result = await db.execute(
            select(CompOffGrant, Employee)
            .join(Employee, Employee.id == CompOffGrant.employee_id)
            .where(
                CompOffGrant.organization_id == organization_id,
                CompOffGrant.is_applied.is_(False),
            )
            .order_by(CompOffGrant.work_date.asc())
        )
        return [CompOffService._to_out(g, emp) for g, emp in result.all()]

    @staticmethod
    async def list_for_employee(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> list[CompOffGrantOut]:
        result = await db.execute(
            select(CompOffGrant)
            .where(
                CompOffGrant.organization_id == organization_id,
                CompOffGrant.employee_id == employee_id,
            )
            .order_by(CompOffGrant.work_date.desc())
        )
        return [CompOffService._to_out(g) for g in result.scalars().all()]
