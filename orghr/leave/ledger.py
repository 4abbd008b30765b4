"""Leave balance ledger.

Balances are stored as four components (opening, accrued, used,
adjustment); the current balance is always derived from them. Every write
goes through :meth:`BalanceLedger.apply_delta`, which locks the balance
row, lazily creates it, optionally refuses to go negative, and appends a
:class:`LeaveTransaction` describing the change.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.constants import (
    LEDGER_DELTA_FIELDS,
    LeaveStatus,
    LeaveTransactionType,
)
from orghr.common.exceptions import (
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from orghr.leave.models import (
    ZERO,
    LeaveBalance,
    LeavePolicy,
    LeaveRequest,
    LeaveTransaction,
    compute_current_balance,
)
from orghr.leave.schemas import LeaveBalanceOut, LeavePolicyBrief, LeaveTransactionOut

logger = logging.getLogger(__name__)

__all__ = ["BalanceLedger", "compute_current_balance"]


class BalanceLedger:
    """Async reads and writes over leave balances, scoped to one organization."""

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
    def _new_balance(
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy: LeavePolicy,
        year: int,
    ) -> LeaveBalance:
        return LeaveBalance(
            organization_id=organization_id,
            employee_id=employee_id,
            policy_id=policy.id,
            year=year,
            opening_balance=policy.opening_entitlement,
            accrued=ZERO,
            used=ZERO,
            adjustment=ZERO,
        )

    @staticmethod
    def _record(
        db: AsyncSession,
        balance: LeaveBalance,
        *,
        transaction_type: LeaveTransactionType,
        field: str,
        amount: Decimal,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTransaction:
        tx = LeaveTransaction(
            organization_id=balance.organization_id,
            employee_id=balance.employee_id,
            balance_id=balance.id,
            policy_id=balance.policy_id,
            transaction_type=transaction_type,
            field=field,
            amount=amount,
            balance_after=balance.current_balance,
            reference_id=reference_id,
            notes=notes,
            created_by=actor_id,
        )
        db.add(tx)
        return tx

    @staticmethod
    async def _lock_or_create(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy: LeavePolicy,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalance:
        """Return the balance row under a row lock, creating it on first use."""
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.organization_id == organization_id,
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.policy_id == policy.id,
                LeaveBalance.year == year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        balance = result.scalars().first()
        if balance is not None:
            return balance

        balance = BalanceLedger._new_balance(organization_id, employee_id, policy, year)
        db.add(balance)
        await db.flush()
        if balance.opening_balance:
            BalanceLedger._record(
                db,
                balance,
                transaction_type=LeaveTransactionType.accrual,
                field="opening_balance",
                amount=balance.opening_balance,
                notes="Opening entitlement",
                actor_id=actor_id,
            )
        logger.info(
            "Created %s balance for employee %s, year %s (opening %s)",
            policy.code, employee_id, year, balance.opening_balance,
        )
        return balance

    @staticmethod
    async def pending_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        year: int,
    ) -> Decimal:
        """Sum total_days of pending requests starting in *year*."""
        result = await db.execute(
            select(func.coalesce(func.sum(LeaveRequest.total_days), 0)).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.policy_id == policy_id,
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        )
        return Decimal(str(result.scalar_one()))

    @staticmethod
    def _to_out(
        balance: LeaveBalance,
        policy: Optional[LeavePolicy] = None,
        pending: Decimal = ZERO,
    ) -> LeaveBalanceOut:
        out = LeaveBalanceOut.model_validate(balance)
        out.pending = pending
        out.available = out.current_balance - pending
        if policy is not None:
            out.policy = LeavePolicyBrief.model_validate(policy)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        year: int,
    ) -> LeaveBalanceOut:
        """Return the balance, or an all-zero record if none exists yet.

        Never raises for a missing row and never creates one.
        """
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.organization_id == organization_id,
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.policy_id == policy_id,
                LeaveBalance.year == year,
            )
        )
        balance = result.scalars().first()
        pending = await BalanceLedger.pending_days(db, employee_id, policy_id, year)
        if balance is not None:
            return BalanceLedger._to_out(balance, pending=pending)

        return LeaveBalanceOut(
            id=None,
            employee_id=employee_id,
            policy_id=policy_id,
            year=year,
            opening_balance=ZERO,
            accrued=ZERO,
            used=ZERO,
            adjustment=ZERO,
            current_balance=ZERO,
            pending=pending,
            available=-pending,
        )

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        """All balances of an employee for *year*, with pending and available."""
        result = await db.execute(
            select(LeaveBalance, LeavePolicy)
            .join(LeavePolicy, LeavePolicy.id == LeaveBalance.policy_id)
            .where(
                LeaveBalance.organization_id == organization_id,
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .order_by(LeavePolicy.code)
        )

        output: list[LeaveBalanceOut] = []
        for balance, policy in result.all():
            pending = await BalanceLedger.pending_days(
                db, employee_id, balance.policy_id, year,
            )
            output.append(BalanceLedger._to_out(balance, policy, pending))
        return output

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        policy_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> list[LeaveTransactionOut]:
        """Ledger history for an employee, newest first."""
        query = (
            select(LeaveTransaction)
            .where(
                LeaveTransaction.organization_id == organization_id,
                LeaveTransaction.employee_id == employee_id,
            )
            .order_by(LeaveTransaction.created_at.desc(), LeaveTransaction.id)
        )
        if policy_id is not None:
            query = query.where(LeaveTransaction.policy_id == policy_id)
        if year is not None:
            query = query.join(
                LeaveBalance, LeaveBalance.id == LeaveTransaction.balance_id,
            ).where(LeaveBalance.year == year)

        result = await db.execute(query)
        return [LeaveTransactionOut.model_validate(t) for t in result.scalars().all()]

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_delta(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        year: int,
        field: str,
        amount: Decimal,
        *,
        require_non_negative: bool = False,
        transaction_type: LeaveTransactionType = LeaveTransactionType.adjustment,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Decimal:
        """Add *amount* to one balance component and return the new current balance.

        Args:
            field: ``accrued``, ``used`` or ``adjustment``.
            amount: Signed delta. ``used`` grows with positive amounts, so
                it lowers the current balance.
            require_non_negative: Refuse the write, leaving the row
                untouched, if the current balance would drop below zero.

        Raises:
            ValidationException: unknown *field*.
            NotFoundException: policy not in *organization_id*.
            InsufficientBalanceException: negative result with the check on.
        """
        if field not in LEDGER_DELTA_FIELDS:
            raise ValidationException(
                {"field": [f"'{field}' is not one of {sorted(LEDGER_DELTA_FIELDS)}."]}
            )
        amount = Decimal(amount)

        policy = await BalanceLedger._get_policy(db, organization_id, policy_id)
        balance = await BalanceLedger._lock_or_create(
            db, organization_id, employee_id, policy, year, actor_id=actor_id,
        )

        current = balance.current_balance
        projected = current - amount if field == "used" else current + amount
        if require_non_negative and projected < 0:
            logger.warning(
                "Refused %s %s on %s balance of employee %s: available %s",
                field, amount, policy.code, employee_id, current,
            )
            raise InsufficientBalanceException(available=current, requested=amount)

        now = datetime.now(timezone.utc)
        setattr(balance, field, getattr(balance, field) + amount)
        balance.updated_at = now
        if field == "accrued":
            balance.last_accrued_at = now

        BalanceLedger._record(
            db,
            balance,
            transaction_type=transaction_type,
            field=field,
            amount=amount,
            reference_id=reference_id,
            notes=notes,
            actor_id=actor_id,
        )
        await db.flush()
        return balance.current_balance

    @staticmethod
    async def set_adjustment(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        policy_id: uuid.UUID,
        year: int,
        value: Decimal,
        *,
        notes: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Decimal:
        """Set ``adjustment`` to an absolute *value*; recorded as the difference."""
        policy = await BalanceLedger._get_policy(db, organization_id, policy_id)
        balance = await BalanceLedger._lock_or_create(
            db, organization_id, employee_id, policy, year, actor_id=actor_id,
        )
        return await BalanceLedger.apply_delta(
            db,
            organization_id,
            employee_id,
            policy_id,
            year,
            "adjustment",
            Decimal(value) - balance.adjustment,
            transaction_type=LeaveTransactionType.adjustment,
            notes=notes,
            actor_id=actor_id,
        )

    @staticmethod
    async def initialize_balances(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveBalanceOut]:
        """Create missing rows for every active policy. Existing rows are untouched."""
        policies = (
            await db.execute(
                select(LeavePolicy).where(
                    LeavePolicy.organization_id == organization_id,
                    LeavePolicy.is_active.is_(True),
                )
            )
        ).scalars().all()

        for policy in policies:
            await BalanceLedger._lock_or_create(
                db, organization_id, employee_id, policy, year, actor_id=actor_id,
            )
        await db.flush()

        return await BalanceLedger.list_balances(db, organization_id, employee_id, year)

