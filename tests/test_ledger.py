"""Balance ledger tests: derived balance, lazy rows, non-negative guard,
transaction history, initialisation.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.constants import AccrualMethod, LeaveTransactionType
from orghr.common.exceptions import (
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from orghr.leave.ledger import BalanceLedger, compute_current_balance
from orghr.leave.models import LeaveBalance, LeaveTransaction
from tests.conftest import make_policy

YEAR = 2026


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ═════════════════════════════════════════════════════════════════════
# 1. compute_current_balance: pure logic (no DB)
# ═════════════════════════════════════════════════════════════════════


class TestComputeCurrentBalance:

    def test_identity(self):
        assert compute_current_balance(
            Decimal("12"), Decimal("1.5"), Decimal("3"), Decimal("-0.5"),
        ) == Decimal("10")

    def test_all_zero(self):
        assert compute_current_balance(0, 0, 0, 0) == 0


# ═════════════════════════════════════════════════════════════════════
# 2. Reads
# ═════════════════════════════════════════════════════════════════════


class TestGetBalance:

    async def test_missing_row_is_zero_record(self, db, org, employee, casual_leave):
        """No row yet → {0,0,0,0}, current 0, and nothing is created."""
        bal = await BalanceLedger.get_balance(db, org.id, employee.id, casual_leave.id, YEAR)

        assert bal.id is None
        assert bal.opening_balance == 0
        assert bal.accrued == 0
        assert bal.used == 0
        assert bal.adjustment == 0
        assert bal.current_balance == 0
        assert await _count(db, LeaveBalance) == 0

    async def test_existing_row_reports_components(self, db, org, employee, casual_leave):
        await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("3"),
        )
        bal = await BalanceLedger.get_balance(db, org.id, employee.id, casual_leave.id, YEAR)

        assert bal.id is not None
        assert bal.opening_balance == Decimal("12")
        assert bal.used == Decimal("3")
        assert bal.current_balance == Decimal("9")
        assert bal.available == Decimal("9")


# ═════════════════════════════════════════════════════════════════════
# 3. apply_delta
# ═════════════════════════════════════════════════════════════════════


class TestApplyDelta:

    async def test_lazy_creation_uses_policy_opening(self, db, org, employee, casual_leave):
        new_balance = await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("3"),
            require_non_negative=True,
            transaction_type=LeaveTransactionType.request,
        )
        assert new_balance == Decimal("9")
        assert await _count(db, LeaveBalance) == 1

    async def test_monthly_policy_opens_at_zero(self, db, org, employee):
        earned = await make_policy(
            db, org.id, code="EL", display_name="Earned Leave",
            annual_quota=Decimal("18"), accrual_method=AccrualMethod.monthly,
        )
        new_balance = await BalanceLedger.apply_delta(
            db, org.id, employee.id, earned.id, YEAR, "accrued", Decimal("1.5"),
            transaction_type=LeaveTransactionType.accrual,
        )
        assert new_balance == Decimal("1.5")

        row = (await db.execute(select(LeaveBalance))).scalars().one()
        assert row.opening_balance == 0
        assert row.last_accrued_at is not None

    async def test_insufficient_balance_leaves_row_untouched(self, db, org, employee):
        """Opening 3, approve 5 days with the check on → refused, used stays 0."""
        short = await make_policy(db, org.id, code="SL", annual_quota=Decimal("3"))

        with pytest.raises(InsufficientBalanceException) as exc_info:
            await BalanceLedger.apply_delta(
                db, org.id, employee.id, short.id, YEAR, "used", Decimal("5"),
                require_non_negative=True,
            )
        assert exc_info.value.available == Decimal("3")
        assert exc_info.value.requested == Decimal("5")

        bal = await BalanceLedger.get_balance(db, org.id, employee.id, short.id, YEAR)
        assert bal.used == 0
        assert bal.current_balance == Decimal("3")

    async def test_unchecked_write_may_go_negative(self, db, org, employee, casual_leave):
        new_balance = await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "adjustment", Decimal("-20"),
        )
        assert new_balance == Decimal("-8")

    async def test_exact_zero_is_allowed(self, db, org, employee, casual_leave):
        new_balance = await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("12"),
            require_non_negative=True,
        )
        assert new_balance == 0

    async def test_unknown_field_rejected(self, db, org, employee, casual_leave):
        with pytest.raises(ValidationException):
            await BalanceLedger.apply_delta(
                db, org.id, employee.id, casual_leave.id, YEAR, "opening_balance", Decimal("1"),
            )
        assert await _count(db, LeaveBalance) == 0

    async def test_policy_of_other_org_not_found(self, db, org, other_org, employee):
        foreign = await make_policy(db, other_org.id, code="CL")
        with pytest.raises(NotFoundException):
            await BalanceLedger.apply_delta(
                db, org.id, employee.id, foreign.id, YEAR, "used", Decimal("1"),
            )

    async def test_every_write_is_recorded(self, db, org, employee, casual_leave):
        ref = uuid.uuid4()
        await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("3"),
            transaction_type=LeaveTransactionType.request, reference_id=ref,
        )
        await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("-3"),
            transaction_type=LeaveTransactionType.cancellation, reference_id=ref,
        )

        history = await BalanceLedger.list_transactions(db, org.id, employee.id)
        by_type = {t.transaction_type: t for t in history}

        assert len(history) == 3
        assert by_type[LeaveTransactionType.accrual].field == "opening_balance"
        assert by_type[LeaveTransactionType.accrual].amount == Decimal("12")
        assert by_type[LeaveTransactionType.request].balance_after == Decimal("9")
        assert by_type[LeaveTransactionType.cancellation].balance_after == Decimal("12")
        assert by_type[LeaveTransactionType.request].reference_id == ref


# ═════════════════════════════════════════════════════════════════════
# 4. set_adjustment / hybrid expression
# ═════════════════════════════════════════════════════════════════════


class TestSetAdjustment:

    async def test_sets_absolute_value_and_records_difference(
        self, db, org, employee, casual_leave,
    ):
        await BalanceLedger.set_adjustment(
            db, org.id, employee.id, casual_leave.id, YEAR, Decimal("2"),
        )
        current = await BalanceLedger.set_adjustment(
            db, org.id, employee.id, casual_leave.id, YEAR, Decimal("-1"),
        )
        assert current == Decimal("11")

        amounts = sorted(
            t.amount
            for t in await BalanceLedger.list_transactions(db, org.id, employee.id)
            if t.transaction_type == LeaveTransactionType.adjustment
        )
        assert amounts == [Decimal("-3"), Decimal("2")]

    async def test_current_balance_usable_in_sql(self, db, org, employee, casual_leave):
        await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "adjustment", Decimal("-13"),
        )
        result = await db.execute(
            select(LeaveBalance).where(LeaveBalance.current_balance < 0)
        )
        assert len(result.scalars().all()) == 1


# ═════════════════════════════════════════════════════════════════════
# 5. initialize_balances
# ═════════════════════════════════════════════════════════════════════


class TestInitializeBalances:

    async def test_creates_rows_for_active_policies_only(self, db, org, employee, casual_leave):
        await make_policy(db, org.id, code="OLD", display_name="Retired", is_active=False)
        await make_policy(
            db, org.id, code="EL", display_name="Earned Leave",
            accrual_method=AccrualMethod.monthly,
        )

        balances = await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)

        assert [b.policy.code for b in balances] == ["CL", "EL"]
        assert [b.opening_balance for b in balances] == [Decimal("12"), Decimal("0")]

    async def test_idempotent(self, db, org, employee, casual_leave):
        await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)
        await BalanceLedger.apply_delta(
            db, org.id, employee.id, casual_leave.id, YEAR, "used", Decimal("2"),
        )
        balances = await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)

        assert len(balances) == 1
        assert balances[0].used == Decimal("2")
        assert await _count(db, LeaveBalance) == 1
        # opening + one use; the second initialisation wrote nothing
        assert await _count(db, LeaveTransaction) == 2
