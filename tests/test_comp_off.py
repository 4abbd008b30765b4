"""Comp-off test suite: grant, one-time apply, ledger credit, listings."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from orghr.common.constants import CompOffSource, LeaveTransactionType, NotificationType
from orghr.common.exceptions import (
    AlreadyAppliedException,
    NotFoundException,
    ValidationException,
)
from orghr.comp_off.models import CompOffGrant
from orghr.comp_off.schemas import CompOffGrantCreate
from orghr.comp_off.service import CompOffService
from orghr.leave.ledger import BalanceLedger
from orghr.notifications.models import Notification
from tests.conftest import make_employee


def _this_year() -> int:
    return datetime.now(timezone.utc).year


def _grant_payload(employee_id, *, work_date=date(2026, 1, 26), days=Decimal("1")):
    return CompOffGrantCreate(
        employee_id=employee_id,
        work_date=work_date,
        hours_worked=Decimal("8"),
        days_granted=days,
        source=CompOffSource.holiday_work,
        reason="Worked on Republic Day",
    )


# ═════════════════════════════════════════════════════════════════════
# Grant
# ═════════════════════════════════════════════════════════════════════


class TestGrant:

    async def test_grant_starts_unapplied(self, db, org, employee, employee_user, admin_user):
        grant = await CompOffService.grant(
            db, org.id, _grant_payload(employee.id), actor_id=admin_user.id,
        )
        assert grant.is_applied is False
        assert grant.granted_by == admin_user.id
        assert grant.employee.employee_code == employee.employee_code

        result = await db.execute(
            select(Notification).where(Notification.recipient_id == employee_user.id)
        )
        assert [n.type for n in result.scalars().all()] == [NotificationType.comp_off_granted]

    async def test_negative_days_rejected_by_schema(self, employee):
        with pytest.raises(ValueError):
            _grant_payload(employee.id, days=Decimal("-1"))

    async def test_employee_of_other_org_not_found(self, db, other_org, employee):
        with pytest.raises(NotFoundException):
            await CompOffService.grant(db, other_org.id, _grant_payload(employee.id))


# ═════════════════════════════════════════════════════════════════════
# Apply
# ═════════════════════════════════════════════════════════════════════


class TestApply:

    async def test_apply_credits_adjustment_once(self, db, org, employee, comp_off_policy):
        """daysGranted 1 → adjustment +1; second apply → AlreadyApplied, unchanged."""
        grant = await CompOffService.grant(db, org.id, _grant_payload(employee.id))

        result = await CompOffService.apply(db, org.id, grant.id)
        assert result.grant.is_applied is True
        assert result.grant.balance_year == _this_year()
        assert result.balance.year == _this_year()
        assert result.balance.adjustment == Decimal("1")
        assert result.balance.current_balance == Decimal("1")
        assert result.balance.policy.code == "COMP_OFF"

        with pytest.raises(AlreadyAppliedException):
            await CompOffService.apply(db, org.id, grant.id)

        bal = await BalanceLedger.get_balance(
            db, org.id, employee.id, comp_off_policy.id, _this_year(),
        )
        assert bal.adjustment == Decimal("1")

        history = await BalanceLedger.list_transactions(db, org.id, employee.id)
        assert [t.transaction_type for t in history] == [LeaveTransactionType.comp_off]
        assert history[0].reference_id == grant.id

    async def test_old_work_date_credits_current_year(self, db, org, employee, comp_off_policy):
        """A December grant applied later lands in a year it can still be spent."""
        grant = await CompOffService.grant(
            db, org.id, _grant_payload(employee.id, work_date=date(2020, 12, 28)),
        )
        result = await CompOffService.apply(db, org.id, grant.id)

        assert result.grant.balance_year == _this_year()
        current = await BalanceLedger.get_balance(
            db, org.id, employee.id, comp_off_policy.id, _this_year(),
        )
        assert current.adjustment == Decimal("1")
        stale = await BalanceLedger.get_balance(
            db, org.id, employee.id, comp_off_policy.id, 2020,
        )
        assert stale.id is None

    async def test_explicit_year(self, db, org, employee, comp_off_policy):
        grant = await CompOffService.grant(
            db, org.id, _grant_payload(employee.id, work_date=date(2025, 12, 28)),
        )
        result = await CompOffService.apply(db, org.id, grant.id, year=2026)

        assert result.balance.year == 2026
        assert result.grant.balance_year == 2026

    async def test_concurrent_apply_loses_cleanly(self, db, org, employee, comp_off_policy):
        """Another writer flips the flag after we loaded the grant as unapplied."""
        grant = await CompOffService.grant(db, org.id, _grant_payload(employee.id))
        await db.execute(
            update(CompOffGrant)
            .where(CompOffGrant.id == grant.id)
            .values(is_applied=True)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(AlreadyAppliedException):
            await CompOffService.apply(db, org.id, grant.id)

        bal = await BalanceLedger.get_balance(
            db, org.id, employee.id, comp_off_policy.id, _this_year(),
        )
        assert bal.id is None

    async def test_missing_comp_off_policy(self, db, org, employee, casual_leave):
        grant = await CompOffService.grant(db, org.id, _grant_payload(employee.id))
        with pytest.raises(ValidationException):
            await CompOffService.apply(db, org.id, grant.id)

        row = await db.get(CompOffGrant, grant.id)
        assert row.is_applied is False

    async def test_other_org_grant_not_found(self, db, org, other_org, employee, comp_off_policy):
        grant = await CompOffService.grant(db, org.id, _grant_payload(employee.id))
        with pytest.raises(NotFoundException):
            await CompOffService.apply(db, other_org.id, grant.id)

    async def test_unknown_grant(self, db, org):
        with pytest.raises(NotFoundException):
            await CompOffService.apply(db, org.id, uuid.uuid4())


# ═════════════════════════════════════════════════════════════════════
# Listings
# ═════════════════════════════════════════════════════════════════════


class TestListings:

    async def test_pending_and_filters(self, db, org, employee, comp_off_policy):
        colleague = await make_employee(db, org.id, first_name="Vikram")
        g1 = await CompOffService.grant(db, org.id, _grant_payload(employee.id))
        await CompOffService.grant(
            db, org.id, _grant_payload(colleague.id, work_date=date(2026, 1, 4)),
        )
        await CompOffService.apply(db, org.id, g1.id)

        pending = await CompOffService.list_pending(db, org.id)
        assert [g.employee_id for g in pending] == [colleague.id]

        applied = await CompOffService.list_grants(db, org.id, is_applied=True)
        assert applied["meta"].total == 1
        assert applied["data"][0].id == g1.id

        mine = await CompOffService.list_for_employee(db, org.id, employee.id)
        assert [g.id for g in mine] == [g1.id]
