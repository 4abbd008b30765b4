"""Leave workflow test suite: submission rules, approve / reject / cancel
state machine, balance deduction and restoration, tenant isolation, policy
registry and admin corrections.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.constants import EmployeeStatus, LeaveStatus, NotificationType
from orghr.common.exceptions import (
    ConflictError,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from orghr.leave.ledger import BalanceLedger
from orghr.leave.models import LeaveRequest
from orghr.leave.schemas import LeavePolicyCreate, LeavePolicyUpdate, LeaveRequestCreate
from orghr.leave.service import LeaveService, count_leave_days
from orghr.notifications.models import Notification
from tests.conftest import make_employee, make_policy

YEAR = 2026


def _request(policy_id, start: date, end: date, reason: str = "Family function"):
    return LeaveRequestCreate(policy_id=policy_id, start_date=start, end_date=end, reason=reason)


async def _submit(db, org, employee, policy, start=date(2026, 3, 2), end=date(2026, 3, 4)):
    return await LeaveService.submit_request(
        db, org.id, employee.id, _request(policy.id, start, end),
    )


async def _balance(db, org, employee, policy):
    return await BalanceLedger.get_balance(db, org.id, employee.id, policy.id, YEAR)


# ═════════════════════════════════════════════════════════════════════
# 1. count_leave_days: pure logic (no DB)
# ═════════════════════════════════════════════════════════════════════


class TestCountLeaveDays:

    def test_inclusive_range(self):
        assert count_leave_days(date(2026, 3, 2), date(2026, 3, 4)) == Decimal("3")

    def test_single_day(self):
        assert count_leave_days(date(2026, 3, 2), date(2026, 3, 2)) == Decimal("1")


# ═════════════════════════════════════════════════════════════════════
# 2. Submit
# ═════════════════════════════════════════════════════════════════════


class TestSubmit:

    async def test_creates_pending_without_deducting(self, db, org, employee, casual_leave):
        await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)

        req = await _submit(db, org, employee, casual_leave)

        assert req.status == LeaveStatus.pending
        assert req.total_days == Decimal("3")
        assert req.leave_type == "CL"
        assert req.available_balance == Decimal("12")
        assert req.employee.full_name == "Asha Rao"

        bal = await _balance(db, org, employee, casual_leave)
        assert bal.used == 0
        assert bal.pending == Decimal("3")
        assert bal.available == Decimal("9")

    async def test_end_before_start_rejected(self, db, org, employee, casual_leave):
        with pytest.raises(ValidationException):
            await _submit(db, org, employee, casual_leave, date(2026, 3, 4), date(2026, 3, 2))

    async def test_cross_year_rejected(self, db, org, employee, casual_leave):
        with pytest.raises(ValidationException):
            await _submit(db, org, employee, casual_leave, date(2026, 12, 30), date(2027, 1, 2))

    async def test_inactive_policy_rejected(self, db, org, employee):
        retired = await make_policy(db, org.id, code="OLD", is_active=False)
        with pytest.raises(ValidationException):
            await _submit(db, org, employee, retired)

    async def test_policy_of_other_org_not_found(self, db, org, other_org, employee):
        foreign = await make_policy(db, other_org.id)
        with pytest.raises(NotFoundException):
            await _submit(db, org, employee, foreign)

    async def test_exited_employee_not_found(self, db, org, casual_leave):
        gone = await make_employee(db, org.id, status=EmployeeStatus.exited)
        with pytest.raises(NotFoundException):
            await _submit(db, org, gone, casual_leave)

    async def test_overlap_with_pending_rejected(self, db, org, employee, casual_leave):
        await _submit(db, org, employee, casual_leave)
        with pytest.raises(ValidationException):
            await _submit(db, org, employee, casual_leave, date(2026, 3, 4), date(2026, 3, 6))

    async def test_overlap_with_cancelled_allowed(self, db, org, employee, casual_leave):
        first = await _submit(db, org, employee, casual_leave)
        await LeaveService.cancel_request(db, org.id, first.id)

        second = await _submit(db, org, employee, casual_leave)
        assert second.status == LeaveStatus.pending

    async def test_admins_are_notified(self, db, org, employee, admin_user, casual_leave):
        await _submit(db, org, employee, casual_leave)

        result = await db.execute(
            select(Notification).where(Notification.recipient_id == admin_user.id)
        )
        notes = result.scalars().all()
        assert len(notes) == 1
        assert notes[0].type == NotificationType.leave_request


# ═════════════════════════════════════════════════════════════════════
# 3. Approve / reject / cancel
# ═════════════════════════════════════════════════════════════════════


class TestApprovalWorkflow:

    async def test_approve_then_cancel_restores_exactly(
        self, db, org, employee, admin_user, casual_leave,
    ):
        """CL 12 → approve 3 days → 9 → cancel → 12."""
        req = await _submit(db, org, employee, casual_leave)

        approved = await LeaveService.approve_request(
            db, org.id, req.id, actor_id=admin_user.id, notes="Enjoy",
        )
        assert approved.status == LeaveStatus.approved
        assert approved.reviewed_by == admin_user.id
        assert approved.review_notes == "Enjoy"
        assert (await _balance(db, org, employee, casual_leave)).current_balance == Decimal("9")

        cancelled = await LeaveService.cancel_request(
            db, org.id, req.id, actor_id=admin_user.id,
        )
        assert cancelled.status == LeaveStatus.cancelled
        assert cancelled.cancelled_at is not None

        bal = await _balance(db, org, employee, casual_leave)
        assert bal.used == 0
        assert bal.current_balance == Decimal("12")

    async def test_insufficient_balance_keeps_request_pending(
        self, db, org, employee, admin_user,
    ):
        """Balance 3, request 5 → InsufficientBalance, still pending, used 0."""
        short = await make_policy(db, org.id, code="SL", annual_quota=Decimal("3"))
        await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)
        req = await _submit(db, org, employee, short, date(2026, 4, 6), date(2026, 4, 10))

        with pytest.raises(InsufficientBalanceException):
            await LeaveService.approve_request(db, org.id, req.id, actor_id=admin_user.id)

        row = await db.get(LeaveRequest, req.id)
        assert row.status == LeaveStatus.pending
        bal = await _balance(db, org, employee, short)
        assert bal.used == 0
        assert bal.current_balance == Decimal("3")

    async def test_negative_allowed_by_policy(self, db, org, employee, admin_user):
        lwp = await make_policy(
            db, org.id, code="LWP", annual_quota=Decimal("0"), allow_negative_balance=True,
        )
        req = await _submit(db, org, employee, lwp)

        await LeaveService.approve_request(db, org.id, req.id, actor_id=admin_user.id)
        assert (await _balance(db, org, employee, lwp)).current_balance == Decimal("-3")

    async def test_reject_has_no_balance_effect(self, db, org, employee, admin_user, casual_leave):
        await BalanceLedger.initialize_balances(db, org.id, employee.id, YEAR)
        req = await _submit(db, org, employee, casual_leave)

        rejected = await LeaveService.reject_request(
            db, org.id, req.id, actor_id=admin_user.id, notes="Release week",
        )
        assert rejected.status == LeaveStatus.rejected
        bal = await _balance(db, org, employee, casual_leave)
        assert bal.current_balance == Decimal("12")
        assert bal.pending == 0

    async def test_cancel_pending_has_no_balance_effect(self, db, org, employee, casual_leave):
        req = await _submit(db, org, employee, casual_leave)
        await LeaveService.cancel_request(db, org.id, req.id, employee_id=employee.id)

        bal = await _balance(db, org, employee, casual_leave)
        assert bal.id is None

    @pytest.mark.parametrize(
        "first, second",
        [
            ("approve", "approve"),
            ("approve", "reject"),
            ("reject", "approve"),
            ("reject", "cancel"),
            ("cancel", "cancel"),
            ("cancel", "approve"),
        ],
    )
    async def test_terminal_states_refuse_transitions(
        self, db, org, employee, admin_user, casual_leave, first, second,
    ):
        actions = {
            "approve": LeaveService.approve_request,
            "reject": LeaveService.reject_request,
            "cancel": LeaveService.cancel_request,
        }
        req = await _submit(db, org, employee, casual_leave)
        await actions[first](db, org.id, req.id, actor_id=admin_user.id)

        with pytest.raises(InvalidTransitionException):
            await actions[second](db, org.id, req.id, actor_id=admin_user.id)

    async def test_lost_race_surfaces_invalid_transition(
        self, db, org, employee, admin_user, casual_leave,
    ):
        """Another writer rejects the request after we loaded it as pending."""
        req = await _submit(db, org, employee, casual_leave)
        await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == req.id)
            .values(status=LeaveStatus.rejected)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(InvalidTransitionException) as exc_info:
            await LeaveService.approve_request(db, org.id, req.id, actor_id=admin_user.id)
        assert exc_info.value.current == "rejected"

    async def test_lost_race_leaves_ledger_untouched(
        self, db, org, employee, admin_user, casual_leave,
    ):
        """The ledger write made before the losing UPDATE rolls back with it."""
        org_id, emp_id, policy_id = org.id, employee.id, casual_leave.id
        earlier = await _submit(db, org, employee, casual_leave, date(2026, 1, 5), date(2026, 1, 5))
        await LeaveService.approve_request(db, org_id, earlier.id, actor_id=admin_user.id)
        req = await _submit(db, org, employee, casual_leave)
        req_id = req.id
        await db.commit()

        await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == req_id)
            .values(status=LeaveStatus.rejected)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        with pytest.raises(InvalidTransitionException):
            await LeaveService.approve_request(db, org_id, req_id)
        # get_db rolls the request's transaction back on any exception
        await db.rollback()

        bal = await BalanceLedger.get_balance(db, org_id, emp_id, policy_id, YEAR)
        assert bal.used == Decimal("1")
        history = await BalanceLedger.list_transactions(db, org_id, emp_id)
        assert [t.reference_id for t in history] == [earlier.id]
        status = (await db.execute(
            select(LeaveRequest.status).where(LeaveRequest.id == req_id)
        )).scalar_one()
        assert status == LeaveStatus.rejected

    async def test_deactivated_policy_still_approvable(
        self, db, org, employee, admin_user, casual_leave,
    ):
        req = await _submit(db, org, employee, casual_leave)
        await LeaveService.update_policy(
            db, org.id, casual_leave.id, LeavePolicyUpdate(is_active=False),
        )

        approved = await LeaveService.approve_request(db, org.id, req.id, actor_id=admin_user.id)
        assert approved.status == LeaveStatus.approved

    async def test_used_matches_approved_requests(
        self, db, org, employee, admin_user, casual_leave,
    ):
        r1 = await _submit(db, org, employee, casual_leave, date(2026, 1, 5), date(2026, 1, 6))
        r2 = await _submit(db, org, employee, casual_leave, date(2026, 2, 2), date(2026, 2, 4))
        r3 = await _submit(db, org, employee, casual_leave, date(2026, 5, 4), date(2026, 5, 4))
        for r in (r1, r2, r3):
            await LeaveService.approve_request(db, org.id, r.id, actor_id=admin_user.id)
        await LeaveService.cancel_request(db, org.id, r2.id, actor_id=admin_user.id)

        approved_days = (
            await db.execute(
                select(func.sum(LeaveRequest.total_days)).where(
                    LeaveRequest.employee_id == employee.id,
                    LeaveRequest.status == LeaveStatus.approved,
                )
            )
        ).scalar_one()
        bal = await _balance(db, org, employee, casual_leave)
        assert bal.used == Decimal(str(approved_days)) == Decimal("3")

    async def test_employee_decision_notification(
        self, db, org, employee, employee_user, admin_user, casual_leave,
    ):
        req = await _submit(db, org, employee, casual_leave)
        await LeaveService.reject_request(db, org.id, req.id, actor_id=admin_user.id)

        result = await db.execute(
            select(Notification).where(Notification.recipient_id == employee_user.id)
        )
        assert [n.type for n in result.scalars().all()] == [NotificationType.leave_rejected]

    async def test_cancel_drops_approver_notes(
        self, db, org, employee, employee_user, admin_user, casual_leave,
    ):
        req = await _submit(db, org, employee, casual_leave)
        await LeaveService.approve_request(
            db, org.id, req.id, actor_id=admin_user.id, notes="Enjoy the break",
        )
        cancelled = await LeaveService.cancel_request(
            db, org.id, req.id, employee_id=employee.id,
        )
        assert cancelled.review_notes is None

        result = await db.execute(
            select(Notification).where(
                Notification.recipient_id == employee_user.id,
                Notification.type == NotificationType.leave_cancelled,
            )
        )
        [notice] = result.scalars().all()
        assert "Enjoy the break" not in notice.message


# ═════════════════════════════════════════════════════════════════════
# 4. Tenant isolation / ownership
# ═════════════════════════════════════════════════════════════════════


class TestIsolation:

    async def test_other_org_request_not_found(self, db, org, other_org, employee, casual_leave):
        req = await _submit(db, org, employee, casual_leave)
        with pytest.raises(NotFoundException):
            await LeaveService.approve_request(db, other_org.id, req.id)

    async def test_employee_cannot_cancel_colleague_request(
        self, db, org, employee, casual_leave,
    ):
        colleague = await make_employee(db, org.id, first_name="Vikram")
        req = await _submit(db, org, colleague, casual_leave)

        with pytest.raises(NotFoundException):
            await LeaveService.cancel_request(db, org.id, req.id, employee_id=employee.id)

    async def test_unknown_request_not_found(self, db, org):
        with pytest.raises(NotFoundException):
            await LeaveService.reject_request(db, org.id, uuid.uuid4())


# ═════════════════════════════════════════════════════════════════════
# 5. Policy registry
# ═════════════════════════════════════════════════════════════════════


class TestPolicies:

    async def test_create_normalises_code(self, db: AsyncSession, org):
        policy = await LeaveService.create_policy(
            db, org.id, LeavePolicyCreate(code="pl", display_name="Privilege Leave"),
        )
        assert policy.code == "PL"

    async def test_duplicate_code_conflicts(self, db, org, casual_leave):
        with pytest.raises(ConflictError):
            await LeaveService.create_policy(
                db, org.id, LeavePolicyCreate(code="cl", display_name="Again"),
            )

    async def test_same_code_in_other_org_is_fine(self, db, other_org, casual_leave):
        policy = await LeaveService.create_policy(
            db, other_org.id, LeavePolicyCreate(code="CL", display_name="Casual Leave"),
        )
        assert policy.organization_id == other_org.id

    async def test_list_filters_and_orders_by_code(self, db, org, casual_leave):
        await make_policy(db, org.id, code="AL", display_name="Annual")
        await make_policy(db, org.id, code="ZZ", display_name="Retired", is_active=False)

        active = await LeaveService.list_policies(db, org.id, is_active=True)
        everything = await LeaveService.list_policies(db, org.id)

        assert [p.code for p in active] == ["AL", "CL"]
        assert [p.code for p in everything] == ["AL", "CL", "ZZ"]

    async def test_delete_referenced_policy_conflicts(self, db, org, employee, casual_leave):
        await _submit(db, org, employee, casual_leave)
        with pytest.raises(ConflictError):
            await LeaveService.delete_policy(db, org.id, casual_leave.id)

    async def test_delete_unused_policy(self, db, org, casual_leave):
        await LeaveService.delete_policy(db, org.id, casual_leave.id)
        with pytest.raises(NotFoundException):
            await LeaveService.get_policy(db, org.id, casual_leave.id)


# ═════════════════════════════════════════════════════════════════════
# 6. Admin corrections
# ═════════════════════════════════════════════════════════════════════


class TestAdminAdjustments:

    async def test_adjust_may_go_negative_and_notifies(
        self, db, org, employee, employee_user, admin_user, casual_leave,
    ):
        bal = await LeaveService.adjust_balance(
            db, org.id, employee.id, casual_leave.id, Decimal("-15"), "Over-credited last year",
            year=YEAR, actor_id=admin_user.id,
        )
        assert bal.adjustment == Decimal("-15")
        assert bal.current_balance == Decimal("-3")
        assert bal.policy.code == "CL"

        result = await db.execute(
            select(Notification).where(Notification.recipient_id == employee_user.id)
        )
        assert [n.type for n in result.scalars().all()] == [NotificationType.balance_adjusted]

    async def test_set_adjustment_overwrites(self, db, org, employee, admin_user, casual_leave):
        await LeaveService.adjust_balance(
            db, org.id, employee.id, casual_leave.id, Decimal("4"), "Bonus days", year=YEAR,
        )
        bal = await LeaveService.set_balance_adjustment(
            db, org.id, employee.id, casual_leave.id, Decimal("1"), "Correction", year=YEAR,
        )
        assert bal.adjustment == Decimal("1")
        assert bal.current_balance == Decimal("13")

    async def test_adjust_for_other_org_employee_not_found(
        self, db, other_org, employee, casual_leave,
    ):
        with pytest.raises(NotFoundException):
            await LeaveService.adjust_balance(
                db, other_org.id, employee.id, casual_leave.id, Decimal("1"), "Nope",
            )
