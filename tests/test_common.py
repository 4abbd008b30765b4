"""Tests for common utilities: pagination meta, problem details, audit trail."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from orghr.common.audit import AuditTrail, create_audit_entry
from orghr.common.constants import LeaveStatus
from orghr.common.exceptions import (
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
)
from orghr.common.pagination import PaginationMeta


# ── PaginationMeta ──────────────────────────────────────────────────


class TestPaginationMeta:

    def test_first_of_several_pages(self):
        meta = PaginationMeta.build(page=1, page_size=10, total=25)
        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is False

    def test_last_page(self):
        meta = PaginationMeta.build(page=3, page_size=10, total=25)
        assert meta.has_next is False
        assert meta.has_prev is True

    def test_empty_result(self):
        meta = PaginationMeta.build(page=1, page_size=10, total=0)
        assert meta.total_pages == 0
        assert meta.has_next is False


# ── Exceptions ──────────────────────────────────────────────────────


class TestExceptions:

    def test_invalid_transition_normalises_enums(self):
        exc = InvalidTransitionException(
            "LeaveRequest", LeaveStatus.approved, LeaveStatus.rejected,
        )
        assert exc.status_code == 409
        assert exc.current == "approved"
        assert exc.target == "rejected"
        assert exc.detail == "LeaveRequest cannot move from 'approved' to 'rejected'."

    def test_insufficient_balance_keeps_amounts(self):
        exc = InsufficientBalanceException(Decimal("3"), Decimal("5"))
        assert exc.status_code == 422
        assert exc.error_type == "insufficient-balance"
        assert (exc.available, exc.requested) == (Decimal("3"), Decimal("5"))

    def test_not_found_message(self):
        exc = NotFoundException("LeavePolicy", "abc")
        assert exc.title == "LeavePolicy Not Found"
        assert exc.detail == "LeavePolicy with id 'abc' does not exist."

    @pytest.mark.parametrize("missing", ["policy_id", "start_date"])
    async def test_request_validation_reshaped(self, client, casual_leave, employee_headers, missing):
        body = {"policy_id": str(casual_leave.id), "start_date": "2026-03-02", "end_date": "2026-03-02"}
        body.pop(missing)

        resp = await client.post("/api/v1/leave/requests", json=body, headers=employee_headers)

        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        problem = resp.json()
        assert problem["type"].endswith("/validation-error")
        assert missing in problem["errors"]


# ── Audit trail ─────────────────────────────────────────────────────


class TestAuditTrail:

    async def test_entry_persisted(self, db, org, admin_user, casual_leave):
        entry = await create_audit_entry(
            db,
            action="update",
            entity_type="leave_policy",
            entity_id=casual_leave.id,
            organization_id=org.id,
            actor_id=admin_user.id,
            old_values={"annual_quota": "12.00"},
            new_values={"annual_quota": "15.00"},
        )

        row = (await db.execute(
            select(AuditTrail).where(AuditTrail.id == entry.id)
        )).scalars().one()
        assert row.actor_id == admin_user.id
        assert row.new_values == {"annual_quota": "15.00"}
        assert "leave_policy" in repr(row)
