"""Organization-scoped employee lookups shared by the feature services."""

from __future__ import annotations

import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.common.constants import EmployeeStatus
from orghr.common.exceptions import NotFoundException
from orghr.organizations.models import Employee


class OrganizationService:
    """Tenant-scoped reads over organizations and their employees."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Employee:
        """Return the employee if it belongs to *organization_id*, else 404."""
        query = select(Employee).where(
            Employee.id == employee_id,
            Employee.organization_id == organization_id,
        )
        if active_only:
            query = query.where(Employee.status != EmployeeStatus.exited)

        result = await db.execute(query)
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def list_active_employees(
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> Sequence[Employee]:
        result = await db.execute(
            select(Employee)
            .where(
                Employee.organization_id == organization_id,
                Employee.status != EmployeeStatus.exited,
            )
            .order_by(Employee.employee_code)
        )
        return result.scalars().all()
