"""Organization / employee Pydantic v2 schemas embedded in other responses."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict

from orghr.common.constants import EmployeeStatus


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave / comp-off / time responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    full_name: str
    designation: Optional[str] = None
    status: EmployeeStatus = EmployeeStatus.active
