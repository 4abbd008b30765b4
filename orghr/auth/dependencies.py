"""Auth dependencies: JWT validation, RBAC enforcement, tenant scope."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Query, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.models import AppUser, UserSession
from orghr.auth.service import hash_token
from orghr.common.constants import UserRole
from orghr.common.exceptions import ForbiddenException, ValidationException
from orghr.config import settings
from orghr.database import get_db

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.super_admin: {UserRole.super_admin, UserRole.org_admin, UserRole.employee},
    UserRole.org_admin: {UserRole.org_admin, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}

ADMIN_ROLES = (UserRole.org_admin, UserRole.super_admin)


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def is_admin(user: AppUser) -> bool:
    return user.role in ADMIN_ROLES


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AppUser:
    """Validate JWT, verify session, return the authenticated AppUser."""
    token = _extract_bearer(request)

    # Decode JWT
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    user_result = await db.execute(
        select(AppUser).where(AppUser.id == user_id, AppUser.is_active.is_(True)),
    )
    user = user_result.scalars().first()
    if user is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # The stored role is authoritative; the claim only travels for clients
    request.state.user_role = user.role
    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy: e.g. super_admin can access org_admin endpoints.
    """

    async def _check(user: AppUser = Depends(get_current_user)) -> AppUser:
        effective_roles = _ROLE_HIERARCHY.get(user.role, {user.role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


async def require_employee(user: AppUser = Depends(get_current_user)) -> AppUser:
    """Self-service endpoints need a user linked to an employee record."""
    if user.employee_id is None or user.organization_id is None:
        raise ForbiddenException(detail="This action requires an employee account.")
    return user


# ── Tenant scope ────────────────────────────────────────────────────

async def get_organization_id(
    organization_id: Optional[uuid.UUID] = Query(
        None, description="Target organization (super admins only)",
    ),
    user: AppUser = Depends(get_current_user),
) -> uuid.UUID:
    """Resolve the organization every query of this request is scoped to.

    Org members are pinned to their own organization; super admins must
    name one explicitly.
    """
    if user.role == UserRole.super_admin:
        if organization_id is None:
            raise ValidationException(
                {"organization_id": ["Super admins must specify an organization."]}
            )
        return organization_id

    if user.organization_id is None:
        raise ForbiddenException(detail="User is not attached to an organization.")
    if organization_id is not None and organization_id != user.organization_id:
        raise ForbiddenException(detail="Cross-organization access is not permitted.")
    return user.organization_id
