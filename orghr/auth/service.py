"""Auth service: JWT issuance and session lifecycle.

Login transport (OAuth, passwords, cookies) lives outside this service;
whatever authenticates a user calls :func:`issue_session` to mint the
bearer token the API accepts.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from orghr.auth.models import AppUser, UserSession
from orghr.common.constants import UserRole
from orghr.config import settings

logger = logging.getLogger(__name__)


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Session management ──────────────────────────────────────────────

async def issue_session(db: AsyncSession, user: AppUser) -> str:
    """Create an access token for *user* and persist its session row."""
    access_token, _ = create_access_token(user.id, user.role)

    session = UserSession(
        user_id=user.id,
        token_hash=hash_token(access_token),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
    )
    db.add(session)
    await db.flush()

    logger.info("Issued session for user %s (%s)", user.id, user.role.value)
    return access_token

