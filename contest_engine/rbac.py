"""
contest_engine/rbac.py
Role-Based Access Control for the engine.

The engine never authenticates anyone. The external auth layer issues a
bearer JWT; this module turns it into an ActingUser value that every
service operation receives explicitly, and holds the capability checks
those operations use.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import FrozenSet, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from contest_engine.errors import ErrorCode, PermissionDenied, UnauthorizedError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, PyEnum):
    ADMIN = "admin"
    HOST = "host"
    JUDGE = "judge"


@dataclass(frozen=True)
class ActingUser:
    """Identity and capabilities of the caller, as asserted by the auth layer."""
    id: str
    roles: FrozenSet[Role] = field(default_factory=frozenset)
    org_admin_ids: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def of(cls, user_id: str, roles=(), org_admin_ids=()) -> "ActingUser":
        return cls(
            id=str(user_id),
            roles=frozenset(Role(r) for r in roles),
            org_admin_ids=frozenset(int(o) for o in org_admin_ids),
        )

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    def has_role(self, role: Role) -> bool:
        return self.is_admin or role in self.roles

    def administers_org(self, org_id: Optional[int]) -> bool:
        return org_id is not None and (self.is_admin or org_id in self.org_admin_ids)


# ================= CAPABILITY CHECKS =================

def require_host(actor: ActingUser) -> None:
    """Creating competitions needs the host role (or admin)."""
    if not actor.has_role(Role.HOST):
        raise PermissionDenied("create competitions")


def require_org_admin(actor: ActingUser, org_id: Optional[int]) -> None:
    if org_id is not None and not actor.administers_org(org_id):
        raise PermissionDenied(f"host competitions for organization {org_id}")


def can_manage_competition(actor: ActingUser, competition) -> bool:
    """Creator, platform admin, or an admin of the hosting organization."""
    if actor.is_admin:
        return True
    if competition.created_by == actor.id:
        return True
    return actor.administers_org(competition.host_org_id)


def require_competition_manager(actor: ActingUser, competition, action: str) -> None:
    if not can_manage_competition(actor, competition):
        raise PermissionDenied(action)


def require_judge(actor: ActingUser) -> None:
    if not actor.has_role(Role.JUDGE):
        raise PermissionDenied("submit scores")


# ================= TOKEN DECODING =================

def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[dict]:
    """Decode and validate a JWT issued by the auth layer"""
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None


def acting_user_from_claims(payload: dict) -> ActingUser:
    """
    Claims: sub (user id), roles (list of admin/host/judge),
    org_admin_ids (organization ids the user administers).
    Unknown role names are ignored.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token has no subject", code=ErrorCode.AUTH_INVALID)

    known = {r.value for r in Role}
    roles = [r for r in payload.get("roles", []) if r in known]
    org_ids = []
    for value in payload.get("org_admin_ids", []):
        try:
            org_ids.append(int(value))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer org id in token for {user_id}: {value!r}")
    return ActingUser.of(user_id, roles=roles, org_admin_ids=org_ids)


# ================= AUTH DEPENDENCIES =================

async def get_acting_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> ActingUser:
    """
    Resolve the caller from the Authorization header.
    Returns 401 if the token is missing, invalid or expired.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    settings = request.app.state.settings
    payload = decode_token(
        credentials.credentials,
        settings.auth_token_secret,
        settings.auth_token_algorithm,
    )
    if not payload:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    return acting_user_from_claims(payload)
