"""Caller identity and organization scoping."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from workforce_engine.errors import AuthorizationError, ValidationError
from workforce_engine.models.enums import UserRole

# Roles that see every organization unless pinned to one
ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SYSTEM_ADMIN})

# Roles that may change other workers' assignments
MANAGER_ROLES = ADMIN_ROLES | {UserRole.SITE_MANAGER}


@dataclass(frozen=True)
class AuthContext:
    """Who is calling, passed explicitly into every scoped operation."""

    user_id: UUID
    role: UserRole
    is_restricted: bool
    organization_id: UUID | None = None

    @classmethod
    def for_role(
        cls,
        user_id: UUID,
        role: UserRole | str,
        organization_id: UUID | None = None,
    ) -> AuthContext:
        """Build a context, deriving the restriction flag.

        Non-admin roles are always restricted. An admin bound to an
        organization is restricted to it; a system admin never is.
        """
        try:
            parsed = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role!r}") from None
        return cls(
            user_id=user_id,
            role=parsed,
            is_restricted=_is_restricted(parsed, organization_id),
            organization_id=organization_id,
        )


def assert_org_access(auth: AuthContext | None, target_organization_id: UUID | None) -> None:
    """Fail with AuthorizationError if a restricted caller targets another org.

    A target without an organization is globally visible. No auth context
    means a trusted internal call.
    """
    if auth is None or not auth.is_restricted:
        return
    if auth.organization_id is None:
        raise AuthorizationError("Restricted account has no organization")
    if target_organization_id is None:
        return
    if target_organization_id != auth.organization_id:
        raise AuthorizationError("Access to this organization is not allowed")


def _is_restricted(role: UserRole, organization_id: UUID | None) -> bool:
    if role not in ADMIN_ROLES:
        return True
    if role == UserRole.SYSTEM_ADMIN:
        return False
    return organization_id is not None
