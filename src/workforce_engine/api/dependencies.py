"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_engine.auth import ADMIN_ROLES, MANAGER_ROLES, AuthContext
from workforce_engine.calculators import PayrollCalculator
from workforce_engine.database import init_db
from workforce_engine.errors import AuthorizationError, storage_errors


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _parse_uuid(value: str, header: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_auth(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_organization_id: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """Build the caller's auth context from headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID and X-User-Role headers are required",
        )
    user_id = _parse_uuid(x_user_id, "X-User-ID")
    organization_id = (
        _parse_uuid(x_organization_id, "X-Organization-ID") if x_organization_id else None
    )
    # Unknown role surfaces as a ValidationError through the app handler
    return AuthContext.for_role(user_id, x_user_role, organization_id)


async def require_admin(auth: Annotated[AuthContext, Depends(get_auth)]) -> AuthContext:
    """Only admins may run payroll operations."""
    if auth.role not in ADMIN_ROLES:
        raise AuthorizationError("Admin role required")
    return auth


async def require_manager(auth: Annotated[AuthContext, Depends(get_auth)]) -> AuthContext:
    """Assignment changes on behalf of others need a site manager or an admin."""
    if auth.role not in MANAGER_ROLES:
        raise AuthorizationError("Site manager or admin role required")
    return auth


async def commit(db: AsyncSession) -> None:
    """Commit a route's unit of work, reporting store failures as StorageError."""
    async with storage_errors("commit"):
        await db.commit()


@lru_cache(maxsize=1)
def get_calculator() -> PayrollCalculator:
    """Calculator configured from settings, built once."""
    return PayrollCalculator.from_settings()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(get_auth)]
AdminAuth = Annotated[AuthContext, Depends(require_admin)]
ManagerAuth = Annotated[AuthContext, Depends(require_manager)]
Calculator = Annotated[PayrollCalculator, Depends(get_calculator)]
