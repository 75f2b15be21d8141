"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.database import init_db
from hrms_payroll.services.directory import CallerIdentity, Role
from hrms_payroll.services.errors import NotAuthorizedError


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Routes commit explicitly; anything left uncommitted when a route raises
    is rolled back.
    """
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CallerIdentity:
    """Extract the caller identity from headers set by the auth gateway."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )
    try:
        role = Role((x_user_role or Role.EMPLOYEE.value).lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{x_user_role}'",
        )
    return CallerIdentity(user_id=user_id, role=role)


async def require_privileged(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
) -> CallerIdentity:
    """Only admin and HR may manage payroll."""
    if not caller.is_privileged:
        raise NotAuthorizedError(
            "Payroll administration requires the admin or hr role",
            user_id=caller.user_id,
            role=caller.role.value,
        )
    return caller


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Caller = Annotated[CallerIdentity, Depends(get_caller)]
PayrollAdmin = Annotated[CallerIdentity, Depends(require_privileged)]
