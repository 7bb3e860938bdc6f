"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pts_allowance.database import init_db
from pts_allowance.services.approval import Role


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Handlers commit their own writes."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@dataclass(frozen=True)
class Actor:
    """Caller identity as forwarded by the authenticating gateway."""

    user_id: int
    role: Role


async def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Extract the acting user from headers."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )
    try:
        role = Role(x_user_role or Role.USER.value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {x_user_role}",
        )
    return Actor(user_id=user_id, role=role)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]


def require_roles(*roles: Role) -> Any:
    """Dependency that only lets the listed roles (and ADMIN) through."""
    allowed = frozenset(roles) | {Role.ADMIN}

    async def check(actor: CurrentActor) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {actor.role.value} is not allowed to perform this action",
            )
        return actor

    return Depends(check)
