"""RBAC utilities.

Provides:
- `can_access(user, owner_id)`: the single ownership/elevation capability check
  used wherever a resource belongs to one identity.
- `require_roles(*roles)`: a FastAPI dependency factory ensuring the
  authenticated user (from `get_current_user`) holds at least one of the roles.
"""

from typing import Callable, Iterable
from fastapi import Depends, HTTPException, status
from .auth import get_current_user, User, ADMIN


def can_access(user: User, owner_id: str, elevated: Iterable[str] = (ADMIN,)) -> bool:
    """Return True when `user` owns the resource or holds an elevated role."""
    if user.sub == owner_id:
        return True
    return user.has_role(*elevated)


def require_roles(*allowed: str) -> Callable[[User], User]:
    """Create a dependency that enforces presence of one of the given roles.

    Args:
        allowed: Role names; the user must hold at least one.

    Returns:
        A FastAPI dependency callable that:
          - receives the current `User` (via `Depends(get_current_user)`)
          - raises 403 if the user's roles include none of `allowed`
          - otherwise returns the `User`
    """
    def wrapper(user: User = Depends(get_current_user)) -> User:
        """Validate the current user's roles against the allowed set."""
        if not user.has_role(*allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return wrapper
