"""Auth helpers for FastAPI endpoints.

Provides:
- `User` Pydantic model for JWT subject
- `verify_jwt` to decode/validate signed JWTs issued by the identity provider
- `get_current_user` FastAPI dependency using HTTP Bearer auth

Token issuance lives with the identity provider; this module only verifies.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from pydantic import BaseModel
from .config import get_settings

security = HTTPBearer(auto_error=False)

STUDENT = "student"
INSTITUTE_ADMIN = "institute-admin"
ADMIN = "admin"


class User(BaseModel):
    """Authenticated user extracted from a validated JWT."""
    sub: str
    email: str | None = None
    name: str | None = None
    roles: list[str] = []

    def has_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)


def _roles_from_claims(payload: dict) -> list[str]:
    roles = payload.get("roles")
    if roles is None:
        single = payload.get("role")
        roles = [single] if single else []
    elif isinstance(roles, str):
        roles = [roles]
    return [str(r).lower() for r in roles]


def verify_jwt(token: str) -> User:
    """Decode and validate a JWT and return a `User`.

    Validates signature, audience, issuer and expiration using settings.
    Raises HTTP 401 on any validation failure.

    Args:
        token: Bearer token string (JWT).

    Returns:
        User: Parsed user info from token claims.
    """
    s = get_settings()
    try:
        payload = jwt.decode(
            token,
            s.JWT_PUBLIC_KEY,
            algorithms=s.JWT_ALGORITHMS,
            audience=s.OIDC_AUDIENCE,
            issuer=s.OIDC_ISSUER,
            options={"verify_exp": True, "require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return User(
        sub=str(payload["sub"]),
        email=payload.get("email"),
        name=payload.get("name"),
        roles=_roles_from_claims(payload),
    )


def get_current_user(creds: HTTPAuthorizationCredentials = Depends(security)) -> User:
    """FastAPI dependency to extract the current user from Authorization header.

    Args:
        creds: Parsed HTTP Bearer credentials injected by FastAPI.

    Returns:
        User: The authenticated user.

    Raises:
        HTTPException: 401 if credentials are missing or token is invalid.
    """
    if not creds:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing credentials",
        )
    return verify_jwt(creds.credentials)
