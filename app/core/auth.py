"""
Authentication utilities for Supabase JWT verification.

The frontend signs in with supabase.auth.signInWithPassword() and sends the JWT
in the Authorization header. This module verifies the JWT and extracts the
user and their marketplace role (developer / agent / agency).
"""
import logging
from typing import Optional

import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import settings

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

ROLES = ("developer", "agent", "agency")


class User:
    """User model extracted from JWT token."""
    def __init__(self, user_id: str, email: Optional[str], role: Optional[str] = None):
        self.id = user_id
        self.email = email
        self.role = role or "agent"

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, role={self.role!r})"


# Cache for JWKS keys (to avoid fetching on every request)
_jwks_cache = None


def get_supabase_jwks():
    """
    Fetch Supabase's JSON Web Key Set (JWKS) for JWT verification.

    Newer Supabase projects sign with asymmetric keys (ES256 / RS256), so we
    need their public key to verify tokens.
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    try:
        jwks_url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except requests.RequestException as e:
        logger.error("Failed to fetch JWKS from Supabase: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )


def verify_token(token: str) -> dict:
    """
    Verify Supabase JWT token and return decoded payload.

    Legacy projects sign with the shared HS256 secret (SUPABASE_JWT_SECRET);
    newer ones use ES256/RS256 keys published on the JWKS endpoint.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") == "HS256":
            key = settings.SUPABASE_JWT_SECRET
            algorithms = ["HS256"]
        else:
            key = get_supabase_jwks()
            algorithms = ["ES256", "RS256"]

        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience="authenticated",  # Supabase uses "authenticated" as audience
            options={"verify_aud": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_payload(payload: dict) -> User:
    """
    Build a User from a Supabase JWT payload.

    The marketplace role is set at sign-up in user_metadata; app_metadata
    (service-controlled) wins when both are present.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    app_meta = payload.get("app_metadata") or {}
    user_meta = payload.get("user_metadata") or {}
    role = app_meta.get("role") or user_meta.get("role")
    if role not in ROLES:
        role = None
    return User(user_id=user_id, email=payload.get("email"), role=role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    FastAPI dependency to get current authenticated user from JWT token.

    Usage in route:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            ...
    """
    payload = verify_token(credentials.credentials)
    return user_from_payload(payload)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests get None instead of a 403."""
    if credentials is None:
        return None
    return user_from_payload(verify_token(credentials.credentials))


def require_role(*roles: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.patch("/contracts/{id}/status")
        def update_status(current_user: User = Depends(require_role("developer"))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {' or '.join(roles)}",
            )
        return current_user
    return role_checker
