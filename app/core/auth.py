"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification (payload: sub, role, exp)
- FastAPI dependencies for protected routes, one per principal role
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_settings
from app.services.mongo_service import (
    get_student_service,
    get_recruiter_service,
    get_admin_service,
)

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor (auto_error off so missing tokens give 401, not 403)
bearer_scheme = HTTPBearer(auto_error=False)

# Role -> repository factory used to resolve the principal
ROLE_SERVICES = {
    "student": get_student_service,
    "recruiter": get_recruiter_service,
    "admin": get_admin_service,
}


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(subject_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for a principal."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode = {"sub": str(subject_id), "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated principal.

    Returns the account document (without password hash) with `role` set.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authorized, token failed",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id:
        raise credentials_exception

    service_factory = ROLE_SERVICES.get(role)
    if service_factory is None:
        raise HTTPException(status_code=403, detail="Invalid role")

    user = service_factory().get_by_id(user_id)
    if not user:
        raise credentials_exception

    user["role"] = role
    return user


def require_roles(*roles: str):
    """Build a dependency that only admits the given roles."""

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role {user['role']} is not authorized to access this resource"
            )
        return user

    return dependency


get_current_student = require_roles("student")
get_current_recruiter = require_roles("recruiter")
get_current_admin = require_roles("admin")
