from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.provider import AuthProvider, LocalAuthProvider
from app.auth.security import decode_access_token
from app.core.access import Actor, resolve_actor
from app.core.enums import UserRole
from app.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


def get_auth_provider(db: AsyncSession = Depends(get_db)) -> AuthProvider:
    return LocalAuthProvider(db)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated directory user from the access token (currentPrincipal -> User)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "auth_error", "message": "Could not validate credentials"},
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str = payload.get("sub")
    role_name = payload.get("role")
    if not user_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        UserRole(role_name)
    except ValueError:
        raise credentials_exception

    user = await db.get(User, user_id)
    if user is None or user.role != role_name:
        raise credentials_exception
    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Organization scope of the caller, resolved once per request."""
    return await resolve_actor(db, current_user)
