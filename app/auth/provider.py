"""
Authentication provider collaborator.

Account workflows only depend on the AuthProvider protocol. LocalAuthProvider keeps
principals in the principals table and commits each principal on its own, which makes
principal creation the irrevocable first step of account creation.
"""

from typing import Optional, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Principal
from app.auth.security import hash_password, verify_password


class AuthProvider(Protocol):
    async def create_principal(self, email: str, password: str) -> UUID: ...

    async def authenticate(self, email: str, password: str) -> Optional[UUID]: ...

    async def principal_exists(self, email: str) -> bool: ...

    async def delete_principal(self, principal_id: UUID) -> None: ...


class LocalAuthProvider:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_principal(self, email: str, password: str) -> UUID:
        principal = Principal(email=email.strip().lower(), password_hash=hash_password(password))
        self.db.add(principal)
        await self.db.commit()
        return principal.id

    async def authenticate(self, email: str, password: str) -> Optional[UUID]:
        result = await self.db.execute(
            select(Principal).where(Principal.email == func.lower(email.strip()))
        )
        principal = result.scalar_one_or_none()
        if principal is None or not verify_password(password, principal.password_hash):
            return None
        return principal.id

    async def principal_exists(self, email: str) -> bool:
        result = await self.db.execute(
            select(Principal.id).where(Principal.email == func.lower(email.strip()))
        )
        return result.scalar_one_or_none() is not None

    async def delete_principal(self, principal_id: UUID) -> None:
        principal = await self.db.get(Principal, principal_id)
        if principal is not None:
            await self.db.delete(principal)
            await self.db.commit()
