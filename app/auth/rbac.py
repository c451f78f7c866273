from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.core.enums import Feature, UserRole
from app.core.exceptions import FeatureLocked
from app.core.gating import check_feature
from app.db.session import get_db


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.PARENT))
    """
    allowed = {role.value for role in roles}

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "permission_denied", "message": "This action is not available for your account type"},
            )
        return current_user

    return _checker


def require_feature(feature: Feature):
    """
    Dependency factory enforcing subscription gating for a feature.

    Example:
        Depends(require_feature(Feature.ROSTER))
    """

    async def _checker(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> None:
        decision = await check_feature(db, current_user, feature)
        if not decision.allowed:
            error = FeatureLocked(feature.value, decision.redirect_to)
            raise HTTPException(status_code=error.status_code, detail=error.to_detail())

    return _checker
