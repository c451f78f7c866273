from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_actor
from app.auth.models import User
from app.auth.rbac import require_roles
from app.core.access import Actor
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import ChildrenResponse, LinkChildByCodeRequest, ParentStudentLinkResponse, StaffLinkRequest
from . import service

router = APIRouter(prefix="/api/v1/parents", tags=["parents"])


@router.post(
    "/me/children",
    response_model=ParentStudentLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def link_child(
    payload: LinkChildByCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.PARENT)),
) -> ParentStudentLinkResponse:
    """Link a child to the signed-in parent using the student code from the school."""
    try:
        link = await service.link_child_by_code(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return ParentStudentLinkResponse.model_validate(link)


@router.get("/me/children", response_model=ChildrenResponse)
async def list_my_children(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.PARENT)),
) -> ChildrenResponse:
    children = await service.get_parent_children(db, current_user.id)
    return ChildrenResponse(children=children)


@router.post(
    "/links",
    response_model=ParentStudentLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def staff_link_parent(
    payload: StaffLinkRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ParentStudentLinkResponse:
    try:
        link = await service.staff_link_parent(db, actor, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return ParentStudentLinkResponse.model_validate(link)
