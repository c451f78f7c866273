from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_actor, get_current_user
from app.auth.models import User
from app.auth.schemas import UserResponse
from app.core.access import Actor
from app.core.exceptions import InvalidCode, ServiceError
from app.db.session import get_db

from .schemas import (
    DistrictSchoolCreate,
    DistrictSchoolsResponse,
    JoinSchoolRequest,
    LinkSchoolToDistrictRequest,
    SchoolResponse,
    SchoolSummary,
    SwitchOrganizationRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.get("/lookup", response_model=SchoolSummary)
async def lookup_school(
    code: str = Query(..., min_length=1, max_length=12, description="6-character school code, any case"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SchoolSummary:
    """Resolve a school code to a summary so the user can confirm before joining."""
    school = await service.resolve_school(db, code)
    if school is None:
        error = InvalidCode("Invalid school code. Please check and try again.")
        raise HTTPException(status_code=error.status_code, detail=error.to_detail())
    return SchoolSummary.model_validate(school)


@router.post("/join", response_model=UserResponse)
async def join_school(
    payload: JoinSchoolRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    try:
        user = await service.join_school_by_code(db, current_user.id, payload.code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return UserResponse.model_validate(user)


@router.post("/{school_id}/leave", response_model=UserResponse)
async def leave_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    try:
        user = await service.leave_school(db, current_user.id, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return UserResponse.model_validate(user)


@router.post("/switch", response_model=UserResponse)
async def switch_school(
    payload: SwitchOrganizationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    try:
        user = await service.switch_active_organization(db, current_user.id, payload.organization_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return UserResponse.model_validate(user)


@router.delete("/{school_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> None:
    """Delete an empty school. Refused while students or staff remain."""
    try:
        await service.delete_school(db, actor, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/district", response_model=DistrictSchoolsResponse)
async def list_district_schools(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DistrictSchoolsResponse:
    try:
        district, schools = await service.list_district_schools(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return DistrictSchoolsResponse(
        district_id=district.id,
        schools=[SchoolResponse.model_validate(s) for s in schools],
    )


@router.post("/district/link", response_model=SchoolResponse)
async def link_school_to_district(
    payload: LinkSchoolToDistrictRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SchoolResponse:
    try:
        school = await service.add_school_to_district(db, current_user.id, payload.code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return SchoolResponse.model_validate(school)


@router.post("/district", response_model=SchoolResponse, status_code=status.HTTP_201_CREATED)
async def create_district_school(
    payload: DistrictSchoolCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SchoolResponse:
    try:
        school = await service.create_school_for_district(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return SchoolResponse.model_validate(school)
