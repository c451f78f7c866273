from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_actor, get_current_user
from app.auth.models import User
from app.auth.rbac import require_feature
from app.core.access import Actor
from app.core.enums import Feature
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ChangeStudentPasswordRequest,
    DefaultPasswordReport,
    StudentCodeLookup,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> StudentResponse:
    """
    Add a student to a school. The 8-character student code is generated here.
    A probable duplicate returns 409 with code=duplicate_warning and the existing
    student's id and code; resend with confirm_duplicate=true to create anyway.
    """
    try:
        student = await service.create_student(db, actor, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return StudentResponse.model_validate(student)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(require_feature(Feature.ROSTER))],
)
async def list_students(
    school_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> List[StudentResponse]:
    try:
        students = await service.list_school_students(db, actor, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return [StudentResponse.model_validate(s) for s in students]


@router.get("/lookup", response_model=StudentCodeLookup)
async def lookup_student(
    code: str = Query(..., min_length=1, max_length=12),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StudentCodeLookup:
    try:
        student = await service.find_student_by_code(db, code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return StudentCodeLookup.model_validate(student)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> StudentResponse:
    try:
        student = await service.update_student(db, actor, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return StudentResponse.model_validate(student)


@router.post("/me/password", response_model=StudentResponse)
async def change_my_password(
    payload: ChangeStudentPasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StudentResponse:
    try:
        student = await service.change_student_password(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return StudentResponse.model_validate(student)


@router.post("/{student_id}/reset-password", response_model=StudentResponse)
async def reset_password(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> StudentResponse:
    try:
        student = await service.reset_student_password(db, actor, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return StudentResponse.model_validate(student)


@router.get(
    "/reports/default-passwords",
    response_model=DefaultPasswordReport,
    dependencies=[Depends(require_feature(Feature.REPORTS))],
)
async def default_password_report(
    school_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DefaultPasswordReport:
    """Students who have never changed their default password."""
    try:
        return await service.list_default_password_students(db, actor, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "/reports/default-passwords/export",
    dependencies=[Depends(require_feature(Feature.REPORTS))],
)
async def export_default_password_report(
    school_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Response:
    try:
        report = await service.list_default_password_students(db, actor, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return Response(
        content=service.build_default_password_workbook(report),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=default_passwords.xlsx"},
    )
