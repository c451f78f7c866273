from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_auth_provider, get_current_user
from app.auth.models import User
from app.auth.provider import AuthProvider
from app.auth.schemas import (
    DeleteAccountResponse,
    DistrictSignupRequest,
    LoginRequest,
    LoginResponse,
    ParentSignupRequest,
    SchoolSignupRequest,
    SignupResponse,
    StaffSignupRequest,
    StudentLoginRequest,
    UserResponse,
)
from app.auth.services import (
    create_district_account,
    create_parent_account,
    create_school_account,
    create_staff_account,
    delete_account,
    login_student,
    login_user,
)
from app.core.exceptions import ServiceError
from app.db.session import get_db
from fastapi.security import OAuth2PasswordRequestForm

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _http_error(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/signup/school",
    response_model=SignupResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def signup_school(
    payload: SchoolSignupRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> SignupResponse:
    try:
        return await create_school_account(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post(
    "/signup/district",
    response_model=SignupResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def signup_district(
    payload: DistrictSignupRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> SignupResponse:
    try:
        return await create_district_account(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post(
    "/signup/staff",
    response_model=SignupResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def signup_staff(
    payload: StaffSignupRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> SignupResponse:
    try:
        return await create_staff_account(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post(
    "/signup/parent",
    response_model=SignupResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def signup_parent(
    payload: ParentSignupRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> SignupResponse:
    try:
        return await create_parent_account(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> LoginResponse:
    try:
        return await login_user(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    payload = LoginRequest(
        email=form_data.username.strip(),
        password=form_data.password,
    )
    try:
        result = await login_user(db, provider, payload)
    except ServiceError as e:
        raise _http_error(e)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.post(
    "/student-login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def student_login(
    payload: StudentLoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Students sign in with their 8-character student code. Default password is the code followed by '!'."""
    try:
        return await login_student(db, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.delete("/me", response_model=DeleteAccountResponse)
async def delete_me(
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
    current_user: User = Depends(get_current_user),
) -> DeleteAccountResponse:
    try:
        await delete_account(db, provider, current_user)
    except ServiceError as e:
        raise _http_error(e)
    return DeleteAccountResponse()
