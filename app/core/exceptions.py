from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    error_code = "service_error"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra: Dict[str, Any] = {}

    def to_detail(self) -> Dict[str, Any]:
        """Payload for HTTPException.detail: a stable code the client can branch on plus the message."""
        return {"code": self.error_code, "message": self.message, **self.extra}


class AuthError(ServiceError):
    error_code = "auth_error"

    def __init__(self, message: str = "Not signed in") -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class InvalidCode(ServiceError):
    """A human-entered school or student code matched nothing."""

    error_code = "invalid_code"

    def __init__(self, message: str = "Invalid code. Please check and try again.") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class SchoolNotSubscribed(ServiceError):
    error_code = "school_not_subscribed"

    def __init__(self, school_id: UUID) -> None:
        super().__init__(
            "This school does not have an active subscription yet. Ask the school administrator to set up billing.",
            status.HTTP_403_FORBIDDEN,
        )
        self.extra = {"school_id": str(school_id)}


class DuplicateWarning(ServiceError):
    """Soft conflict: a probable duplicate student exists. Resend with confirm_duplicate=true to create anyway."""

    error_code = "duplicate_warning"

    def __init__(self, existing_student_id: UUID, existing_student_code: str) -> None:
        super().__init__(
            "A student with the same name and date of birth already exists in this school.",
            status.HTTP_409_CONFLICT,
        )
        self.existing_student_id = existing_student_id
        self.existing_student_code = existing_student_code
        self.extra = {
            "existing_student_id": str(existing_student_id),
            "existing_student_code": existing_student_code,
        }


class PartialAccountError(ServiceError):
    """Authentication principal exists but the directory records were not written."""

    error_code = "partial_account"

    def __init__(self, principal_id: UUID, message: Optional[str] = None) -> None:
        super().__init__(
            message or "Account sign-in was created but the profile could not be saved. Contact support to finish setup.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.principal_id = principal_id
        self.extra = {"principal_id": str(principal_id)}


class PermissionDenied(ServiceError):
    error_code = "permission_denied"

    def __init__(self, message: str = "You do not have permission to modify this resource") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class RoleMismatchError(ServiceError):
    error_code = "role_mismatch"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class FeatureLocked(ServiceError):
    """Gated feature requested while the effective organization has no active subscription."""

    error_code = "subscription_required"

    def __init__(self, feature: str, redirect_to: str) -> None:
        super().__init__(
            "This feature requires an active subscription.",
            status.HTTP_402_PAYMENT_REQUIRED,
        )
        self.extra = {"feature": feature, "redirect_to": redirect_to}
