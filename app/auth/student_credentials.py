"""
Student credential lifecycle.

While password_changed_at is NULL the student's live credential is student_code + "!".
It is derived, never stored. After the first change a bcrypt hash is stored alongside
password_changed_at; a reset clears both and the default credential applies again.
"""

import secrets
from datetime import datetime, timezone

from app.auth.security import hash_password, verify_password
from app.core.codes import default_student_password
from app.core.models import Student


def verify_student_credential(student: Student, password: str) -> bool:
    if student.uses_default_password:
        return secrets.compare_digest(password, default_student_password(student.student_code))
    if not student.password_hash:
        return False
    return verify_password(password, student.password_hash)


def set_student_password(student: Student, new_password: str) -> None:
    student.password_hash = hash_password(new_password)
    student.password_changed_at = datetime.now(timezone.utc)


def reset_student_password(student: Student) -> None:
    student.password_hash = None
    student.password_changed_at = None
