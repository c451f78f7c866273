from app.core.models.class_model import SchoolClass
from app.core.models.district import District
from app.core.models.parent import Parent, ParentStudentLink
from app.core.models.school import School
from app.core.models.staff import Sub, Teacher
from app.core.models.student import Student

__all__ = [
    "District",
    "Parent",
    "ParentStudentLink",
    "School",
    "SchoolClass",
    "Student",
    "Sub",
    "Teacher",
]
