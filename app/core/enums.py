from enum import Enum


class UserRole(str, Enum):
    SCHOOL = "school"
    DISTRICT = "district"
    TEACHER = "teacher"
    SUB = "sub"
    PARENT = "parent"
    STUDENT = "student"


STAFF_ROLES = (UserRole.TEACHER, UserRole.SUB)


class SubscriptionTier(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class ParentRelationship(str, Enum):
    MOTHER = "mother"
    FATHER = "father"
    GUARDIAN = "guardian"
    GRANDPARENT = "grandparent"
    OTHER = "other"


class ClassType(str, Enum):
    REGULAR = "regular"
    DLP = "dlp"
    CROSS_CAT = "cross_cat"
    MIXED = "mixed"
    INCLUSION = "inclusion"
    OTHER = "other"


class ResourceKind(str, Enum):
    SCHOOL = "school"  # school-wide resources (settings, calendar, announcements)
    CLASS = "class"
    STUDENT = "student"


class Feature(str, Enum):
    ACCOUNT_SETTINGS = "account_settings"
    BILLING = "billing"
    FAMILY_PORTAL = "family_portal"
    ROSTER = "roster"
    CLASSES = "classes"
    GRADEBOOK = "gradebook"
    ATTENDANCE = "attendance"
    MESSAGING = "messaging"
    CALENDAR = "calendar"
    DOCUMENTS = "documents"
    REPORTS = "reports"


class BillingEventType(str, Enum):
    ACTIVATED = "subscription.activated"
    RENEWED = "subscription.renewed"
    CANCELLED = "subscription.cancelled"
