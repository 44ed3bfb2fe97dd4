from enum import Enum

class ScheduleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    LOCKED = "locked"

class AssignmentStatus(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    SWAPPED = "swapped"

class ConflictType(str, Enum):
    OVERLAP = "overlap"
    REST_PERIOD = "rest_period"
    MAX_HOURS = "max_hours"
    AVAILABILITY = "availability"

class ConflictSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

class SwapRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
