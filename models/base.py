from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SourceType(str, enum.Enum):
    """Extraction source kinds"""
    FILE = "file"
    HTTP = "http"
    DATABASE = "database"


class ETLStatus(str, enum.Enum):
    """Pipeline run status"""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class ProfileStatus(str, enum.Enum):
    """Caregiver status stored on the profile (``sstatus``)"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class EmploymentStatus(str, enum.Enum):
    """Caregiver row status, derived from the profile status"""
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class CarelogStatus(str, enum.Enum):
    """Visit status"""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    DELETED = "deleted"


def enum_values(enum_cls) -> str:
    """Comma separated, quoted member values for CHECK constraints"""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
