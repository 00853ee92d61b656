"""
Marketplace Request Models
==========================

Pydantic request models and the domain enums shared by the API and services.

Key Capabilities:
- Role, account status and per-entity status enums
- Request bodies for expert applications, tasks, help-desk tickets,
  admin user management and system configuration
- Field-level validation reported as VALIDATION_ERROR with the failing fields
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    """User roles for role-based access control, lowest privilege first"""

    CUSTOMER = "CUSTOMER"  # Default tier for signups
    EXPERT = "EXPERT"  # Promoted when an expert application is approved
    ANALYST = "ANALYST"
    ADMIN = "ADMIN"  # Scoped to one organization
    SUPERADMIN = "SUPERADMIN"  # Global


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"


class TicketStatus(str, Enum):
    """Help-desk ticket status, stored in display form"""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @classmethod
    def parse(cls, value: str) -> "TicketStatus":
        """Accept API spellings: OPEN, in_progress, "In Progress", ..."""
        normalized = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        for member in cls:
            if member.name == normalized:
                return member
        raise ValueError(
            f"Invalid ticket status '{value}'. Must be one of: OPEN, IN_PROGRESS, RESOLVED, CLOSED"
        )


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class AssignmentStatus(str, Enum):
    """Per-expert task assignment status"""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    DECLINED = "DECLINED"
    COMPLETED = "COMPLETED"


class CamelModel(BaseModel):
    """Accepts both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ============================================================================
# EXPERT APPLICATIONS
# ============================================================================


class ExpertApplicationUpdateRequest(CamelModel):
    """Draft fields an applicant may save before submitting."""

    phone: Optional[str] = Field(default=None, max_length=40)
    dob: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)
    work_experience: Optional[int] = Field(default=None, ge=0, le=80)
    bio: Optional[str] = Field(default=None, max_length=5000)
    domains: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    availability: Optional[Union[Dict[str, Any], List[Any]]] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    languages: Optional[List[str]] = None


class ApplicationRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return _strip_required(v)


class ApplicationRemoveRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    permanent_ban: bool = False

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return _strip_required(v)


# ============================================================================
# TASKS
# ============================================================================


class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    domain: Optional[str] = Field(default=None, max_length=100)
    deadline: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    expert_ids: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _strip_required(v)

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Review onboarding flow",
                "description": "Audit the signup funnel and report friction points",
                "domain": "UX",
                "priority": "HIGH",
                "expert_ids": ["4f1c2d7e-0a1b-4c3d-9e8f-1234567890ab"],
            }
        }


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    domain: Optional[str] = Field(default=None, max_length=100)
    deadline: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None


class TaskAssignRequest(BaseModel):
    expert_ids: List[str] = Field(..., min_length=1)


# ============================================================================
# HELP-DESK
# ============================================================================


class TicketCreateRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=150)
    category: Optional[str] = Field(default=None, max_length=100)
    description: str = Field(..., min_length=1, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM

    @field_validator("subject", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class TicketStatusRequest(BaseModel):
    status: str
    reply: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        return TicketStatus.parse(v).value


class TicketAssignRequest(CamelModel):
    assigned_to_id: str = Field(..., min_length=1)


class TicketRespondRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=5000)
    edit_requested: bool = False

    @field_validator("response")
    @classmethod
    def strip_response(cls, v: str) -> str:
        return _strip_required(v)


# ============================================================================
# ADMIN USER MANAGEMENT
# ============================================================================


class AdminUserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.CUSTOMER
    phone: Optional[str] = Field(default=None, max_length=40)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: EmailStr) -> EmailStr:
        return v.lower().strip()

    @field_validator("role", mode="before")
    @classmethod
    def upper_role(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class AdminUserUpdateRequest(BaseModel):
    """
    Partial user update. The two ``save_cta_*`` fields are an explicit
    confirmation gate sent by the admin UI's save button.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    save_cta_state: Optional[str] = None
    save_cta_action: Optional[str] = None

    @field_validator("role", "status", mode="before")
    @classmethod
    def upper_enum(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


# ============================================================================
# SYSTEM CONFIGURATION
# ============================================================================


class ConfigUpdateRequest(BaseModel):
    value: Union[bool, int, float, str]
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)

    def serialized_value(self) -> str:
        """Stored form: booleans and numbers lower-cased, strings unchanged."""
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)
