"""
API Models Package
------------------
Pydantic request and response models plus the domain enums.
"""

from app.models.request_models import (
    ApplicationStatus,
    AssignmentStatus,
    TaskPriority,
    TaskStatus,
    TicketStatus,
    UserRole,
    UserStatus,
)
from app.models.response_models import (
    ExpertApplicationResponse,
    UserProfile,
    success_response,
)

__all__ = [
    "ApplicationStatus",
    "AssignmentStatus",
    "TaskPriority",
    "TaskStatus",
    "TicketStatus",
    "UserRole",
    "UserStatus",
    "ExpertApplicationResponse",
    "UserProfile",
    "success_response",
]
