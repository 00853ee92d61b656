"""
Response Models
--------------
Pydantic models for API response validation.
Simple, focused schemas for returning data to clients, plus the success
envelope every endpoint uses.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Build the common ``{success, data, message}`` envelope."""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def pagination_block(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


class CamelResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# USER RESPONSE MODEL
# ============================================================================
class UserProfile(CamelResponse):
    """Response schema for user data - no sensitive info"""

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    status: str
    org_id: str
    email_verified: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserProfile":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row.get("phone"),
            role=str(row["role"]).upper(),
            status=str(row["status"]).upper(),
            org_id=row["org_id"],
            email_verified=bool(row.get("email_verified")),
            created_at=row.get("created_at"),
        )


# ============================================================================
# EXPERT APPLICATION RESPONSE MODELS
# ============================================================================
class ExpertApplicationResponse(CamelResponse):
    id: str
    user_id: str
    org_id: str
    status: str
    phone: Optional[str] = None
    dob: Optional[str] = None
    address: Optional[str] = None
    work_experience: Optional[int] = None
    bio: Optional[str] = None
    domains: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    availability: Optional[Any] = None
    hourly_rate: Optional[float] = None
    languages: List[str] = Field(default_factory=list)
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ExpertApplicationResponse":
        data = dict(row)
        for list_field in ("domains", "skills", "languages"):
            data[list_field] = data.get(list_field) or []
        return cls.model_validate(data)


class ApplicationSummary(CamelResponse):
    """Application state embedded in the /me response."""

    status: str = "NONE"
    application_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


# ============================================================================
# HEALTH CHECK RESPONSE MODELS
# ============================================================================
class HealthStatus(BaseModel):
    """Basic service health information."""

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="Application version")


class DependencyHealth(BaseModel):
    """Health of each backing service."""

    status: str = Field(..., description="'healthy' or 'unhealthy'")
    database: str = Field(..., description="Database status")
    redis: str = Field(..., description="Redis status: healthy, unhealthy or disabled")
    timestamp: datetime
