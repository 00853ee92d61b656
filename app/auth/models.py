"""
JWT Authentication Models
-------------------------
Pydantic models for credential payloads and the auth request bodies.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.request_models import UserRole


class AuthTokenPayload(BaseModel):
    """
    Bearer credential claim set.

    Only non-sensitive identity data is embedded; the signature makes it
    tamper-evident, not secret.
    """

    user_id: str = Field(..., description="Subject identifier")
    email: str = Field(..., description="Account email")
    name: str = Field(default="", description="Display name")
    role: UserRole = Field(..., description="Role at the time of issue")
    org_id: str = Field(..., description="Tenant the subject belongs to")
    exp: datetime = Field(..., description="Expiration timestamp")
    iat: datetime = Field(..., description="Issued-at timestamp")
    type: str = Field(default="access", description="Credential type")

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "jane@proveloce.io",
                "name": "Jane",
                "role": "CUSTOMER",
                "org_id": "ORG-DEFAULT",
                "exp": "2025-10-28T10:30:00Z",
                "iat": "2025-10-21T10:30:00Z",
                "type": "access",
            }
        }


class AuthLoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Account password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()

    class Config:
        json_schema_extra = {
            "example": {"email": "jane@proveloce.io", "password": "Secret123!"}
        }


class AuthSignupRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class AuthRefreshRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refresh_token: str = Field(..., min_length=1, description="Opaque refresh credential")


class AuthLogoutRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refresh_token: Optional[str] = None
    revoke_all: bool = False
