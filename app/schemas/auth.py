from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.config import settings


class Identity(BaseModel):
    """Caller identity passed explicitly into every service call."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: str
    email: Optional[str] = None
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    role: str = Field(default="student")

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        if value not in settings.authorization_roles:
            raise ValueError(
                f"Role must be one of: {', '.join(settings.authorization_roles)}"
            )
        return value


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    role: str
    is_active: bool
    created_at: datetime


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds
    user: UserResponse
