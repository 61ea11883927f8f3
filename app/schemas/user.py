from pydantic import AliasChoices, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime
import re
from app.models.user import UserRole, UserStatus
from app.schemas.common import CamelModel, Pagination

def normalize_phone(phone: str) -> str:
    phone = re.sub(r'[\s\-()]', '', phone or '')
    if not re.match(r'^\+?\d{7,15}$', phone):
        raise ValueError('Invalid phone number')
    return phone

class AgentProfile(CamelModel):
    experience: int = 0
    specializations: List[str] = []
    rating: float = 0
    review_count: int = 0
    about_me: str = ""
    service_areas: List[str] = []

class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str
    password: str = Field(..., min_length=6)
    user_type: UserRole = UserRole.BUYER

    # Agent sign-up extras
    experience: Optional[int] = None
    specializations: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v)

    @field_validator('user_type')
    @classmethod
    def no_self_service_admins(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError('Admin accounts cannot be self-registered')
        return v

class UserLogin(CamelModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: str
    user_type: Optional[UserRole] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v) if v else v

class SendOtpRequest(CamelModel):
    phone: str

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v)

class VerifyOtpRequest(SendOtpRequest):
    otp: str = Field(..., min_length=4, max_length=6)

class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None
    favorites: Optional[List[str]] = None
    agent_profile: Optional[AgentProfile] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v) if v else v

class UserSummary(CamelModel):
    """The short user block returned alongside a session token."""
    id: UUID
    name: str
    email: Optional[str] = None
    phone: str
    user_type: UserRole = Field(
        validation_alias=AliasChoices("role", "userType", "user_type"),
        serialization_alias="userType",
    )

class UserResponse(UserSummary):
    status: UserStatus
    preferences: Optional[Dict[str, Any]] = None
    favorites: List[Any] = []
    agent_profile: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("favorites", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or []

class TokenResponse(CamelModel):
    token: str
    user: UserSummary

class UserStatusUpdate(CamelModel):
    status: UserStatus

class UserList(CamelModel):
    users: List[UserResponse]
    pagination: Pagination
