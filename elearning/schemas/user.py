# elearning/schemas/user.py

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

RoleName = Literal["student", "instructor", "admin"]


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class SocialLinks(BaseModel):
    website: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None


class UserPublic(BaseModel):
    """Short user card embedded in courses, reviews and enrollments"""

    id: int
    first_name: str
    last_name: str
    email: str
    avatar: Optional[str] = None
    bio: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: int
    email: str
    role: str
    first_name: str
    last_name: str
    full_name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    social_links: Optional[SocialLinks] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    size: int
    total_pages: int


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile"""

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=30)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    social_links: Optional[SocialLinks] = None


class AdminUserUpdateRequest(ProfileUpdateRequest):
    """Request to update user information (admin only)"""

    email: Optional[EmailStr] = None
    role: Optional[RoleName] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower() if value else value


class UpdateRoleRequest(BaseModel):
    role: RoleName


class UpdateStatusRequest(BaseModel):
    is_active: bool
