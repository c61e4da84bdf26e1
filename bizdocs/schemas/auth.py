from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, Literal


RoleType = Literal["admin", "manager", "user"]


class UserBase(BaseModel):
    """Base user schema."""

    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserCreate(UserBase):
    """Schema for adding a user to the current company."""

    password: str = Field(..., min_length=8)
    role: RoleType = "user"


class UserResponse(UserBase):
    """Schema for user response."""

    id: int
    company_id: int
    role: RoleType = "user"
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Paginated user list response."""
    items: list[UserResponse]
    total: int
    page: int
    page_size: int


class RoleUpdate(BaseModel):
    role: RoleType


class RegisterRequest(UserBase):
    """Sign-up: creates a company and its first (admin) user."""

    password: str = Field(..., min_length=8)
    company_name: str = Field(..., min_length=1, max_length=200)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class AuthMeResponse(BaseModel):
    """Response wrapper for /auth/me."""

    user: UserResponse


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    user: Optional[UserResponse] = None


class TokenData(BaseModel):
    """Data encoded in JWT token."""

    user_id: Optional[int] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str
