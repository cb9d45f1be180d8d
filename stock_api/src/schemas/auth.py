from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Email/password credentials."""
    email: str = Field(..., min_length=1, description="User email")
    password: str = Field(..., min_length=1, description="User password")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., min_length=1, description="Refresh token issued at login")


class UserInfo(BaseModel):
    """Current user profile returned with tokens and from /auth/me."""
    id: int = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    username: str = Field(..., description="Username")
    first_name: str = Field("", description="First name")
    last_name: str = Field("", description="Last name")
    roles: List[str] = Field(default_factory=list, description="Role names assigned to the user")
    must_change_password: bool = Field(False, description="User must change password before continuing")


class AuthResponse(BaseModel):
    """Access and refresh tokens with the authenticated user."""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="Opaque refresh token")
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    expires_at: datetime = Field(..., description="Access token expiry (UTC)")
    user: UserInfo = Field(..., description="Authenticated user")


class ChangePasswordRequest(BaseModel):
    """Change password with the current password."""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)


class ForceChangePasswordRequest(BaseModel):
    """Set a new password for a user flagged with must_change_password."""
    new_password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)


class ClaimItem(BaseModel):
    """Claim type/value pair."""
    type: str = Field(..., min_length=1, max_length=100, description="Claim type, e.g. 'Permission'")
    value: str = Field(..., min_length=1, max_length=200, description="Claim value, e.g. 'CanViewProducts'")


class UserRead(BaseModel):
    """User listing model."""
    id: int = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    username: str = Field(..., description="Username")
    first_name: str = Field("")
    last_name: str = Field("")
    is_active: bool = Field(..., description="Active flag")
    must_change_password: bool = Field(..., description="Password change required on next login")
    created_at: datetime = Field(..., description="Created timestamp")
    roles: List[str] = Field(default_factory=list, description="Role names assigned to the user")
    claims: List[str] = Field(default_factory=list, description="Direct user claims as 'type:value'")


class UserCreate(BaseModel):
    """Admin create user payload."""
    email: EmailStr = Field(..., description="Email")
    password: str = Field(..., min_length=6, description="Password")
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    username: Optional[str] = Field(None, max_length=256, description="Defaults to the email")
    role: Optional[str] = Field(None, description="Single role: Admin, Manager or User (default User)")
    must_change_password: bool = Field(True, description="Require password change on first login")


class UserUpdate(BaseModel):
    """Admin update user payload. Only provided fields are changed."""
    email: Optional[EmailStr] = Field(None)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = Field(None)
    role: Optional[str] = Field(None, description="Replaces the user's single role")


class RoleRead(BaseModel):
    """Role with its claims."""
    id: int = Field(..., description="Role ID")
    name: str = Field(..., description="Role name")
    claims: List[ClaimItem] = Field(default_factory=list)


class RoleCreate(BaseModel):
    """Create role payload."""
    name: str = Field(..., min_length=1, max_length=100, description="Role name")
    claims: List[ClaimItem] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Update role payload. Claims, when provided, replace the existing set."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    claims: Optional[List[ClaimItem]] = Field(None)
