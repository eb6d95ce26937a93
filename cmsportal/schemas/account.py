"""Admin account and local login schemas"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

AccountRole = Literal["admin", "editor"]


class AdminAccount(BaseModel):
    """Stored admin account. ``password_hash`` never leaves the service."""

    id: str
    username: str
    email: str
    password_hash: str
    role: AccountRole = "admin"
    is_active: bool = True
    created_at: datetime
    last_login: Optional[datetime] = None


class AdminAccountPublic(BaseModel):
    id: str
    username: str
    email: str
    role: AccountRole
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    role: AccountRole = "editor"


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int   # seconds until expiry
    account: AdminAccountPublic


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class LogoutResponse(BaseModel):
    logged_out: bool
    redirect_to: str
