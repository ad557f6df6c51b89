"""Pydantic schemas for registration, login, tokens, and profile.

Learn: Request models only describe shape. Policy (email format,
password length, non-empty names) is enforced by the SessionManager,
so the same rules hold whether a call comes over HTTP or not.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: str
    password: str
    display_name: str


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None


# ─── Responses ──────────────────────────────────────────

class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileRead(UserRead):
    updated_at: datetime


class TokensRead(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserRead
    tokens: TokensRead

    model_config = {"from_attributes": True}


class RefreshResponse(BaseModel):
    tokens: TokensRead


class AckResponse(BaseModel):
    ok: bool = True
