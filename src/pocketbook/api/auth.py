"""Auth API — registration, login, token rotation, profile.

Learn: Routes for the user session lifecycle:
- POST /auth/register → create account + first token pair
- POST /auth/login → email/password → token pair
- POST /auth/refresh → single-use refresh token → new pair
- POST /auth/logout → forget a refresh token (always succeeds)
- GET /auth/me → current user profile
- PUT /auth/profile → change display name / email
- POST /auth/change-password → re-check current password, set new one

Routes only translate HTTP ↔ SessionManager calls. All rules live in
the service, all error rendering in api/errors.py.
"""

from fastapi import APIRouter, Depends

from pocketbook.auth.dependencies import get_current_user, get_session_manager
from pocketbook.auth.identity import AuthContext
from pocketbook.schemas.auth import (
    AckResponse,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    ProfileRead,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    TokensRead,
    UpdateProfileRequest,
)
from pocketbook.services.auth_service import SessionManager

router = APIRouter(prefix="/auth")


# ─── Register / Login ───────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest, manager: SessionManager = Depends(get_session_manager)
):
    """Create a new user account and start a session."""
    return await manager.register(
        email=body.email, password=body.password, display_name=body.display_name
    )


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, manager: SessionManager = Depends(get_session_manager)):
    """Login with email and password → JWT tokens."""
    return await manager.login(email=body.email, password=body.password)


# ─── Refresh / Logout ───────────────────────────────────


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest, manager: SessionManager = Depends(get_session_manager)
):
    """Exchange a refresh token for a new pair. The old token stops working."""
    tokens = await manager.refresh(body.refresh_token)
    return RefreshResponse(tokens=TokensRead.model_validate(tokens))


@router.post("/logout", response_model=AckResponse)
async def logout(body: LogoutRequest, manager: SessionManager = Depends(get_session_manager)):
    await manager.logout(body.refresh_token)
    return AckResponse()


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=ProfileRead)
async def get_me(
    identity: AuthContext = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    return await manager.get_profile(identity.user_id)


@router.put("/profile", response_model=ProfileRead)
async def update_profile(
    body: UpdateProfileRequest,
    identity: AuthContext = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    return await manager.update_profile(
        identity.user_id, display_name=body.display_name, email=body.email
    )


@router.post("/change-password", response_model=AckResponse)
async def change_password(
    body: ChangePasswordRequest,
    identity: AuthContext = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    await manager.change_password(
        identity.user_id,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    return AckResponse()
