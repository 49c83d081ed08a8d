# vnum_api/routes/auth.py
from fastapi import APIRouter, Depends, status
from typing import Any, Dict
from vnum_api.core.auth_dependencies import get_auth_service, get_current_user
from vnum_api.services.auth_service import AuthService
from vnum_api.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MessageResponse,
    RefreshTokenRequest,
    ResellerRegister,
    ResetPasswordRequest,
    TokenPairResponse,
    UserLogin,
    VerifyResponse,
)
import logging

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@auth_router.post("/login", response_model=AuthResponse)
def login(login_data: UserLogin, auth_service: AuthService = Depends(get_auth_service)):
    """
    Login with email and password. Admin accounts are checked before resellers.
    """
    return auth_service.login(login_data.email, login_data.password)


@auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(register_data: ResellerRegister, auth_service: AuthService = Depends(get_auth_service)):
    """
    Register a new reseller (inactive until approved by an admin)
    """
    return auth_service.register(register_data.model_dump())


@auth_router.get("/verify", response_model=VerifyResponse)
def verify(current_user: Dict[str, Any] = Depends(get_current_user)):
    return {"user": current_user}


@auth_router.post("/refresh", response_model=TokenPairResponse)
def refresh_tokens(refresh_data: RefreshTokenRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Issue a new access/refresh token pair
    """
    return auth_service.refresh_token(refresh_data.refreshToken)


@auth_router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(data: ForgotPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    return auth_service.forgot_password(data.email)


@auth_router.post("/reset-password", response_model=MessageResponse)
def reset_password(data: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    return auth_service.reset_password(data.token, data.password)


@auth_router.post("/change-password", response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Change the password of the authenticated user
    """
    return auth_service.change_password(
        current_user.get("userId"),
        data.currentPassword,
        data.newPassword,
        current_user.get("role"),
    )
