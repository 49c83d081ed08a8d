from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from vnum_api.core.constants import BCRYPT_MAX_PASSWORD_BYTES


def _check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {BCRYPT_MAX_PASSWORD_BYTES} bytes")
    return v


# -------------------------- REQUESTS ---------------------------------------
class UserLogin(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ResellerRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=6)

    @field_validator("password")
    def validate_password(cls, v):
        return _check_password_bytes(v)


class RefreshTokenRequest(BaseModel):
    refreshToken: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)

    @field_validator("password")
    def validate_password(cls, v):
        return _check_password_bytes(v)


class ChangePasswordRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)

    @field_validator("newPassword")
    def validate_new_password(cls, v):
        return _check_password_bytes(v)


# -------------------------- RESPONSES --------------------------------------
class AuthResponse(BaseModel):
    """Login/register answer. ``user`` is the account row without its hash."""
    success: bool = True
    token: str
    refreshToken: str
    user: Dict[str, Any]
    message: Optional[str] = None


class TokenPairResponse(BaseModel):
    success: bool = True
    token: str
    refreshToken: str
    message: Optional[str] = None


class VerifyResponse(BaseModel):
    success: bool = True
    user: Dict[str, Any]


class MessageResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = True
    message: str
