# vnum_api/core/security.py
from jose import JWTError, jwt
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any
import logging
import re
import bcrypt

from vnum_api.core.config import get_settings, DEFAULT_JWT_SECRET
from vnum_api.core.constants import (
    BCRYPT_MAX_PASSWORD_BYTES,
    BCRYPT_PREFIXES,
    PASSWORD_RESET_TOKEN_TYPE,
)
from vnum_api.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """Parse durations like "7d", "12h", "30m", "45s" or a bare number of seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _secret() -> str:
    secret = get_settings().JWT_SECRET
    if secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set, using the fallback secret")
    return secret


class SecurityUtils:
    # ==================== PASSWORD HANDLING ====================
    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash a password with bcrypt (cost factor from BCRYPT_ROUNDS).
        Passwords over 72 UTF-8 bytes are rejected rather than truncated.
        """
        if not password:
            raise ValueError("Password cannot be empty")
        if len(password.encode('utf-8')) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password cannot be longer than {BCRYPT_MAX_PASSWORD_BYTES} bytes")

        salt = bcrypt.gensalt(rounds=get_settings().BCRYPT_ROUNDS)
        hashed_bytes = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed_bytes.decode('utf-8')

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a bcrypt hash. Never raises.
        """
        if not plain_password or not hashed_password:
            return False

        try:
            return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
        except ValueError:
            return False

    @staticmethod
    def is_bcrypt_hash(value: Optional[str]) -> bool:
        return bool(value) and value.startswith(BCRYPT_PREFIXES)

    @staticmethod
    def check_stored_password(plain_password: str, stored: Optional[str]) -> bool:
        """
        Check a password against whatever is stored for the account:
        a bcrypt hash, or a legacy plaintext value awaiting migration.
        """
        if not plain_password or not stored:
            return False

        if SecurityUtils.is_bcrypt_hash(stored):
            return SecurityUtils.verify_password(plain_password, stored)

        logger.warning("Legacy plain text password detected, account still needs migration")
        return plain_password == stored

    # ==================== JWT TOKEN GENERATION ====================
    @staticmethod
    def _encode(data: Dict[str, Any], expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({
            "iat": now,
            "exp": now + expires_delta,
        })
        return jwt.encode(to_encode, _secret(), algorithm=ALGORITHM)

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a session token (JWT_EXPIRES_IN, 7 days by default)"""
        if expires_delta is None:
            expires_delta = parse_duration(get_settings().JWT_EXPIRES_IN)
        return SecurityUtils._encode(data, expires_delta)

    @staticmethod
    def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a refresh token (30 days by default)"""
        if expires_delta is None:
            expires_delta = parse_duration(get_settings().JWT_REFRESH_EXPIRES_IN)
        return SecurityUtils._encode(data, expires_delta)

    @staticmethod
    def create_password_reset_token(user_id: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a short-lived token that can only be used to reset a password"""
        if expires_delta is None:
            expires_delta = parse_duration(get_settings().PASSWORD_RESET_EXPIRES_IN)
        payload = {
            "userId": user_id,
            "email": email,
            "type": PASSWORD_RESET_TOKEN_TYPE,
        }
        return SecurityUtils._encode(payload, expires_delta)

    # ==================== TOKEN VERIFICATION ====================
    @staticmethod
    def verify_token(token: str) -> Optional[Dict[str, Any]]:
        """Decode a signed token. Returns None when the signature or expiry check fails."""
        if not token:
            return None
        try:
            return jwt.decode(token, _secret(), algorithms=[ALGORITHM])
        except JWTError:
            return None

    @staticmethod
    def verify_password_reset_token(token: str) -> Optional[Dict[str, Any]]:
        """Like verify_token, but only accepts password reset tokens"""
        payload = SecurityUtils.verify_token(token)
        if not payload or payload.get("type") != PASSWORD_RESET_TOKEN_TYPE:
            return None
        return payload
