# vnum_api/services/auth_service.py
import logging
from typing import Any, Dict, Optional, Tuple

from vnum_api.core.config import Settings
from vnum_api.core.constants import PASSWORD_RESET_TOKEN_TYPE, UserRole
from vnum_api.core.exceptions import (
    AccountRestrictedError,
    AppError,
    AuthenticationError,
    ConflictError,
    UpstreamError,
    ValidationError,
)
from vnum_api.core.security import SecurityUtils
from vnum_api.repositories.account_repository import AccountRepository
from vnum_api.services.email_service import EmailService
from vnum_api.services.validity_service import ResellerValidityService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_EXISTS = "Email already registered"
REJECTED_MESSAGE = "Your account has been rejected. Please contact support for more information."
PENDING_APPROVAL_MESSAGE = "Your account is pending approval. Please wait for administrator approval."
SUSPENDED_MESSAGE = "Your account has been suspended. Please contact admin for more information."
FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."
FORGOT_PASSWORD_INACTIVE_MESSAGE = "This account is inactive. Please contact support."


def public_user(account: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of an account row without its password hash"""
    return {k: v for k, v in account.items() if k != "password_hash"}


class AuthService:
    def __init__(
        self,
        accounts: AccountRepository,
        validity: ResellerValidityService,
        email: EmailService,
        settings: Settings,
    ):
        self.accounts = accounts
        self.validity = validity
        self.email = email
        self.settings = settings

    # ==================== LOOKUPS ====================
    def find_account_by_email(self, email: str) -> Tuple[Optional[Dict[str, Any]], Optional[UserRole]]:
        """Admins take precedence over resellers sharing the same email."""
        admin = self.accounts.get_admin_by_email(email)
        if admin:
            return admin, UserRole.ADMIN

        reseller = self.accounts.get_reseller_by_email(email)
        if reseller:
            return reseller, UserRole.RESELLER

        return None, None

    def _get_by_role(self, role: UserRole, user_id: str) -> Optional[Dict[str, Any]]:
        if role == UserRole.ADMIN:
            return self.accounts.get_admin_by_id(user_id)
        return self.accounts.get_reseller_by_id(user_id)

    def _update_password(self, role: UserRole, user_id: str, password_hash: str) -> Optional[Dict[str, Any]]:
        if role == UserRole.ADMIN:
            return self.accounts.update_admin_password(user_id, password_hash)
        return self.accounts.update_reseller_password(user_id, password_hash)

    # ==================== TOKENS ====================
    @staticmethod
    def create_tokens(account: Dict[str, Any], role: UserRole) -> Dict[str, str]:
        token_data = {
            "userId": account["id"],
            "email": account["email"],
            "role": role.value,
        }
        return {
            "token": SecurityUtils.create_access_token(token_data),
            "refreshToken": SecurityUtils.create_refresh_token(token_data),
        }

    # ==================== LOGIN / REGISTER ====================
    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate an admin or reseller with email and password.

        Stored hashes with a bcrypt prefix are checked with bcrypt; anything
        else is a legacy plaintext password compared directly.
        """
        account, role = self.find_account_by_email(email)

        if not account or not account.get("status"):
            logger.warning(f"Login attempt failed: no active account for email {email}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        stored = account.get("password_hash")
        if not SecurityUtils.check_stored_password(password, stored):
            logger.warning(f"Login attempt failed: invalid password for {role.value} {account['id']}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if role == UserRole.RESELLER:
            self._check_reseller_restrictions(account)

        if not SecurityUtils.is_bcrypt_hash(stored) and self.settings.LEGACY_PASSWORD_MIGRATION:
            self._migrate_legacy_password(account, role, password)

        tokens = self.create_tokens(account, role)
        logger.info(f"Login successful for {role.value} {account['id']}")

        return {
            **tokens,
            "user": {**public_user(account), "role": role.value},
            "message": "Login successful",
        }

    def _check_reseller_restrictions(self, account: Dict[str, Any]) -> None:
        if not account.get("approval_date"):
            if account.get("rejection_reason"):
                logger.warning(f"Login blocked: reseller {account['id']} was rejected")
                raise AccountRestrictedError(REJECTED_MESSAGE)
            logger.warning(f"Login blocked: reseller {account['id']} is pending approval")
            raise AccountRestrictedError(PENDING_APPROVAL_MESSAGE)

        if account.get("suspended_at"):
            logger.warning(f"Login blocked: reseller {account['id']} is suspended")
            raise AccountRestrictedError(SUSPENDED_MESSAGE)

        is_valid, message = self.validity.check_login_validity(account["id"])
        if not is_valid:
            logger.warning(f"Login blocked: reseller {account['id']} validity expired")
            raise AccountRestrictedError(message)

    def _migrate_legacy_password(self, account: Dict[str, Any], role: UserRole, password: str) -> None:
        try:
            self._update_password(role, account["id"], SecurityUtils.hash_password(password))
            logger.info(f"Migrated legacy password to bcrypt for {role.value} {account['id']}")
        except AppError as e:
            logger.error(f"Failed to migrate legacy password for {account['id']}: {e.message}")

    def register(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a reseller account. New resellers start inactive, pending
        admin approval, but still receive a token pair. Emails already used
        by an admin are refused too, since login resolves admins first.
        """
        account, _ = self.find_account_by_email(profile["email"])
        if account:
            raise ConflictError(EMAIL_EXISTS)

        password_hash = SecurityUtils.hash_password(profile["password"])
        data = {k: v for k, v in profile.items() if k != "password"}
        user = self.accounts.create_reseller({**data, "password_hash": password_hash})

        logger.info(f"Reseller registered: {user['id']}")
        tokens = self.create_tokens(user, UserRole.RESELLER)

        return {
            **tokens,
            "user": {**public_user(user), "role": UserRole.RESELLER.value},
            "message": "Registration successful",
        }

    def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Issue a new token pair. The old refresh token is not revoked.
        """
        payload = SecurityUtils.verify_token(refresh_token)
        if not payload or payload.get("type") == PASSWORD_RESET_TOKEN_TYPE:
            raise AuthenticationError("Invalid or expired refresh token")

        try:
            role = UserRole(payload.get("role", UserRole.RESELLER.value))
        except ValueError:
            raise AuthenticationError("Invalid or expired refresh token")

        email = payload.get("email") or ""
        if role == UserRole.ADMIN:
            account = self.accounts.get_admin_by_email(email)
        else:
            account = self.accounts.get_reseller_by_email(email)

        if not account or not account.get("status"):
            raise AuthenticationError("User not found or inactive")

        return {
            **self.create_tokens(account, role),
            "message": "Token refreshed successfully",
        }

    # ==================== PASSWORD MANAGEMENT ====================
    def forgot_password(self, email: str) -> Dict[str, Any]:
        """
        Send a reset link if the account exists. The answer for an unknown
        email is the same as for a known one; inactive accounts get their
        own message.
        """
        generic = {"success": True, "message": FORGOT_PASSWORD_MESSAGE}

        try:
            account, role = self.find_account_by_email(email)
        except UpstreamError as e:
            logger.error(f"Forgot password lookup failed: {e.message}")
            return generic

        if not account:
            logger.info("Password reset requested for an unknown email")
            return generic

        if not account.get("status"):
            return {"success": True, "message": FORGOT_PASSWORD_INACTIVE_MESSAGE}

        token = SecurityUtils.create_password_reset_token(account["id"], account["email"])
        reset_link = self.email.build_reset_link(token)

        if self.email.send_password_reset_email(account["email"], reset_link):
            logger.info(f"Password reset email sent for {role.value} {account['id']}")
        else:
            logger.error(f"Failed to send password reset email for {role.value} {account['id']}")

        return generic

    def reset_password(self, token: str, new_password: str) -> Dict[str, Any]:
        payload = SecurityUtils.verify_password_reset_token(token)
        if not payload:
            raise ValidationError("Invalid or expired reset token")

        user_id = payload.get("userId")
        password_hash = SecurityUtils.hash_password(new_password)

        last_error = None
        for role in (UserRole.ADMIN, UserRole.RESELLER):
            try:
                if self._update_password(role, user_id, password_hash):
                    logger.info(f"Password reset for {role.value} {user_id}")
                    return {"success": True, "message": "Password has been reset successfully"}
            except UpstreamError as e:
                last_error = e

        if last_error is not None:
            raise ValidationError(last_error.message)
        raise ValidationError("Failed to reset password. Account not found.")

    def change_password(self, user_id: str, current_password: str, new_password: str, role: str) -> Dict[str, Any]:
        """
        Change the password of an authenticated admin or reseller.
        """
        if len(new_password or "") < self.settings.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {self.settings.MIN_PASSWORD_LENGTH} characters long"
            )
        if new_password == current_password:
            raise ValidationError("New password must be different from current password")

        try:
            user_role = UserRole(role)
        except ValueError:
            raise ValidationError("Invalid user role")

        account = self._get_by_role(user_role, user_id)
        if not account:
            raise ValidationError("User not found.")
        if not account.get("status"):
            raise ValidationError("Account is inactive. Please contact support.")

        if not SecurityUtils.check_stored_password(current_password, account.get("password_hash")):
            raise ValidationError("Current password is incorrect.")

        updated = self._update_password(user_role, user_id, SecurityUtils.hash_password(new_password))
        if not updated:
            raise ValidationError("Failed to update password. Please try again.")

        name = f"{account.get('first_name') or ''} {account.get('last_name') or ''}".strip()
        if not self.email.send_password_change_notification(account["email"], name):
            logger.warning(f"Failed to send password change email for {user_id}")

        return {"success": True, "message": "Password changed successfully."}
