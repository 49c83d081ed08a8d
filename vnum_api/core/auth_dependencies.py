from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Any, Dict, Optional

from vnum_api.core.config import Settings, get_settings
from vnum_api.core.constants import PASSWORD_RESET_TOKEN_TYPE
from vnum_api.core.hasura import HasuraClient
from vnum_api.core.security import SecurityUtils
from vnum_api.repositories.account_repository import AccountRepository
from vnum_api.repositories.validity_repository import ValidityRepository
from vnum_api.repositories.wallet_repository import WalletRepository
from vnum_api.services.auth_service import AuthService
from vnum_api.services.email_service import EmailService
from vnum_api.services.validity_service import ResellerValidityService
from vnum_api.services.wallet_service import WalletService

security = HTTPBearer(auto_error=False)


# ==================== SERVICES ====================
def get_hasura_client(request: Request) -> HasuraClient:
    return request.app.state.hasura


def get_validity_service(
    client: HasuraClient = Depends(get_hasura_client),
    settings: Settings = Depends(get_settings),
) -> ResellerValidityService:
    return ResellerValidityService(ValidityRepository(client), default_days=settings.DEFAULT_VALIDITY_DAYS)


def get_wallet_service(
    client: HasuraClient = Depends(get_hasura_client),
    validity_service: ResellerValidityService = Depends(get_validity_service),
    settings: Settings = Depends(get_settings),
) -> WalletService:
    return WalletService(WalletRepository(client), validity_service, max_attempts=settings.WALLET_UPDATE_ATTEMPTS)


def get_auth_service(
    client: HasuraClient = Depends(get_hasura_client),
    validity_service: ResellerValidityService = Depends(get_validity_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(AccountRepository(client), validity_service, EmailService(settings), settings)


# ==================== AUTHENTICATION ====================
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Decoded access token payload: ``{userId, email, role, iat, exp}``."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = SecurityUtils.verify_token(credentials.credentials)

    # Reset tokens share the signing key but never grant access
    if not payload or payload.get("type") == PASSWORD_RESET_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    return payload


def require_role(required_roles: list[str]):
    def role_checker(current_user: Dict[str, Any] = Depends(get_current_user)):
        if current_user.get("role") not in required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return role_checker
