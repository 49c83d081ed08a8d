from enum import Enum


class UserRole(str, Enum):
    ADMIN = 'admin'
    RESELLER = 'reseller'


class WalletTransactionType(str, Enum):
    CREDIT = 'CREDIT'
    DEBIT = 'DEBIT'


class ValidityStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    EXPIRED = 'EXPIRED'
    SUSPENDED = 'SUSPENDED'


class ValidityAction(str, Enum):
    WALLET_RECHARGE_RESET = 'WALLET_RECHARGE_RESET'
    ADMIN_RESET = 'ADMIN_RESET'
    MANUAL_UPDATE = 'MANUAL_UPDATE'


# Used as the "type" claim of password reset tokens
PASSWORD_RESET_TOKEN_TYPE = 'password_reset'

BCRYPT_PREFIXES = ('$2a$', '$2b$')

DEFAULT_WALLET_USER_TYPE = 'RESELLER'

# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72
