"""Reset an admin's password.

Looks the admin up by email, stores a bcrypt hash of the new password and
checks that the stored hash verifies.

Usage:
    python -m vnum_api.scripts.reset_admin_password --email admin@example.com --password 'new-secret'
"""

import argparse
import getpass
import sys

from vnum_api.core.config import get_settings
from vnum_api.core.exceptions import AppError
from vnum_api.core.hasura import HasuraClient
from vnum_api.core.security import SecurityUtils
from vnum_api.repositories.account_repository import AccountRepository


def reset_admin_password(accounts: AccountRepository, email: str, new_password: str) -> bool:
    admin = accounts.get_admin_by_email(email)
    if not admin:
        print(f"❌ Admin not found: {email}")
        return False

    print(f"Admin: {admin.get('first_name') or ''} {admin.get('last_name') or ''} ({admin['id']})")

    password_hash = SecurityUtils.hash_password(new_password)
    if not SecurityUtils.verify_password(new_password, password_hash):
        print("❌ Generated hash does not verify, aborting")
        return False

    updated = accounts.update_admin_password(admin["id"], password_hash)
    if not updated:
        print("❌ Password update did not match any admin row")
        return False

    print("✅ Password updated successfully")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reset an admin password")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", help="New password (prompted when omitted)")
    args = parser.parse_args(argv)

    settings = get_settings()
    password = args.password or getpass.getpass("New password: ")
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        print(f"❌ Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return 1

    client = HasuraClient.from_settings(settings)
    try:
        ok = reset_admin_password(AccountRepository(client), args.email, password)
    except AppError as e:
        print(f"\n❌ Error: {e.message}")
        return 1
    finally:
        client.close()

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
