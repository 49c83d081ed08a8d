"""
Shared fixtures: test settings, in-memory stand-ins for the Hasura-backed
repositories, and a FastAPI TestClient wired to them through dependency
overrides.
"""

import os

# Settings are read from the environment on first use
os.environ["HASURA_GRAPHQL_ENDPOINT"] = "http://hasura.test/v1/graphql"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["NODE_ENV"] = "test"
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from vnum_api.core.config import get_settings
from vnum_api.core.constants import ValidityStatus
from vnum_api.core.exceptions import UpstreamError
from vnum_api.core.security import SecurityUtils
from vnum_api.utils.dates import parse_timestamp

get_settings.cache_clear()

from vnum_api.core.auth_dependencies import (  # noqa: E402
    get_auth_service,
    get_validity_service,
    get_wallet_service,
)
from vnum_api.main import create_app  # noqa: E402
from vnum_api.services.auth_service import AuthService  # noqa: E402
from vnum_api.services.validity_service import ResellerValidityService  # noqa: E402
from vnum_api.services.wallet_service import WalletService  # noqa: E402

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


# ---------------------------------------------------------------------------
# In-memory repositories
# ---------------------------------------------------------------------------
class FakeAccountRepository:
    def __init__(self):
        self.admins: Dict[str, Dict[str, Any]] = {}
        self.resellers: Dict[str, Dict[str, Any]] = {}
        self.created: List[Dict[str, Any]] = []
        self.fail_lookups = False

    def add_admin(self, email: str, password_hash: str, status: bool = True, **fields) -> Dict[str, Any]:
        row = {"id": _next_id("admin"), "email": email, "password_hash": password_hash,
               "status": status, "first_name": "Ada", "last_name": "Admin", **fields}
        self.admins[row["id"]] = row
        return row

    def add_reseller(self, email: str, password_hash: str, status: bool = True, **fields) -> Dict[str, Any]:
        row = {"id": _next_id("reseller"), "email": email, "password_hash": password_hash,
               "status": status, "first_name": "Rita", "last_name": "Reseller",
               "approval_date": "2025-01-15T09:00:00+00:00", "rejection_reason": None,
               "suspended_at": None, **fields}
        self.resellers[row["id"]] = row
        return row

    def _by_email(self, table, email):
        if self.fail_lookups:
            raise UpstreamError("Failed to query user from database")
        for row in table.values():
            if row["email"] == email:
                return dict(row)
        return None

    def get_admin_by_email(self, email):
        return self._by_email(self.admins, email)

    def get_reseller_by_email(self, email):
        return self._by_email(self.resellers, email)

    def get_admin_by_id(self, admin_id):
        row = self.admins.get(admin_id)
        return dict(row) if row else None

    def get_reseller_by_id(self, reseller_id):
        row = self.resellers.get(reseller_id)
        return dict(row) if row else None

    def create_reseller(self, profile):
        row = {"id": _next_id("reseller"), **profile, "status": False, "current_step": 1,
               "approval_date": None, "rejection_reason": None, "suspended_at": None}
        self.resellers[row["id"]] = row
        self.created.append(row)
        return dict(row)

    def _update(self, table, user_id, password_hash):
        row = table.get(user_id)
        if not row:
            return None
        row["password_hash"] = password_hash
        return {"id": user_id, "email": row["email"]}

    def update_admin_password(self, admin_id, password_hash):
        return self._update(self.admins, admin_id, password_hash)

    def update_reseller_password(self, reseller_id, password_hash):
        return self._update(self.resellers, reseller_id, password_hash)


class FakeWalletRepository:
    def __init__(self):
        self.wallets: Dict[str, Dict[str, Any]] = {}
        self.transactions: List[Dict[str, Any]] = []
        # Amounts another writer adds to the balance right before our next update
        self.interfering_writes: List[Decimal] = []
        self.apply_calls = 0
        self.fail_transactions = False

    def add_wallet(self, reseller_id: str, balance: Decimal = Decimal("0")) -> Dict[str, Any]:
        wallet = self.create(reseller_id)
        self.wallets[wallet["id"]].update(balance=balance, credit_amount=balance)
        return dict(self.wallets[wallet["id"]])

    def get_by_reseller(self, reseller_id):
        for wallet in self.wallets.values():
            if wallet["reseller_id"] == reseller_id:
                return dict(wallet)
        return None

    def get_by_id(self, wallet_id):
        wallet = self.wallets.get(wallet_id)
        return dict(wallet) if wallet else None

    def list_wallets(self, limit=100, offset=0):
        return [dict(w) for w in list(self.wallets.values())[offset:offset + limit]]

    def create(self, reseller_id, user_type="RESELLER"):
        wallet = {
            "id": _next_id("wallet"),
            "reseller_id": reseller_id,
            "user_type": user_type,
            "balance": Decimal("0"),
            "credit_amount": Decimal("0"),
            "debit_amount": Decimal("0"),
            "last_transaction_at": None,
        }
        self.wallets[wallet["id"]] = wallet
        return dict(wallet)

    def apply_delta(self, wallet_id, expected_balance, balance_delta,
                    credit_delta=Decimal("0"), debit_delta=Decimal("0"), at=None):
        self.apply_calls += 1
        wallet = self.wallets.get(wallet_id)
        if wallet is None:
            return None
        if self.interfering_writes:
            wallet["balance"] += self.interfering_writes.pop(0)
        if wallet["balance"] != expected_balance:
            return None
        wallet["balance"] += balance_delta
        wallet["credit_amount"] += credit_delta
        wallet["debit_amount"] += debit_delta
        wallet["last_transaction_at"] = (at or NOW).isoformat()
        return dict(wallet)

    def create_transaction(self, wallet_id, transaction_type, amount, balance_before, balance_after,
                           description=None, reference=None):
        if self.fail_transactions:
            raise UpstreamError("Failed to create transaction")
        row = {
            "id": _next_id("txn"),
            "wallet_id": wallet_id,
            "transaction_type": transaction_type.value,
            "amount": amount,
            "balance_before": balance_before,
            "balance_after": balance_after,
            "description": description,
            "reference": reference,
        }
        self.transactions.append(row)
        return dict(row)

    def list_transactions(self, wallet_ids):
        return [dict(t) for t in reversed(self.transactions) if t["wallet_id"] in wallet_ids]

    def list_all_transactions(self):
        return [dict(t) for t in reversed(self.transactions)]

    def ledger_totals(self, wallet_id):
        rows = [t for t in self.transactions if t["wallet_id"] == wallet_id]
        credits = sum((t["amount"] for t in rows if t["transaction_type"] == "CREDIT"), Decimal("0"))
        debits = sum((t["amount"] for t in rows if t["transaction_type"] == "DEBIT"), Decimal("0"))
        return credits, debits


class FakeValidityRepository:
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.history_rows: List[Dict[str, Any]] = []
        self.fail_get = False
        self.fail_upsert = False

    def get(self, reseller_id):
        if self.fail_get:
            raise UpstreamError("Failed to get reseller validity")
        row = self.rows.get(reseller_id)
        return dict(row) if row else None

    def history(self, reseller_id, limit=50):
        rows = [dict(h) for h in reversed(self.history_rows) if h["reseller_id"] == reseller_id]
        return rows[:limit]

    def upsert_with_history(self, reseller_id, wallet_id, recharge_amount, start, end, validity_days,
                            action, previous_start=None, previous_end=None,
                            status=ValidityStatus.ACTIVE.value):
        if self.fail_upsert:
            raise UpstreamError("Failed to create or update reseller validity")
        row = {
            "id": self.rows.get(reseller_id, {}).get("id") or _next_id("validity"),
            "reseller_id": reseller_id,
            "validity_start_date": start.isoformat(),
            "validity_end_date": end.isoformat(),
            "validity_days": validity_days,
            "last_wallet_id": wallet_id,
            "last_recharge_amount": recharge_amount,
            "status": status,
        }
        history = {
            "id": _next_id("history"),
            "reseller_id": reseller_id,
            "wallet_id": wallet_id,
            "recharge_amount": recharge_amount,
            "previous_validity_start": previous_start,
            "previous_validity_end": previous_end,
            "new_validity_start": start.isoformat(),
            "new_validity_end": end.isoformat(),
            "validity_days": validity_days,
            "action": action,
        }
        self.rows[reseller_id] = row
        self.history_rows.append(history)
        return {"validity": dict(row), "history": dict(history)}

    def set_row(self, reseller_id: str, end: datetime, status: str = ValidityStatus.ACTIVE.value):
        self.rows[reseller_id] = {
            "id": _next_id("validity"),
            "reseller_id": reseller_id,
            "validity_start_date": (end - timedelta(days=365)).isoformat(),
            "validity_end_date": end.isoformat(),
            "validity_days": 365,
            "status": status,
        }

    def expire_lapsed(self, now):
        count = 0
        for row in self.rows.values():
            if row["status"] == ValidityStatus.ACTIVE.value and parse_timestamp(row["validity_end_date"]) < now:
                row["status"] = ValidityStatus.EXPIRED.value
                count += 1
        return count


class FakeEmailService:
    def __init__(self):
        self.reset_emails: List[tuple] = []
        self.change_notifications: List[tuple] = []
        self.deliver = True

    def build_reset_link(self, token):
        return f"http://localhost:5173/reset-password?token={token}"

    def send_password_reset_email(self, to_email, reset_link):
        self.reset_emails.append((to_email, reset_link))
        return self.deliver

    def send_password_change_notification(self, to_email, to_name):
        self.change_notifications.append((to_email, to_name))
        return self.deliver


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def accounts():
    return FakeAccountRepository()


@pytest.fixture
def wallet_repo():
    return FakeWalletRepository()


@pytest.fixture
def validity_repo():
    return FakeValidityRepository()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def validity_service(validity_repo, clock):
    return ResellerValidityService(validity_repo, default_days=365, clock=clock)


@pytest.fixture
def wallet_service(wallet_repo, validity_service):
    return WalletService(wallet_repo, validity_service, max_attempts=3)


@pytest.fixture
def auth_service(accounts, validity_service, email_service, settings):
    return AuthService(accounts, validity_service, email_service, settings)


@pytest.fixture
def app(settings, auth_service, wallet_service, validity_service):
    application = create_app(settings)
    application.dependency_overrides[get_auth_service] = lambda: auth_service
    application.dependency_overrides[get_wallet_service] = lambda: wallet_service
    application.dependency_overrides[get_validity_service] = lambda: validity_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def bearer(role: str = "admin", user_id: str = "admin-0", email: str = "admin@example.com") -> Dict[str, str]:
    token = SecurityUtils.create_access_token({"userId": user_id, "email": email, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return bearer("admin")


@pytest.fixture
def reseller_headers():
    return bearer("reseller", user_id="reseller-0", email="rita@example.com")


def hashed(password: str) -> str:
    return SecurityUtils.hash_password(password)