from datetime import date, timedelta
from decimal import Decimal

import pytest

from vnum_api.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from vnum_api.utils.dates import parse_timestamp

from conftest import NOW


class TestCredit:
    def test_credit_records_balances(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("100.00"))

        result = wallet_service.credit("reseller-1", Decimal("50.25"), reference="PAY-1")

        txn = result["transaction"]
        assert txn["transaction_type"] == "CREDIT"
        assert txn["balance_before"] == Decimal("100.00")
        assert txn["balance_after"] == Decimal("150.25")
        assert txn["description"] == "Wallet credit"
        assert txn["reference"] == "PAY-1"
        assert result["wallet"]["balance"] == Decimal("150.25")
        assert wallet_repo.wallets[wallet["id"]]["credit_amount"] == Decimal("150.25")

    def test_credit_creates_missing_wallet_once(self, wallet_service, wallet_repo):
        result = wallet_service.credit("reseller-new", Decimal("500"))

        assert len(wallet_repo.wallets) == 1
        assert result["wallet"]["balance"] == Decimal("500")
        assert result["transaction"]["balance_before"] == Decimal("0")
        assert result["transaction"]["balance_after"] == Decimal("500")

    def test_credit_resets_validity(self, wallet_service, wallet_repo, validity_repo):
        wallet_repo.add_wallet("reseller-1")

        result = wallet_service.credit("reseller-1", Decimal("10"))

        validity = result["validity"]["validity"]
        assert parse_timestamp(validity["validity_end_date"]) == NOW + timedelta(days=365)
        assert validity_repo.history_rows[-1]["action"] == "WALLET_RECHARGE_RESET"
        assert validity_repo.history_rows[-1]["recharge_amount"] == Decimal("10")

    def test_credit_with_custom_validity_date(self, wallet_service, wallet_repo, validity_repo):
        wallet_repo.add_wallet("reseller-1")

        result = wallet_service.credit("reseller-1", Decimal("10"), validity_date=date(2025, 3, 31))

        end = parse_timestamp(result["validity"]["validity"]["validity_end_date"])
        assert end.date() == date(2025, 3, 31)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)
        assert validity_repo.history_rows[-1]["action"] == "MANUAL_UPDATE"

    def test_validity_failure_does_not_fail_credit(self, wallet_service, wallet_repo, validity_repo):
        wallet_repo.add_wallet("reseller-1", Decimal("5"))
        validity_repo.fail_upsert = True

        result = wallet_service.credit("reseller-1", Decimal("10"))

        assert result["validity"] is None
        assert result["wallet"]["balance"] == Decimal("15")
        assert len(wallet_repo.transactions) == 1

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc", "NaN", "Infinity", None])
    def test_invalid_amounts(self, wallet_service, wallet_repo, amount):
        wallet_repo.add_wallet("reseller-1")

        with pytest.raises(ValidationError):
            wallet_service.credit("reseller-1", amount)
        assert wallet_repo.transactions == []


class TestDebit:
    def test_debit_subtracts(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("100"))

        result = wallet_service.debit("reseller-1", Decimal("30.50"), description="Number purchase")

        txn = result["transaction"]
        assert txn["transaction_type"] == "DEBIT"
        assert txn["balance_before"] == Decimal("100")
        assert txn["balance_after"] == Decimal("69.50")
        assert txn["description"] == "Number purchase"
        assert wallet_repo.wallets[wallet["id"]]["debit_amount"] == Decimal("30.50")

    def test_debit_entire_balance(self, wallet_service, wallet_repo):
        wallet_repo.add_wallet("reseller-1", Decimal("25"))

        assert wallet_service.debit("reseller-1", Decimal("25"))["wallet"]["balance"] == Decimal("0")

    def test_insufficient_balance(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("10"))

        with pytest.raises(InsufficientBalanceError) as exc:
            wallet_service.debit("reseller-1", Decimal("10.01"))

        assert exc.value.message == "Insufficient wallet balance"
        assert exc.value.status_code == 400
        assert wallet_repo.wallets[wallet["id"]]["balance"] == Decimal("10")
        assert wallet_repo.transactions == []

    def test_missing_wallet(self, wallet_service):
        with pytest.raises(NotFoundError):
            wallet_service.debit("reseller-none", Decimal("1"))


class TestConcurrentUpdates:
    def test_retries_after_concurrent_write(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("100"))
        wallet_repo.interfering_writes = [Decimal("5")]

        result = wallet_service.credit("reseller-1", Decimal("10"))

        assert wallet_repo.apply_calls == 2
        assert result["transaction"]["balance_before"] == Decimal("105")
        assert result["transaction"]["balance_after"] == Decimal("115")
        assert wallet_repo.wallets[wallet["id"]]["balance"] == Decimal("115")

    def test_gives_up_after_max_attempts(self, wallet_service, wallet_repo):
        wallet_repo.add_wallet("reseller-1", Decimal("100"))
        wallet_repo.interfering_writes = [Decimal("1")] * 3

        with pytest.raises(ConflictError):
            wallet_service.debit("reseller-1", Decimal("10"))

        assert wallet_repo.apply_calls == 3
        assert wallet_repo.transactions == []

    def test_retry_rechecks_balance(self, wallet_service, wallet_repo):
        wallet_repo.add_wallet("reseller-1", Decimal("20"))
        wallet_repo.interfering_writes = [Decimal("-15")]

        with pytest.raises(InsufficientBalanceError):
            wallet_service.debit("reseller-1", Decimal("10"))


class TestLedgerInsertFailure:
    def test_credit_is_reverted(self, wallet_service, wallet_repo, validity_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("100"))
        wallet_repo.fail_transactions = True

        with pytest.raises(UpstreamError):
            wallet_service.credit("reseller-1", Decimal("50"))

        stored = wallet_repo.wallets[wallet["id"]]
        assert stored["balance"] == Decimal("100")
        assert stored["credit_amount"] == Decimal("100")
        assert wallet_repo.transactions == []
        assert validity_repo.history_rows == []

    def test_debit_is_reverted(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("100"))
        wallet_repo.fail_transactions = True

        with pytest.raises(UpstreamError):
            wallet_service.debit("reseller-1", Decimal("30"))

        stored = wallet_repo.wallets[wallet["id"]]
        assert stored["balance"] == Decimal("100")
        assert stored["debit_amount"] == Decimal("0")

    def test_retry_after_failure_credits_once(self, wallet_service, wallet_repo):
        wallet_repo.add_wallet("reseller-1", Decimal("100"))
        wallet_repo.fail_transactions = True
        with pytest.raises(UpstreamError):
            wallet_service.credit("reseller-1", Decimal("50"))

        wallet_repo.fail_transactions = False
        result = wallet_service.credit("reseller-1", Decimal("50"))

        assert result["wallet"]["balance"] == Decimal("150")
        assert len(wallet_repo.transactions) == 1


class TestReadsAndAudit:
    def test_transactions_newest_first(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1")
        wallet_service.credit("reseller-1", Decimal("10"), reference="first")
        wallet_service.debit("reseller-1", Decimal("3"), reference="second")

        references = [t["reference"] for t in wallet_service.list_transactions(wallet["id"])]

        assert references == ["second", "first"]

    def test_all_transactions_for_unknown_reseller(self, wallet_service):
        assert wallet_service.list_all_transactions("reseller-none") == []

    def test_reconcile_matches_ledger(self, wallet_service, wallet_repo):
        wallet_service.credit("reseller-1", Decimal("40"))
        wallet_service.debit("reseller-1", Decimal("15"))

        report = wallet_service.reconcile_balance(wallet_service.get_wallet("reseller-1"))

        assert report["balance"] == Decimal("25")
        assert report["ledger_balance"] == Decimal("25")
        assert report["drift"] == Decimal("0")

    def test_reconcile_reports_drift(self, wallet_service, wallet_repo):
        wallet = wallet_repo.add_wallet("reseller-1", Decimal("70"))

        report = wallet_service.reconcile_balance(wallet)

        assert report["drift"] == Decimal("70")
