# vnum_api/services/wallet_service.py
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from vnum_api.core.constants import ValidityAction, WalletTransactionType
from vnum_api.core.exceptions import (
    AppError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from vnum_api.repositories.wallet_repository import WalletRepository, to_decimal
from vnum_api.services.validity_service import ResellerValidityService

logger = logging.getLogger(__name__)


def _validate_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive number")
    return value


class WalletService:
    """
    Reseller wallet ledger.

    Every credit/debit moves the wallet aggregates with a compare-and-set
    update and writes one immutable ledger row carrying the balance before
    and after the operation.
    """

    def __init__(self, repository: WalletRepository, validity_service: ResellerValidityService,
                 max_attempts: int = 3):
        self.repository = repository
        self.validity_service = validity_service
        self.max_attempts = max_attempts

    # ==================== READS ====================
    def get_wallet(self, reseller_id: str) -> Optional[Dict[str, Any]]:
        return self.repository.get_by_reseller(reseller_id)

    def get_wallet_by_id(self, wallet_id: str) -> Optional[Dict[str, Any]]:
        return self.repository.get_by_id(wallet_id)

    def list_transactions(self, wallet_id: str) -> List[Dict[str, Any]]:
        return self.repository.list_transactions([wallet_id])

    def list_all_transactions(self, reseller_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if reseller_id is None:
            return self.repository.list_all_transactions()
        wallet = self.repository.get_by_reseller(reseller_id)
        if not wallet:
            return []
        return self.repository.list_transactions([wallet["id"]])

    # ==================== WRITES ====================
    def credit(
        self,
        reseller_id: str,
        amount: Any,
        description: Optional[str] = None,
        reference: Optional[str] = None,
        validity_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Add credit to a reseller's wallet (creating the wallet if needed),
        then restart the reseller's validity window.
        """
        value = _validate_amount(amount)

        wallet = self.repository.get_by_reseller(reseller_id)
        if not wallet:
            wallet = self.repository.create(reseller_id)
            logger.info(f"Created wallet {wallet['id']} for reseller {reseller_id}")

        updated, transaction = self._apply(
            wallet,
            WalletTransactionType.CREDIT,
            value,
            description or "Wallet credit",
            reference,
        )

        validity = None
        try:
            if validity_date:
                validity = self.validity_service.set_validity_until(
                    reseller_id, updated["id"], value, validity_date
                )
            else:
                validity = self.validity_service.update_validity_on_recharge(
                    reseller_id, updated["id"], value, ValidityAction.WALLET_RECHARGE_RESET
                )
        except AppError as e:
            # The credit itself is committed; validity is reported as missing.
            logger.warning(f"Failed to update reseller validity for {reseller_id}: {e.message}")

        return {"wallet": updated, "transaction": transaction, "validity": validity}

    def debit(
        self,
        reseller_id: str,
        amount: Any,
        description: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        value = _validate_amount(amount)

        wallet = self.repository.get_by_reseller(reseller_id)
        if not wallet:
            raise NotFoundError("Wallet not found")

        updated, transaction = self._apply(
            wallet,
            WalletTransactionType.DEBIT,
            value,
            description or "Wallet debit",
            reference,
        )
        return {"wallet": updated, "transaction": transaction}

    def _apply(self, wallet, transaction_type, amount, description, reference):
        wallet_id = wallet["id"]

        for attempt in range(1, self.max_attempts + 1):
            balance_before = to_decimal(wallet.get("balance"))

            if transaction_type == WalletTransactionType.CREDIT:
                delta = amount
                credit_delta, debit_delta = amount, Decimal("0")
            else:
                if balance_before < amount:
                    raise InsufficientBalanceError(required=amount, available=balance_before)
                delta = -amount
                credit_delta, debit_delta = Decimal("0"), amount

            balance_after = balance_before + delta
            updated = self.repository.apply_delta(
                wallet_id,
                expected_balance=balance_before,
                balance_delta=delta,
                credit_delta=credit_delta,
                debit_delta=debit_delta,
            )
            if updated is not None:
                break

            logger.warning(f"Wallet {wallet_id} changed during {transaction_type.value} (attempt {attempt}), retrying")
            wallet = self.repository.get_by_id(wallet_id)
            if not wallet:
                raise NotFoundError("Wallet not found")
        else:
            raise ConflictError("Wallet was modified concurrently, please retry")

        try:
            transaction = self.repository.create_transaction(
                wallet_id,
                transaction_type,
                amount,
                balance_before=balance_before,
                balance_after=balance_after,
                description=description,
                reference=reference,
            )
        except AppError:
            # No ledger row, so the balance change must not stand either
            try:
                reverted = self.repository.apply_delta(
                    wallet_id,
                    expected_balance=balance_after,
                    balance_delta=-delta,
                    credit_delta=-credit_delta,
                    debit_delta=-debit_delta,
                )
            except AppError as e:
                logger.error(f"Revert of wallet {wallet_id} failed: {e.message}")
                reverted = None
            if reverted is None:
                logger.error(
                    f"Could not revert {transaction_type.value} {amount} on wallet {wallet_id} "
                    "after ledger insert failed, balance needs manual reconciliation"
                )
            else:
                logger.warning(f"Reverted {transaction_type.value} {amount} on wallet {wallet_id}: ledger insert failed")
            raise

        logger.info(
            f"{transaction_type.value} {amount} on wallet {wallet_id}: {balance_before} -> {balance_after}"
        )
        return updated, transaction

    # ==================== AUDIT ====================
    def reconcile_balance(self, wallet: Dict[str, Any]) -> Dict[str, Any]:
        """Compare the stored balance with credits minus debits from the ledger."""
        credits, debits = self.repository.ledger_totals(wallet["id"])
        balance = to_decimal(wallet.get("balance"))
        ledger_balance = credits - debits
        return {
            "wallet_id": wallet["id"],
            "balance": balance,
            "ledger_balance": ledger_balance,
            "drift": balance - ledger_balance,
        }
