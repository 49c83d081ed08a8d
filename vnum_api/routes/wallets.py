# vnum_api/routes/wallets.py
from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional
from vnum_api.core.auth_dependencies import get_wallet_service, require_role
from vnum_api.core.constants import UserRole
from vnum_api.core.exceptions import NotFoundError
from vnum_api.services.wallet_service import WalletService
from vnum_api.schemas.wallet import WalletCredit, WalletDebit
import logging

logger = logging.getLogger(__name__)

wallet_router = APIRouter(
    prefix="/api/wallets",
    tags=["Wallets"],
    dependencies=[Depends(require_role([UserRole.ADMIN.value]))],
)


def _require_wallet(wallet_service: WalletService, reseller_id: str) -> Dict[str, Any]:
    wallet = wallet_service.get_wallet(reseller_id)
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


# Declared before /{reseller_id} so "transactions" is not taken for an id
@wallet_router.get("/transactions")
def list_all_transactions(
    reseller_id: Optional[str] = Query(None),
    wallet_service: WalletService = Depends(get_wallet_service),
):
    return {"success": True, "data": wallet_service.list_all_transactions(reseller_id)}


@wallet_router.get("/{reseller_id}")
def get_wallet(reseller_id: str, wallet_service: WalletService = Depends(get_wallet_service)):
    return {"success": True, "data": _require_wallet(wallet_service, reseller_id)}


@wallet_router.get("/{reseller_id}/transactions")
def get_wallet_transactions(reseller_id: str, wallet_service: WalletService = Depends(get_wallet_service)):
    wallet = _require_wallet(wallet_service, reseller_id)
    return {"success": True, "data": wallet_service.list_transactions(wallet["id"])}


@wallet_router.post("/{reseller_id}/credit")
def credit_wallet(
    reseller_id: str,
    payload: WalletCredit,
    wallet_service: WalletService = Depends(get_wallet_service),
):
    """
    Credit a reseller's wallet and restart their validity window
    """
    result = wallet_service.credit(
        reseller_id,
        payload.amount,
        description=payload.description,
        reference=payload.reference,
        validity_date=payload.validity_date,
    )
    return {"success": True, "data": result, "message": "Wallet credited successfully"}


@wallet_router.post("/{reseller_id}/debit")
def debit_wallet(
    reseller_id: str,
    payload: WalletDebit,
    wallet_service: WalletService = Depends(get_wallet_service),
):
    result = wallet_service.debit(
        reseller_id,
        payload.amount,
        description=payload.description,
        reference=payload.reference,
    )
    return {"success": True, "data": result, "message": "Wallet debited successfully"}
