# vnum_api/routes/validity.py
from decimal import Decimal
from fastapi import APIRouter, Depends, Query
from vnum_api.core.auth_dependencies import get_validity_service, get_wallet_service, require_role
from vnum_api.core.constants import UserRole, ValidityAction
from vnum_api.core.exceptions import NotFoundError
from vnum_api.services.validity_service import ResellerValidityService
from vnum_api.services.wallet_service import WalletService
from vnum_api.schemas.wallet import ValidityReset

validity_router = APIRouter(
    prefix="/api/resellers",
    tags=["Reseller validity"],
    dependencies=[Depends(require_role([UserRole.ADMIN.value]))],
)


@validity_router.get("/{reseller_id}/validity")
def get_validity(reseller_id: str, validity_service: ResellerValidityService = Depends(get_validity_service)):
    return {"success": True, "data": validity_service.get_reseller_validity(reseller_id)}


@validity_router.get("/{reseller_id}/validity/history")
def get_validity_history(
    reseller_id: str,
    limit: int = Query(50, ge=1, le=500),
    validity_service: ResellerValidityService = Depends(get_validity_service),
):
    return {"success": True, "data": validity_service.get_reseller_validity_history(reseller_id, limit)}


@validity_router.post("/{reseller_id}/validity/reset")
def reset_validity(
    reseller_id: str,
    payload: ValidityReset,
    validity_service: ResellerValidityService = Depends(get_validity_service),
    wallet_service: WalletService = Depends(get_wallet_service),
):
    """
    Restart a reseller's validity window without a recharge
    """
    wallet = wallet_service.get_wallet(reseller_id)
    if not wallet:
        raise NotFoundError("Wallet not found")

    if payload.validity_date:
        result = validity_service.set_validity_until(
            reseller_id, wallet["id"], Decimal("0"), payload.validity_date, action=ValidityAction.ADMIN_RESET
        )
    else:
        result = validity_service.update_validity_on_recharge(
            reseller_id, wallet["id"], Decimal("0"),
            action=ValidityAction.ADMIN_RESET,
            validity_days=payload.validity_days,
        )
    return {"success": True, "data": result, "message": "Validity reset successfully"}
