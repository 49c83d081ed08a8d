# vnum_api/services/validity_service.py
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from vnum_api.core.constants import ValidityAction, ValidityStatus
from vnum_api.core.exceptions import UpstreamError, ValidationError
from vnum_api.repositories.validity_repository import ValidityRepository
from vnum_api.utils.dates import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Your account has expired. Please contact admin."


class ResellerValidityService:
    """
    One validity window per reseller, plus an append-only history.

    A recharge always restarts the window at "now"; remaining days are not
    carried over.
    """

    DEFAULT_VALIDITY_DAYS = 365

    def __init__(self, repository: ValidityRepository, default_days: int = DEFAULT_VALIDITY_DAYS,
                 clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.default_days = default_days
        self.clock = clock

    def update_validity_on_recharge(
        self,
        reseller_id: str,
        wallet_id: str,
        recharge_amount: Decimal,
        action: ValidityAction = ValidityAction.WALLET_RECHARGE_RESET,
        validity_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Reset the reseller's window to ``now + validity_days`` and record the
        change. Returns ``{"validity": ..., "history": ...}``.
        """
        days = validity_days or self.default_days
        start = self.clock()
        end = start + timedelta(days=days)
        return self._write(reseller_id, wallet_id, recharge_amount, start, end, days, action)

    def set_validity_until(
        self,
        reseller_id: str,
        wallet_id: str,
        recharge_amount: Decimal,
        end_date: date,
        action: ValidityAction = ValidityAction.MANUAL_UPDATE,
    ) -> Dict[str, Any]:
        """Start the window now and end it on the last instant of ``end_date`` (UTC)."""
        start = self.clock()
        end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)
        days = math.ceil((end - start) / timedelta(days=1))
        if days <= 0:
            raise ValidationError("Validity date must be in the future")
        return self._write(reseller_id, wallet_id, recharge_amount, start, end, days, action)

    def _write(self, reseller_id, wallet_id, recharge_amount, start, end, days, action) -> Dict[str, Any]:
        current = self.repository.get(reseller_id)
        result = self.repository.upsert_with_history(
            reseller_id=reseller_id,
            wallet_id=wallet_id,
            recharge_amount=recharge_amount,
            start=start,
            end=end,
            validity_days=days,
            action=ValidityAction(action).value,
            previous_start=(current or {}).get("validity_start_date"),
            previous_end=(current or {}).get("validity_end_date"),
        )
        if not result.get("validity"):
            raise UpstreamError("Failed to create or update reseller validity")

        logger.info(f"Validity for reseller {reseller_id} set until {end.isoformat()} ({action})")
        return result

    def get_reseller_validity(self, reseller_id: str) -> Optional[Dict[str, Any]]:
        return self.repository.get(reseller_id)

    def get_reseller_validity_history(self, reseller_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self.repository.history(reseller_id, limit)

    def check_login_validity(self, reseller_id: str) -> Tuple[bool, Optional[str]]:
        """
        Whether the reseller may log in. No validity row means yes (resellers
        created before validity tracking). Lookup failures also allow login.
        """
        try:
            validity = self.repository.get(reseller_id)
        except UpstreamError as e:
            logger.error(f"Error checking reseller validity for {reseller_id}: {e.message}")
            return True, None

        if not validity:
            return True, None

        if validity.get("status") in (ValidityStatus.EXPIRED.value, ValidityStatus.SUSPENDED.value):
            return False, EXPIRED_MESSAGE

        end = parse_timestamp(validity.get("validity_end_date"))
        if end is not None and end < self.clock():
            return False, EXPIRED_MESSAGE

        return True, None

    def expire_lapsed(self, now: Optional[datetime] = None) -> int:
        """Flip ACTIVE windows whose end date has passed to EXPIRED."""
        return self.repository.expire_lapsed(now or self.clock())
