# vnum_api/repositories/validity_repository.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from vnum_api.core.constants import ValidityStatus
from vnum_api.core.hasura import HasuraClient

VALIDITY_FIELDS = """
    id
    reseller_id
    validity_start_date
    validity_end_date
    validity_days
    last_wallet_id
    last_recharge_amount
    status
    created_at
    updated_at
"""

HISTORY_FIELDS = """
    id
    reseller_id
    wallet_id
    recharge_amount
    previous_validity_start
    previous_validity_end
    new_validity_start
    new_validity_end
    validity_days
    action
    created_at
"""

GET_VALIDITY = f"""
query GetResellerValidity($reseller_id: uuid!) {{
  mst_reseller_validity(where: {{ reseller_id: {{ _eq: $reseller_id }} }}, limit: 1) {{
    {VALIDITY_FIELDS}
  }}
}}
"""

GET_HISTORY = f"""
query GetResellerValidityHistory($reseller_id: uuid!, $limit: Int!) {{
  mst_reseller_validity_history(
    where: {{ reseller_id: {{ _eq: $reseller_id }} }}
    order_by: {{ created_at: desc }}
    limit: $limit
  ) {{
    {HISTORY_FIELDS}
  }}
}}
"""

# Both root fields run inside one Hasura transaction: either the validity
# row and its history row are written together, or neither is.
UPSERT_VALIDITY_WITH_HISTORY = f"""
mutation UpsertResellerValidityWithHistory(
  $reseller_id: uuid!
  $wallet_id: uuid!
  $recharge_amount: numeric!
  $validity_start_date: timestamp!
  $validity_end_date: timestamp!
  $validity_days: Int!
  $status: String!
  $previous_validity_start: timestamp
  $previous_validity_end: timestamp
  $action: String!
) {{
  validity: insert_mst_reseller_validity_one(
    object: {{
      reseller_id: $reseller_id
      validity_start_date: $validity_start_date
      validity_end_date: $validity_end_date
      validity_days: $validity_days
      last_wallet_id: $wallet_id
      last_recharge_amount: $recharge_amount
      status: $status
    }}
    on_conflict: {{
      constraint: mst_reseller_validity_reseller_id_key
      update_columns: [
        validity_start_date
        validity_end_date
        validity_days
        last_wallet_id
        last_recharge_amount
        status
        updated_at
      ]
    }}
  ) {{
    {VALIDITY_FIELDS}
  }}
  history: insert_mst_reseller_validity_history_one(
    object: {{
      reseller_id: $reseller_id
      wallet_id: $wallet_id
      recharge_amount: $recharge_amount
      previous_validity_start: $previous_validity_start
      previous_validity_end: $previous_validity_end
      new_validity_start: $validity_start_date
      new_validity_end: $validity_end_date
      validity_days: $validity_days
      action: $action
    }}
  ) {{
    {HISTORY_FIELDS}
  }}
}}
"""

EXPIRE_LAPSED = """
mutation ExpireLapsedResellerValidity($now: timestamp!, $active: String!, $expired: String!) {
  update_mst_reseller_validity(
    where: { status: { _eq: $active }, validity_end_date: { _lt: $now } }
    _set: { status: $expired }
  ) {
    affected_rows
  }
}
"""


class ValidityRepository:
    """GraphQL access to mst_reseller_validity and its history table."""

    def __init__(self, client: HasuraClient):
        self.client = client

    def get(self, reseller_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_VALIDITY, {"reseller_id": reseller_id},
                                   error_message="Failed to get reseller validity")
        rows = data.get("mst_reseller_validity") or []
        return rows[0] if rows else None

    def history(self, reseller_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        data = self.client.request(GET_HISTORY, {"reseller_id": reseller_id, "limit": limit},
                                   error_message="Failed to get reseller validity history")
        return data.get("mst_reseller_validity_history") or []

    def upsert_with_history(
        self,
        reseller_id: str,
        wallet_id: str,
        recharge_amount: Decimal,
        start: datetime,
        end: datetime,
        validity_days: int,
        action: str,
        previous_start: Optional[str] = None,
        previous_end: Optional[str] = None,
        status: str = ValidityStatus.ACTIVE.value,
    ) -> Dict[str, Any]:
        """Returns ``{"validity": {...}, "history": {...}}``."""
        variables = {
            "reseller_id": reseller_id,
            "wallet_id": wallet_id,
            "recharge_amount": str(recharge_amount),
            "validity_start_date": start.isoformat(),
            "validity_end_date": end.isoformat(),
            "validity_days": validity_days,
            "status": status,
            "previous_validity_start": previous_start,
            "previous_validity_end": previous_end,
            "action": action,
        }
        data = self.client.request(UPSERT_VALIDITY_WITH_HISTORY, variables,
                                   error_message="Failed to create or update reseller validity")
        return {"validity": data.get("validity"), "history": data.get("history")}

    def expire_lapsed(self, now: datetime) -> int:
        variables = {
            "now": now.isoformat(),
            "active": ValidityStatus.ACTIVE.value,
            "expired": ValidityStatus.EXPIRED.value,
        }
        data = self.client.request(EXPIRE_LAPSED, variables,
                                   error_message="Failed to expire reseller validity")
        return (data.get("update_mst_reseller_validity") or {}).get("affected_rows", 0)
