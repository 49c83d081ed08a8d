# vnum_api/repositories/wallet_repository.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from vnum_api.core.constants import DEFAULT_WALLET_USER_TYPE, WalletTransactionType
from vnum_api.core.hasura import HasuraClient

WALLET_FIELDS = """
    id
    reseller_id
    user_type
    balance
    credit_amount
    debit_amount
    last_transaction_at
    created_at
    updated_at
"""

TRANSACTION_FIELDS = """
    id
    wallet_id
    transaction_id
    transaction_type
    amount
    balance_before
    balance_after
    description
    reference
    created_at
"""

GET_WALLET_BY_RESELLER = f"""
query GetMstWalletByResellerId($reseller_id: uuid!) {{
  mst_wallet(where: {{ reseller_id: {{ _eq: $reseller_id }} }}, limit: 1) {{
    {WALLET_FIELDS}
  }}
}}
"""

GET_WALLET_BY_ID = f"""
query GetMstWalletById($id: uuid!) {{
  mst_wallet_by_pk(id: $id) {{
    {WALLET_FIELDS}
  }}
}}
"""

LIST_WALLETS = f"""
query ListMstWallets($limit: Int!, $offset: Int!) {{
  mst_wallet(order_by: {{ created_at: asc }}, limit: $limit, offset: $offset) {{
    {WALLET_FIELDS}
  }}
}}
"""

INSERT_WALLET = f"""
mutation CreateMstWallet($reseller_id: uuid!, $user_type: String!) {{
  insert_mst_wallet_one(object: {{
    reseller_id: $reseller_id
    user_type: $user_type
    balance: 0
    credit_amount: 0
    debit_amount: 0
  }}) {{
    {WALLET_FIELDS}
  }}
}}
"""

# Compare-and-set: only applies when the balance is still the one we read.
APPLY_WALLET_DELTA = f"""
mutation ApplyMstWalletDelta(
  $id: uuid!
  $expected_balance: numeric!
  $inc: mst_wallet_inc_input!
  $last_transaction_at: timestamp!
) {{
  update_mst_wallet(
    where: {{ id: {{ _eq: $id }}, balance: {{ _eq: $expected_balance }} }}
    _inc: $inc
    _set: {{ last_transaction_at: $last_transaction_at }}
  ) {{
    affected_rows
    returning {{
      {WALLET_FIELDS}
    }}
  }}
}}
"""

INSERT_TRANSACTION = f"""
mutation CreateMstWalletTransaction(
  $wallet_id: uuid!
  $transaction_type: String!
  $amount: numeric!
  $balance_before: numeric!
  $balance_after: numeric!
  $description: String
  $reference: String
) {{
  insert_mst_wallet_transaction_one(object: {{
    wallet_id: $wallet_id
    transaction_type: $transaction_type
    amount: $amount
    balance_before: $balance_before
    balance_after: $balance_after
    description: $description
    reference: $reference
  }}) {{
    {TRANSACTION_FIELDS}
  }}
}}
"""

LIST_TRANSACTIONS = f"""
query GetMstWalletTransactions($wallet_ids: [uuid!]!) {{
  mst_wallet_transaction(
    where: {{ wallet_id: {{ _in: $wallet_ids }} }}
    order_by: {{ created_at: desc }}
  ) {{
    {TRANSACTION_FIELDS}
  }}
}}
"""

LIST_ALL_TRANSACTIONS = f"""
query GetAllMstWalletTransactions {{
  mst_wallet_transaction(order_by: {{ created_at: desc }}) {{
    {TRANSACTION_FIELDS}
  }}
}}
"""

LEDGER_TOTALS = """
query GetWalletLedgerTotals($wallet_id: uuid!) {
  credits: mst_wallet_transaction_aggregate(
    where: { wallet_id: { _eq: $wallet_id }, transaction_type: { _eq: "CREDIT" } }
  ) {
    aggregate { sum { amount } }
  }
  debits: mst_wallet_transaction_aggregate(
    where: { wallet_id: { _eq: $wallet_id }, transaction_type: { _eq: "DEBIT" } }
  ) {
    aggregate { sum { amount } }
  }
}
"""


def to_decimal(value: Any) -> Decimal:
    """Hasura returns numeric columns as JSON numbers or strings."""
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _aggregate_sum(node: Optional[Dict[str, Any]]) -> Decimal:
    amount = (((node or {}).get("aggregate") or {}).get("sum") or {}).get("amount")
    return to_decimal(amount)


class WalletRepository:
    """GraphQL access to mst_wallet and mst_wallet_transaction."""

    def __init__(self, client: HasuraClient):
        self.client = client

    def get_by_reseller(self, reseller_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_WALLET_BY_RESELLER, {"reseller_id": reseller_id},
                                   error_message="Failed to fetch wallet")
        rows = data.get("mst_wallet") or []
        return rows[0] if rows else None

    def get_by_id(self, wallet_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_WALLET_BY_ID, {"id": wallet_id},
                                   error_message="Failed to fetch wallet")
        return data.get("mst_wallet_by_pk")

    def list_wallets(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        data = self.client.request(LIST_WALLETS, {"limit": limit, "offset": offset},
                                   error_message="Failed to fetch wallets")
        return data.get("mst_wallet") or []

    def create(self, reseller_id: str, user_type: str = DEFAULT_WALLET_USER_TYPE) -> Dict[str, Any]:
        data = self.client.request(INSERT_WALLET, {"reseller_id": reseller_id, "user_type": user_type},
                                   error_message="Failed to create wallet")
        return data["insert_mst_wallet_one"]

    def apply_delta(
        self,
        wallet_id: str,
        expected_balance: Decimal,
        balance_delta: Decimal,
        credit_delta: Decimal = Decimal("0"),
        debit_delta: Decimal = Decimal("0"),
        at: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically move the wallet aggregates, but only if the balance still
        equals ``expected_balance``. Returns the updated wallet, or None when
        another writer got there first.
        """
        variables = {
            "id": wallet_id,
            "expected_balance": str(expected_balance),
            "inc": {
                "balance": str(balance_delta),
                "credit_amount": str(credit_delta),
                "debit_amount": str(debit_delta),
            },
            "last_transaction_at": (at or datetime.now(timezone.utc)).isoformat(),
        }
        data = self.client.request(APPLY_WALLET_DELTA, variables,
                                   error_message="Failed to update wallet balance")
        result = data.get("update_mst_wallet") or {}
        if not result.get("affected_rows"):
            return None
        return result["returning"][0]

    def create_transaction(
        self,
        wallet_id: str,
        transaction_type: WalletTransactionType,
        amount: Decimal,
        balance_before: Decimal,
        balance_after: Decimal,
        description: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        variables = {
            "wallet_id": wallet_id,
            "transaction_type": transaction_type.value,
            "amount": str(amount),
            "balance_before": str(balance_before),
            "balance_after": str(balance_after),
            "description": description,
            "reference": reference,
        }
        data = self.client.request(INSERT_TRANSACTION, variables,
                                   error_message="Failed to create transaction")
        return data["insert_mst_wallet_transaction_one"]

    def list_transactions(self, wallet_ids: List[str]) -> List[Dict[str, Any]]:
        if not wallet_ids:
            return []
        data = self.client.request(LIST_TRANSACTIONS, {"wallet_ids": wallet_ids},
                                   error_message="Failed to fetch transactions")
        return data.get("mst_wallet_transaction") or []

    def list_all_transactions(self) -> List[Dict[str, Any]]:
        data = self.client.request(LIST_ALL_TRANSACTIONS, error_message="Failed to fetch transactions")
        return data.get("mst_wallet_transaction") or []

    def ledger_totals(self, wallet_id: str) -> tuple[Decimal, Decimal]:
        """Return (sum of CREDIT amounts, sum of DEBIT amounts) for a wallet."""
        data = self.client.request(LEDGER_TOTALS, {"wallet_id": wallet_id},
                                   error_message="Failed to fetch wallet ledger totals")
        return _aggregate_sum(data.get("credits")), _aggregate_sum(data.get("debits"))
