# vnum_api/repositories/account_repository.py
import logging
from typing import Any, Dict, Optional

from vnum_api.core.exceptions import ConflictError, UpstreamError
from vnum_api.core.hasura import HasuraClient

logger = logging.getLogger(__name__)

ADMIN_FIELDS = """
    id
    first_name
    last_name
    email
    phone
    password_hash
    status
    role_id
    created_at
    updated_at
"""

RESELLER_FIELDS = """
    id
    first_name
    last_name
    email
    phone
    password_hash
    status
    current_step
    signup_completed
    is_email_verified
    is_phone_verified
    approval_date
    rejection_reason
    suspended_at
    suspended_reason
    created_at
    updated_at
"""

GET_ADMIN_BY_EMAIL = f"""
query GetAdminByEmail($email: String!) {{
  mst_super_admin(where: {{ email: {{ _eq: $email }} }}, limit: 1) {{
    {ADMIN_FIELDS}
  }}
}}
"""

GET_RESELLER_BY_EMAIL = f"""
query GetResellerByEmail($email: String!) {{
  mst_reseller(where: {{ email: {{ _eq: $email }} }}, limit: 1) {{
    {RESELLER_FIELDS}
  }}
}}
"""

GET_ADMIN_BY_ID = f"""
query GetAdminById($id: uuid!) {{
  mst_super_admin_by_pk(id: $id) {{
    {ADMIN_FIELDS}
  }}
}}
"""

GET_RESELLER_BY_ID = f"""
query GetResellerById($id: uuid!) {{
  mst_reseller_by_pk(id: $id) {{
    {RESELLER_FIELDS}
  }}
}}
"""

INSERT_RESELLER = """
mutation InsertMstReseller(
  $first_name: String!
  $last_name: String!
  $email: String!
  $phone: String!
  $password_hash: String!
) {
  insert_mst_reseller_one(
    object: {
      first_name: $first_name
      last_name: $last_name
      email: $email
      phone: $phone
      password_hash: $password_hash
      current_step: 1
      is_email_verified: false
      is_phone_verified: false
      signup_completed: false
      status: false
    }
  ) {
    id
    first_name
    last_name
    email
    phone
    status
    signup_completed
    current_step
    created_at
  }
}
"""

UPDATE_ADMIN_PASSWORD = """
mutation UpdateAdminPassword($id: uuid!, $password_hash: String!) {
  update_mst_super_admin_by_pk(
    pk_columns: { id: $id }
    _set: { password_hash: $password_hash }
  ) {
    id
    email
  }
}
"""

UPDATE_RESELLER_PASSWORD = """
mutation UpdateResellerPassword($id: uuid!, $password_hash: String!) {
  update_mst_reseller_by_pk(
    pk_columns: { id: $id }
    _set: { password_hash: $password_hash }
  ) {
    id
    email
  }
}
"""


def _first(rows) -> Optional[Dict[str, Any]]:
    return rows[0] if rows else None


class AccountRepository:
    """Admin (mst_super_admin) and reseller (mst_reseller) account lookups."""

    def __init__(self, client: HasuraClient):
        self.client = client

    def get_admin_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_ADMIN_BY_EMAIL, {"email": email},
                                   error_message="Failed to query admin from database")
        return _first(data.get("mst_super_admin"))

    def get_reseller_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_RESELLER_BY_EMAIL, {"email": email},
                                   error_message="Failed to query user from database")
        return _first(data.get("mst_reseller"))

    def get_admin_by_id(self, admin_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_ADMIN_BY_ID, {"id": admin_id},
                                   error_message="Failed to query admin from database")
        return data.get("mst_super_admin_by_pk")

    def get_reseller_by_id(self, reseller_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(GET_RESELLER_BY_ID, {"id": reseller_id},
                                   error_message="Failed to query user from database")
        return data.get("mst_reseller_by_pk")

    def create_reseller(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a reseller. ``profile`` must already carry ``password_hash``."""
        variables = {
            "first_name": profile["first_name"],
            "last_name": profile["last_name"],
            "email": profile["email"],
            "phone": profile["phone"],
            "password_hash": profile["password_hash"],
        }
        try:
            data = self.client.request(INSERT_RESELLER, variables,
                                       error_message="Failed to create user in database")
        except UpstreamError as e:
            if e.is_constraint_violation() or any(
                "unique" in m or "duplicate" in m for m in e.upstream_messages
            ):
                raise ConflictError("Email already registered") from e
            raise

        return data["insert_mst_reseller_one"]

    def update_admin_password(self, admin_id: str, password_hash: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(UPDATE_ADMIN_PASSWORD, {"id": admin_id, "password_hash": password_hash},
                                   error_message="Failed to update password in database")
        return data.get("update_mst_super_admin_by_pk")

    def update_reseller_password(self, reseller_id: str, password_hash: str) -> Optional[Dict[str, Any]]:
        data = self.client.request(UPDATE_RESELLER_PASSWORD, {"id": reseller_id, "password_hash": password_hash},
                                   error_message="Failed to update password in database")
        return data.get("update_mst_reseller_by_pk")
