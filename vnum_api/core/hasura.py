# vnum_api/core/hasura.py
import logging
from typing import Any, Dict, Optional

import requests

from vnum_api.core.config import Settings
from vnum_api.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class HasuraClient:
    """Thin GraphQL client for the hosted Hasura endpoint.

    One instance is created at application startup and shared by the
    repositories; ``close()`` releases the pooled connections.
    """

    def __init__(self, endpoint: str, admin_secret: str = "", timeout: float = 15.0,
                 session: Optional[requests.Session] = None):
        if not endpoint:
            raise ValueError("HASURA_GRAPHQL_ENDPOINT environment variable is not set")
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if admin_secret:
            self.session.headers.update({"x-hasura-admin-secret": admin_secret})

    @classmethod
    def from_settings(cls, settings: Settings) -> "HasuraClient":
        return cls(
            settings.HASURA_GRAPHQL_ENDPOINT,
            admin_secret=settings.HASURA_ADMIN_SECRET,
            timeout=settings.HASURA_TIMEOUT_SECONDS,
        )

    def request(self, query: str, variables: Optional[Dict[str, Any]] = None,
                error_message: str = "GraphQL request failed") -> Dict[str, Any]:
        """
        Execute a query or mutation and return its ``data`` object.

        Network failures, non-2xx answers and GraphQL ``errors`` arrays all
        raise UpstreamError with ``error_message`` as the public message.
        """
        try:
            response = self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Hasura request failed: {e}")
            raise UpstreamError(error_message, details={"errors": [{"message": str(e)}]}) from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Hasura returned a non-JSON response (HTTP {response.status_code})")
            raise UpstreamError(error_message, details={"status_code": response.status_code}) from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            logger.error(f"Hasura returned errors: {errors}")
            raise UpstreamError(error_message, details={"errors": errors})

        if not response.ok:
            logger.error(f"Hasura returned HTTP {response.status_code}")
            raise UpstreamError(error_message, details={"status_code": response.status_code})

        return body.get("data") or {}

    def close(self) -> None:
        self.session.close()
