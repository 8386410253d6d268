# -*- coding: utf-8 -*-
"""
Registry Client - Blue Carbon Registry

HTTP client for the registry REST API. Read calls are cached in a
per-client TTLCache (5 minutes by default); every mutating call
invalidates the cache keys it can affect. Error responses are raised as
the registry exception they map to, so callers handle the same error
types whether they use the client or the service directly.

The transport is a ``requests.Session`` by default; anything with a
compatible ``request(method, url, params=, json=, timeout=)`` method
(such as FastAPI's TestClient) can be passed instead.

Example:
    >>> from bluecarbon.registry.client import RegistryClient
    >>> client = RegistryClient("http://localhost:5000")
    >>> stats = client.get_statistics()
    >>> client.update_project_status(project_id, "approve", admin_address="0x...")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from bluecarbon.exceptions import (
    BlueCarbonException,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from bluecarbon.registry.cache import TTLCache
from bluecarbon.registry.config import get_config
from bluecarbon.registry.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TIMEOUT = 10.0

# Cache key prefixes touched by each kind of write.
STATISTICS_KEYS = ("registry_statistics", "analytics_overview")
_PROJECT_KEYS = ("projects", "project_", "mobile_projects", "search") + STATISTICS_KEYS
_STAKEHOLDER_KEYS = ("stakeholders", "stakeholder_", "search") + STATISTICS_KEYS
_MRV_KEYS = ("mrv_data", "mrv_") + _PROJECT_KEYS + _STAKEHOLDER_KEYS
_CREDIT_KEYS = ("balance_", "analytics_overview")


def _cache_key(name: str, params: Optional[Dict[str, Any]] = None) -> str:
    if not params:
        return name
    parts = [f"{k}={v}" for k, v in sorted(params.items()) if v is not None]
    return ":".join([name] + parts)


class RegistryClient:
    """Client for the Blue Carbon Registry API.

    Attributes:
        base_url: Server root, e.g. ``http://localhost:5000``.
        session: HTTP transport.
        cache: Per-client TTLCache of GET responses.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[Any] = None,
        cache_ttl: Optional[float] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        ttl = cache_ttl if cache_ttl is not None else get_config().client_cache_ttl_seconds
        self.cache: TTLCache[Any] = TTLCache(ttl_seconds=ttl)
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}/api{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = self.session.request(
                method, url, params=params or None, json=json, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise BlueCarbonException(
                f"Registry API unreachable: {exc}",
                error_code="BC_CONNECTION_ERROR",
                context={"url": url, "method": method},
            ) from exc

        if response.status_code >= 400:
            raise self._error_for(response)

        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    @staticmethod
    def _error_for(response: Any) -> BlueCarbonException:
        """Map an error response to the matching registry exception."""
        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text}
        if not isinstance(body, dict):
            body = {"error": str(body)}

        message = str(body.get("error") or f"HTTP {response.status_code}")
        error_type = body.get("error_type")
        context = body.get("context") or {}
        code = response.status_code

        if code == 400 and error_type == InvalidTransitionError.__name__:
            return InvalidTransitionError(
                message,
                entity_type=context.get("entity_type"),
                current_state=context.get("current_state"),
                attempted=context.get("attempted"),
            )
        if code == 400:
            fields = {
                d.get("field", "body"): d.get("message", "")
                for d in body.get("details") or []
            }
            return ValidationError(message, invalid_fields=fields)
        if code == 403:
            return ForbiddenError(
                message,
                required_role=context.get("required_role"),
                actor_role=context.get("actor_role"),
            )
        if code == 404:
            return NotFoundError(
                message,
                entity_type=context.get("entity_type"),
                entity_id=context.get("entity_id"),
            )
        if code == 429:
            return BlueCarbonException(message, error_code="BC_RATE_LIMITED")
        if error_type == StorageError.__name__:
            return StorageError(message, collection=context.get("collection"))
        return BlueCarbonException(message, context={"status_code": code})

    def _cached_get(
        self, key: str, path: str, params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            record_cache_hit()
            return cached
        record_cache_miss()
        result = self._request("GET", path, params=params)
        self.cache.set(key, result)
        return result

    def _invalidate(self, prefixes: Iterable[str]) -> None:
        for prefix in prefixes:
            self.cache.invalidate_prefix(prefix)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
        ecosystem_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {"page": page, "limit": limit, "status": status, "ecosystemType": ecosystem_type}
        return self._cached_get(_cache_key("projects", params), "/projects", params)

    def get_project(self, project_id: str) -> Dict[str, Any]:
        return self._cached_get(f"project_{project_id}", f"/projects/{project_id}")["project"]

    def register_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/projects", json=data)
        self._invalidate(_PROJECT_KEYS)
        return result["project"]

    def update_project_status(
        self,
        project_id: str,
        action: str,
        admin_address: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"action": action, "adminAddress": admin_address}
        if reason:
            body["reason"] = reason
        result = self._request("PUT", f"/projects/{project_id}/status", json=body)
        self._invalidate(_PROJECT_KEYS)
        return result["project"]

    def mobile_projects(self) -> List[Dict[str, Any]]:
        return self._cached_get("mobile_projects", "/mobile/projects")["projects"]

    # ------------------------------------------------------------------
    # Stakeholders
    # ------------------------------------------------------------------

    def list_stakeholders(self, page: int = 1, limit: Optional[int] = None) -> Dict[str, Any]:
        params = {"page": page, "limit": limit}
        return self._cached_get(_cache_key("stakeholders", params), "/stakeholders", params)

    def get_stakeholder(self, identifier: str) -> Dict[str, Any]:
        return self._cached_get(
            f"stakeholder_{identifier.lower()}", f"/stakeholders/{identifier}",
        )["stakeholder"]

    def register_stakeholder(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/stakeholders", json=data)
        self._invalidate(_STAKEHOLDER_KEYS)
        return result["stakeholder"]

    def approve_stakeholder(
        self, identifier: str, admin_address: str, reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"adminAddress": admin_address}
        if reason:
            body["reason"] = reason
        result = self._request("PUT", f"/stakeholders/{identifier}/approve", json=body)
        self._invalidate(_STAKEHOLDER_KEYS)
        return result["stakeholder"]

    # ------------------------------------------------------------------
    # MRV data
    # ------------------------------------------------------------------

    def list_mrv(
        self,
        project_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = {"projectId": project_id, "page": page, "limit": limit}
        return self._cached_get(_cache_key("mrv_data", params), "/mrv-data", params)

    def get_mrv(self, mrv_id: str) -> Dict[str, Any]:
        return self._cached_get(f"mrv_{mrv_id}", f"/mrv-data/{mrv_id}")["data"]

    def submit_mrv(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/mrv-data", json=data)
        self._invalidate(("mrv_data", "mrv_"))
        return result["data"]

    def review_mrv(
        self,
        mrv_id: str,
        action: str,
        admin_address: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"action": action, "adminAddress": admin_address}
        if reason:
            body["reason"] = reason
        result = self._request("PUT", f"/mrv-data/{mrv_id}/verify", json=body)
        self._invalidate(_MRV_KEYS)
        return result["data"]

    # ------------------------------------------------------------------
    # Credits & transactions
    # ------------------------------------------------------------------

    def credit_balance(self, address: str) -> Dict[str, Any]:
        return self._cached_get(
            f"balance_{address.lower()}", f"/carbon-credits/balance/{address}",
        )

    def mint_credits(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/carbon-credits/mint", json=data)
        self._invalidate(_CREDIT_KEYS)
        return result["credit"]

    def retire_credits(self, amount: float, reason: str, owner_address: str) -> List[Dict[str, Any]]:
        result = self._request(
            "POST",
            "/carbon-credits/retire",
            json={"amount": amount, "reason": reason, "ownerAddress": owner_address},
        )
        self._invalidate(_CREDIT_KEYS)
        return result["retiredCredits"]

    def record_transaction(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/blockchain/transaction", json=data)
        self.cache.invalidate_prefix("search")
        return result["transaction"]

    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return self._request("GET", f"/blockchain/transaction/{tx_hash}")["transaction"]

    # ------------------------------------------------------------------
    # Search, statistics, export, notifications
    # ------------------------------------------------------------------

    def search(self, query: str, search_type: Optional[str] = None) -> Dict[str, Any]:
        params = {"q": query, "type": search_type}
        return self._cached_get(_cache_key("search", params), "/search", params)

    def get_statistics(self) -> Dict[str, Any]:
        return self._cached_get("registry_statistics", "/statistics")["statistics"]

    def get_overview(self) -> Dict[str, Any]:
        return self._cached_get("analytics_overview", "/analytics/overview")["analytics"]

    def export(self, collection: str, export_format: str = "json") -> Any:
        """Export a collection; never cached."""
        return self._request("GET", f"/export/{collection}", params={"format": export_format})

    def notifications(self, user: Optional[str] = None) -> Dict[str, Any]:
        """Notifications are not cached."""
        return self._request("GET", "/notifications", params={"user": user})

    def mark_notification_read(self, notification_id: str) -> Dict[str, Any]:
        return self._request("PUT", f"/notifications/{notification_id}/read")["notification"]

    def close(self) -> None:
        self.cache.clear()
        close = getattr(self.session, "close", None)
        if close is not None:
            close()


__all__ = ["RegistryClient", "DEFAULT_BASE_URL"]
