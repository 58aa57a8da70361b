"""HTTP client for the upstream finance REST API.

Every endpoint takes the year/month window the dashboard is looking at.
Transport failures and non-2xx responses surface as :class:`UpstreamApiError`;
translating them into "no data" is the caller's job.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .config import AppConfig
from .models import CardStatement, NetWorthSnapshot, Transaction, TransactionKind

logger = logging.getLogger(__name__)

_KIND_ENDPOINTS = {
    TransactionKind.EXPENSE: "/monthly/expenses",
    TransactionKind.INCOME: "/monthly/income",
    TransactionKind.SAVING: "/monthly/savings",
}


class UpstreamApiError(RuntimeError):
    """The upstream API could not be reached or answered with an error."""


class DashboardApiClient:
    """Thin wrapper over :mod:`requests` for the upstream endpoints."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self._base_url = config.api_base_url
        self._timeout = config.request_timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def _get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self._base_url}{endpoint}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise UpstreamApiError(f"Request to {url} failed: {exc}") from exc
        if not response.ok:
            raise UpstreamApiError(f"API Error: {response.status_code} {response.reason}")
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamApiError(f"Invalid JSON from {url}") from exc

    # ------------------------------------------------------------------
    # Data source interface
    # ------------------------------------------------------------------
    def monthly_transactions(self, kind: TransactionKind, year: int, month: int) -> list[Transaction]:
        payload = self._get(_KIND_ENDPOINTS[kind], {"year": year, "month": month})
        items = payload.get("items", []) if isinstance(payload, dict) else payload
        try:
            return [Transaction.from_payload(item) for item in items or []]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamApiError(f"Malformed {kind.value.lower()} payload: {exc}") from exc

    def card_statement(self, year: int, month: int) -> Optional[CardStatement]:
        payload = self._get("/cards/statement", {"year": year, "month": month})
        if not payload:
            return None
        try:
            return CardStatement.from_payload(payload, year, month)
        except (AttributeError, TypeError, ValueError) as exc:
            raise UpstreamApiError(f"Malformed card statement payload: {exc}") from exc

    def net_worth(self, year: Optional[int] = None, month: Optional[int] = None) -> Optional[NetWorthSnapshot]:
        params = {"year": year, "month": month} if year and month else None
        payload = self._get("/networth", params)
        if not payload:
            return None
        try:
            return NetWorthSnapshot.from_payload(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            raise UpstreamApiError(f"Malformed net worth payload: {exc}") from exc
