"""Market data helpers for the budget_dash backend."""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import requests

from .config import AppConfig
from .models import FxRate

logger = logging.getLogger(__name__)


class PriceService:
    """Fetch live FX rates and crypto prices from public providers.

    Every method degrades to ``None`` when the provider is unreachable or
    returns an unexpected payload, so a missing quote never breaks a view.
    """

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # Dólar Blue (Bluelytics, DolarApi as fallback)
    # ------------------------------------------------------------------
    def fetch_dolar_blue(self) -> Optional[FxRate]:
        """Return the Dólar Blue selling rate, ARS per USD."""

        rate = self._fetch_bluelytics()
        if rate is not None:
            return rate
        logger.info("Bluelytics unavailable, falling back to DolarApi")
        return self._fetch_dolarapi()

    def _fetch_bluelytics(self) -> Optional[FxRate]:
        payload = self._get_json(self._config.bluelytics_endpoint)
        if payload is None:
            return None
        value = _to_float((payload.get("blue") or {}).get("value_sell"))
        if value is None:
            return None
        return FxRate(base="USD", quote="ARS", valuation_date=date.today(), rate=value, source="bluelytics")

    def _fetch_dolarapi(self) -> Optional[FxRate]:
        payload = self._get_json(self._config.dolarapi_endpoint)
        if payload is None:
            return None
        value = _to_float(payload.get("venta"))
        if value is None:
            return None
        return FxRate(base="USD", quote="ARS", valuation_date=date.today(), rate=value, source="dolarapi")

    # ------------------------------------------------------------------
    # Crypto (CoinGecko)
    # ------------------------------------------------------------------
    def fetch_btc_usd(self) -> Optional[FxRate]:
        payload = self._get_json(
            self._config.coingecko_endpoint,
            params={"ids": "bitcoin", "vs_currencies": "usd"},
        )
        if payload is None:
            return None
        value = _to_float((payload.get("bitcoin") or {}).get("usd"))
        if value is None:
            return None
        return FxRate(base="BTC", quote="USD", valuation_date=date.today(), rate=value, source="coingecko")

    def _get_json(self, url: str, params: Optional[dict[str, str]] = None) -> Optional[dict]:
        try:
            response = self._session.get(url, params=params, timeout=self._config.request_timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Price request to %s failed: %s", url, exc)
            return None
        if not isinstance(payload, dict):
            logger.warning("Unexpected price payload from %s", url)
            return None
        return payload


def _to_float(value: object) -> Optional[float]:
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    # Non-positive quotes are treated as missing.
    return parsed if parsed > 0 else None
