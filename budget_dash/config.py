"""Runtime settings for budget_dash, read from the environment.

Every setting has a default that serves the demo dataset on a developer
machine.  A ``.env`` file next to the working directory is honoured, and real
environment variables win over it.
"""
from __future__ import annotations

from dataclasses import dataclass
from os import getenv
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppConfig:
    """Settings shared by the API, the services and the HTTP clients.

    Attributes:
        project_root: Checkout directory; the default database lives here.
        database_file: SQLite file with the budget objectives, the card
            payment FX rates and the last known market quotes.
        api_base_url: Upstream finance REST API, without a trailing slash.
        use_demo_data: Serve the deterministic demo generator instead of
            calling the upstream API.
        request_timeout: Seconds allowed for each outgoing HTTP request.
        log_level: Level name handed to :func:`logging.basicConfig`.
        bluelytics_endpoint: Primary source for the Dólar Blue rate.
        dolarapi_endpoint: Fallback source for the Dólar Blue rate.
        coingecko_endpoint: Source for the BTC/USD price.
        btc_holdings: BTC amount valued live in the net worth view.
        import_file: CSV or Excel export loaded by ``POST /import``.
    """

    project_root: Path
    database_file: Path
    api_base_url: str
    use_demo_data: bool
    request_timeout: float
    log_level: str
    bluelytics_endpoint: str
    dolarapi_endpoint: str
    coingecko_endpoint: str
    btc_holdings: float
    import_file: Path


def load_config() -> AppConfig:
    """Build an :class:`AppConfig` from ``BUDGET_DASH_*`` and provider variables.

    The parent directory of the database file is created if needed.
    """

    project_root = Path(__file__).resolve().parent.parent
    database_file = Path(env_or_default("BUDGET_DASH_DB_FILE", project_root / "budget_dash.db"))
    database_file.parent.mkdir(parents=True, exist_ok=True)

    return AppConfig(
        project_root=project_root,
        database_file=database_file,
        api_base_url=env_or_default("BUDGET_DASH_API_BASE_URL", "http://localhost:3001").rstrip("/"),
        use_demo_data=env_or_default("BUDGET_DASH_USE_DEMO_DATA", "true").strip().lower() in _TRUTHY,
        request_timeout=float(env_or_default("BUDGET_DASH_REQUEST_TIMEOUT", "30")),
        log_level=env_or_default("BUDGET_DASH_LOG_LEVEL", "INFO").upper(),
        bluelytics_endpoint=env_or_default("BLUELYTICS_ENDPOINT", "https://api.bluelytics.com.ar/v2/latest"),
        dolarapi_endpoint=env_or_default("DOLARAPI_ENDPOINT", "https://dolarapi.com/v1/dolares/blue"),
        coingecko_endpoint=env_or_default("COINGECKO_ENDPOINT", "https://api.coingecko.com/api/v3/simple/price"),
        btc_holdings=float(env_or_default("BUDGET_DASH_BTC_HOLDINGS", "0.005197")),
        import_file=Path(env_or_default("BUDGET_DASH_IMPORT_FILE", project_root / "data" / "transactions.csv")),
    )


def env_or_default(name: str, default: Optional[Path | str] = None) -> Optional[str]:
    """Read ``name`` from the environment, falling back to ``default`` as text."""

    value = getenv(name)
    if value is not None:
        return value
    return None if default is None else str(default)
