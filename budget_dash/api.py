"""FastAPI application exposing the budget_dash backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .api_client import DashboardApiClient
from .config import AppConfig, load_config
from .database import SQLiteRepository
from .demo import CATEGORIES, DemoDataSource
from .models import InvalidBudgetObjective, TransactionKind
from .price_service import PriceService
from .services import DashboardService

logger = logging.getLogger(__name__)


def build_service(config: AppConfig, repository: SQLiteRepository) -> DashboardService:
    """Wire the dashboard service for ``config``."""

    if config.use_demo_data:
        logger.info("Serving demo data")
        source = DemoDataSource()
    else:
        logger.info("Serving data from %s", config.api_base_url)
        source = DashboardApiClient(config)
    return DashboardService(
        source=source,
        repository=repository,
        price_service=PriceService(config),
        btc_holdings=config.btc_holdings,
        categories=CATEGORIES if config.use_demo_data else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared services once and reuse them across requests."""

    config = load_config()
    repository = SQLiteRepository(config.database_file)
    repository.initialise_schema()

    app.state.config = config
    app.state.repository = repository
    app.state.dashboard = build_service(config, repository)

    yield

    repository.close()


app = FastAPI(lifespan=lifespan, title="budget_dash backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency injection ------------------------------------------------------

def get_dashboard_service() -> DashboardService:
    service: DashboardService = app.state.dashboard
    return service


def get_config() -> AppConfig:
    config: AppConfig = app.state.config
    return config


Dashboard = Annotated[DashboardService, Depends(get_dashboard_service)]
Settings = Annotated[AppConfig, Depends(get_config)]
Year = Annotated[int, Query(ge=2000, le=2100)]
Month = Annotated[int, Query(ge=1, le=12)]

_KIND_PATHS = {
    "expenses": TransactionKind.EXPENSE,
    "income": TransactionKind.INCOME,
    "savings": TransactionKind.SAVING,
}


# Routes --------------------------------------------------------------------


@app.get("/health")
def health_check() -> dict[str, str]:
    """Return a basic heartbeat payload for monitoring purposes."""

    return {"status": "ok"}


@app.get("/monthly/summary")
def monthly_summary(year: Year, month: Month, dashboard: Dashboard) -> dict[str, object]:
    return dashboard.monthly_summary(year, month)


@app.get("/monthly/{kind}")
def monthly_list(
    kind: str,
    year: Year,
    month: Month,
    dashboard: Dashboard,
    text: Annotated[Optional[str], Query(description="Case-insensitive description search")] = None,
    category: Annotated[Optional[list[str]], Query(description="Categories to keep")] = None,
    sort: Annotated[str, Query(pattern="^(amount|date)$")] = "date",
    order: Annotated[str, Query(pattern="^(asc|desc)$")] = "desc",
) -> dict[str, object]:
    """Expenses, income or savings for a month, with the table filters applied."""

    transaction_kind = _KIND_PATHS.get(kind)
    if transaction_kind is None:
        raise HTTPException(status_code=404, detail=f"Unknown list {kind!r}")
    return dashboard.monthly_list(
        transaction_kind,
        year,
        month,
        text=text,
        categories=category,
        sort_by=sort,
        order=order,
    )


@app.post("/import")
def import_transactions(
    dashboard: Dashboard,
    settings: Settings,
    kind: Annotated[str, Query(pattern="^(expenses|income|savings)$", description="Kind for rows without one")] = "expenses",
    sheet: Annotated[Optional[str], Query(description="Excel sheet name")] = None,
) -> dict[str, object]:
    """Import the configured CSV/Excel export into the monthly views."""

    if not settings.import_file.is_file():
        raise HTTPException(status_code=404, detail=f"Import file {settings.import_file.name} not found.")
    imported = dashboard.import_transactions(settings.import_file, default_kind=_KIND_PATHS[kind], sheet_name=sheet or 0)
    return {"imported": imported, "file": settings.import_file.name}


@app.get("/annual/summary")
def annual_summary(year: Year, dashboard: Dashboard) -> dict[str, object]:
    return dashboard.annual_summary(year)


@app.get("/evolution")
def evolution(
    year: Year,
    month: Month,
    dashboard: Dashboard,
    range_: Annotated[str, Query(alias="range", pattern="^(6m|12m|24m)$")] = "12m",
) -> dict[str, object]:
    return dashboard.evolution(year, month, range_)


@app.get("/cards/statement")
def card_statement(
    year: Year,
    month: Month,
    dashboard: Dashboard,
    text: Optional[str] = None,
    holder: Optional[str] = None,
    payment_type: Annotated[str, Query(pattern="^(all|installments|one-time)$")] = "all",
    order: Annotated[str, Query(pattern="^(asc|desc)$")] = "desc",
) -> dict[str, object]:
    view = dashboard.card_statement_view(year, month, text=text, holder=holder, payment_type=payment_type, order=order)
    if view is None:
        raise HTTPException(status_code=404, detail="No card statement available for this month.")
    return view


@app.get("/cards/trend")
def card_trend(
    year: Year,
    dashboard: Dashboard,
    field: Annotated[str, Query(pattern="^(total|visa_total|mastercard_total)$")] = "total",
) -> dict[str, object]:
    return dashboard.card_trend(year, field)


@app.put("/cards/payment-fx")
def save_card_payment_fx(
    year: Year,
    month: Month,
    dashboard: Dashboard,
    amount: Annotated[float, Query(description="ARS paid per USD for this statement")],
) -> dict[str, object]:
    try:
        rate = dashboard.save_card_payment_fx(year, month, amount)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"year": year, "month": month, "amount": rate}


@app.get("/budget/objectives")
def get_budget_objectives(dashboard: Dashboard) -> dict[str, float]:
    return dashboard.budget_objectives().to_payload()


@app.put("/budget/objectives")
def set_budget_objectives(
    dashboard: Dashboard,
    objectives: Annotated[dict[str, float], Body()],
) -> dict[str, float]:
    try:
        saved = dashboard.update_budget_objectives(objectives)
    except InvalidBudgetObjective as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return saved.to_payload()


@app.get("/budget/reconciliation")
def budget_reconciliation(year: Year, month: Month, dashboard: Dashboard) -> dict[str, object]:
    return dashboard.reconciliation(year, month)


@app.get("/networth")
def net_worth(dashboard: Dashboard) -> dict[str, object]:
    payload = dashboard.net_worth()
    if payload is None:
        raise HTTPException(status_code=503, detail="Net worth unavailable.")
    return payload


@app.get("/fx/rates")
def exchange_rates(dashboard: Dashboard) -> dict[str, Optional[float]]:
    return dashboard.exchange_rates()
