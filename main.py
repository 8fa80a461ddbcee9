"""Application entry point: wires services, middleware and routers."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from api import (
    RequestIDMiddleware,
    create_clients_router,
    create_invoices_router,
    create_settings_router,
    create_tracking_router,
    register_error_handlers,
)
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url
from core.audit import AuditLogger
from core.config import InvoicingConfig, load_config
from core.event_bus import EventBus
from core.services.client_service import ClientService
from core.services.expense_service import ExpenseService
from core.services.invoice_service import InvoiceService
from core.services.settings_service import SettingsService
from core.services.time_entry_service import TimeEntryService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Root logging setup; LOG_LEVEL env var when no level is given."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def build_services(
    postgres: PostgresClient,
    config: InvoicingConfig,
    event_bus: EventBus | None = None,
) -> dict:
    audit = AuditLogger(postgres)
    return {
        "invoice": InvoiceService(postgres, audit, config, event_bus or EventBus()),
        "client": ClientService(postgres, config),
        "time_entry": TimeEntryService(postgres, audit),
        "expense": ExpenseService(postgres, audit),
        "settings": SettingsService(postgres, audit, config),
    }


def create_app(services: dict | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Services are created from DATABASE_URL (or Vault) and the env config
    unless a prebuilt services dict is passed in.
    """
    load_dotenv()

    postgres = None
    if services is None:
        config = load_config()
        postgres = PostgresClient(get_database_url())
        services = build_services(postgres, config)
        logger.info(
            "Invoicing configured: timezone=%s, payment terms %d days",
            config.business_timezone, config.payment_terms_days,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if postgres is not None:
            postgres.close()

    app = FastAPI(title="Timesheet Invoicing", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_invoices_router(services), prefix="/api")
    app.include_router(create_clients_router(services), prefix="/api")
    app.include_router(create_tracking_router(services), prefix="/api")
    app.include_router(create_settings_router(services), prefix="/api")

    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(create_app(), host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
