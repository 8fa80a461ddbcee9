"""Shared test fixtures for the invoicing test suite."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

SCHEMA_PATH = Path(__file__).parent.parent / "schema.sql"

TABLES = (
    "invoice_line_items, invoices, time_entries, expenses, "
    "projects, clients, audit_log"
)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient against DATABASE_URL with the schema applied.

    Tests that need it are skipped when no database is configured.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set; skipping database tests")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(database_url)
    with client.transaction() as tx:
        tx.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty every table and reset the settings row before the test."""
    with db.transaction() as tx:
        tx.execute(f"TRUNCATE {TABLES} RESTART IDENTITY CASCADE")
        tx.execute(
            """
            UPDATE settings
            SET next_invoice_number = 1, company_name = '', company_address = '',
                company_email = '', company_phone = '', invoice_footer_markdown = ''
            WHERE id = 1
            """
        )
    yield db


# =============================================================================
# SEED HELPERS
# =============================================================================


@pytest.fixture
def seed(clean_db):
    """Insert clients, projects, time entries and expenses directly."""
    return Seeder(clean_db)


class Seeder:
    def __init__(self, db):
        self.db = db

    def client(self, name="Acme Ltd") -> int:
        return self.db.execute_scalar(
            "INSERT INTO clients (name) VALUES (%s) RETURNING id", (name,)
        )

    def project(self, client_id: int, name="Website", rate="100.00") -> int:
        return self.db.execute_scalar(
            "INSERT INTO projects (client_id, name, hourly_rate) VALUES (%s, %s, %s) RETURNING id",
            (client_id, name, rate)
        )

    def time_entry(self, project_id: int, start_at, end_at, hours, note=None) -> int:
        return self.db.execute_scalar(
            """
            INSERT INTO time_entries (project_id, start_at, end_at, total_hours, note)
            VALUES (%s, %s, %s, %s, %s) RETURNING id
            """,
            (project_id, start_at, end_at, hours, note)
        )

    def expense(self, project_id: int, expense_date, amount, description=None, billable=True) -> int:
        return self.db.execute_scalar(
            """
            INSERT INTO expenses (project_id, expense_date, amount, description, is_billable)
            VALUES (%s, %s, %s, %s, %s) RETURNING id
            """,
            (project_id, expense_date, amount, description, billable)
        )

    def next_invoice_number(self) -> int:
        return self.db.execute_scalar("SELECT next_invoice_number FROM settings WHERE id = 1")
