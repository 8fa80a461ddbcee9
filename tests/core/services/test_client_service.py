"""ClientService against a real database (skipped without DATABASE_URL)."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.config import InvoicingConfig
from core.exceptions import NotFoundError
from core.services.client_service import ClientService


@pytest.fixture
def client_service(clean_db):
    return ClientService(clean_db, InvoicingConfig())


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestUninvoicedSummary:
    """uninvoiced_summary()"""

    def test_per_project_totals(self, client_service, seed):
        client_id = seed.client()
        web = seed.project(client_id, name="Website", rate="33.33")
        seed.project(client_id, name="Dormant", rate="50.00")
        seed.time_entry(web, utc(2025, 1, 10, 0), utc(2025, 1, 10, 1), "0.1")
        seed.time_entry(web, utc(2025, 1, 10, 2), utc(2025, 1, 10, 3), "0.1")
        seed.expense(web, date(2025, 1, 11), "10.00", "Hosting")

        summary = client_service.uninvoiced_summary(client_id)

        assert len(summary) == 1
        row = summary[0]
        assert row.project_name == "Website"
        assert row.uninvoiced_hours == Decimal("0.2")
        assert row.time_amount == Decimal("6.66")
        assert row.expense_amount == Decimal("10.00")
        assert row.total_amount == Decimal("16.66")

    def test_respects_cutoff(self, client_service, seed):
        client_id = seed.client()
        web = seed.project(client_id)
        seed.time_entry(web, utc(2025, 1, 20, 0), utc(2025, 1, 20, 1), "1.0")

        assert client_service.uninvoiced_summary(client_id, date(2025, 1, 15)) == []

    def test_unknown_client(self, client_service):
        with pytest.raises(NotFoundError):
            client_service.uninvoiced_summary(999)


class TestListProjects:
    """list_projects()"""

    def test_ordered_by_name(self, client_service, seed):
        client_id = seed.client()
        seed.project(client_id, name="Zeta")
        seed.project(client_id, name="Alpha")

        names = [p.name for p in client_service.list_projects(client_id)]

        assert names == ["Alpha", "Zeta"]
