"""Tests for PostgresClient - pooled queries and scoped transactions."""

from unittest.mock import MagicMock, Mock

import pytest

from clients.postgres_client import PostgresClient, Transaction


class TestTransactionScopeUnit:
    """transaction() commit/rollback without a server."""

    def make_client(self, conn):
        client = PostgresClient.__new__(PostgresClient)
        client._database_url = "postgresql://unit-test"
        pool = Mock()
        pool.getconn.return_value = conn
        PostgresClient._connection_pools[client._database_url] = pool
        return client, pool

    def teardown_method(self):
        PostgresClient._connection_pools.pop("postgresql://unit-test", None)

    def test_commits_on_clean_exit(self):
        conn = MagicMock()
        client, pool = self.make_client(conn)

        with client.transaction() as tx:
            assert isinstance(tx, Transaction)

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    def test_rolls_back_and_reraises(self):
        conn = MagicMock()
        client, pool = self.make_client(conn)

        with pytest.raises(RuntimeError, match="boom"):
            with client.transaction():
                raise RuntimeError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)


class TestExecuteMethods:
    """Query helpers against a live database."""

    def test_execute_returns_list_of_dicts(self, db):
        assert db.execute("SELECT 1 as num, 'hello' as word") == [{"num": 1, "word": "hello"}]

    def test_execute_empty_returns_empty_list(self, db):
        assert db.execute("SELECT 1 WHERE false") == []

    def test_execute_single_no_rows_returns_none(self, db):
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar(self, db):
        assert db.execute_scalar("SELECT 42") == 42

    def test_rowcount(self, db):
        with db.transaction() as tx:
            count = tx.execute_rowcount("UPDATE settings SET updated_at = now() WHERE id = 1")
        assert count == 1


class TestTransactionsLive:
    """Rollback really discards writes."""

    def test_rollback_discards_counter_increment(self, clean_db):
        before = clean_db.execute_scalar("SELECT next_invoice_number FROM settings WHERE id = 1")

        with pytest.raises(RuntimeError):
            with clean_db.transaction() as tx:
                tx.execute("UPDATE settings SET next_invoice_number = next_invoice_number + 1")
                raise RuntimeError("abort")

        after = clean_db.execute_scalar("SELECT next_invoice_number FROM settings WHERE id = 1")
        assert after == before
