"""
Tests for the ledger store implementations.

Both stores must keep balance and history together; the SQL store is
exercised against an in-memory SQLite database.
"""

import gc
from datetime import timedelta

import pytest

from token_ledger.errors import InsufficientBalanceError, StorageUnavailableError
from token_ledger.seed import DEMO_TRANSACTIONS, seed_demo_ledger
from token_ledger.service import TokenService
from token_ledger.sql_store import SqlLedgerStore
from token_ledger.store import InMemoryLedgerStore


USER_ID = 1


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryLedgerStore()
    return SqlLedgerStore("sqlite://")


class TestLedgerStore:
    """Behaviour shared by every store implementation."""

    def test_missing_user_defaults(self, store):
        """Test that an unknown user has zero balance and no history."""
        assert store.get_balance(USER_ID) == 0
        assert store.get_history(USER_ID) == []

    def test_record_transaction_updates_balance(self, store):
        """Test that recording moves the balance by the amount."""
        credit = store.record_transaction(USER_ID, "친구 초대 보상", 500)
        debit = store.record_transaction(USER_ID, "이력서 첨삭 사용", -200)

        assert store.get_balance(USER_ID) == 300
        assert credit.amount == 500
        assert debit.amount == -200
        assert debit.id > credit.id
        assert credit.balance_after == 500
        assert debit.balance_after == 300

    def test_history_newest_first(self, store):
        """Test that history is ordered most recent first."""
        for title, amount in DEMO_TRANSACTIONS:
            store.record_transaction(USER_ID, title, amount)

        history = store.get_history(USER_ID)

        assert [t.title for t in history] == [title for title, _ in reversed(DEMO_TRANSACTIONS)]
        assert store.get_balance(USER_ID) == sum(t.amount for t in history)

    def test_history_is_a_fresh_snapshot(self, store):
        """Test that each history read can be iterated independently."""
        store.record_transaction(USER_ID, "매일 로그인 보상", 100)

        first = store.get_history(USER_ID)
        store.record_transaction(USER_ID, "매일 로그인 보상", 100)
        second = store.get_history(USER_ID)

        assert len(first) == 1
        assert len(second) == 2
        assert list(second) == list(second)

    def test_redemption_through_service(self, store):
        """Test the token service on top of the store."""
        service = TokenService(store)
        service.credit(USER_ID, "충전", 1000)

        result = service.redeem(USER_ID, 1)

        assert result.new_balance == 800
        assert store.get_history(USER_ID)[0].title == "이력서 첨삭 사용"

    def test_guarded_debit_never_overdraws(self, store):
        """Test that a guarded debit larger than the balance changes nothing."""
        store.record_transaction(USER_ID, "매일 로그인 보상", 100)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            store.record_transaction(USER_ID, "합격 예측 사용", -150, require_non_negative=True)

        assert exc_info.value.balance == 100
        assert exc_info.value.cost == 150
        assert store.get_balance(USER_ID) == 100
        assert len(store.get_history(USER_ID)) == 1

    def test_guarded_debit_for_unknown_user(self, store):
        with pytest.raises(InsufficientBalanceError):
            store.record_transaction(USER_ID, "합격 예측 사용", -150, require_non_negative=True)

        assert store.get_balance(USER_ID) == 0
        assert store.get_history(USER_ID) == []

    def test_guarded_debit_down_to_zero(self, store):
        store.record_transaction(USER_ID, "충전", 200)

        debit = store.record_transaction(USER_ID, "이력서 첨삭 사용", -200, require_non_negative=True)

        assert debit.balance_after == 0
        assert store.get_balance(USER_ID) == 0

    def test_timestamps_are_utc(self, store):
        """Test that history timestamps come back timezone-aware in UTC."""
        store.record_transaction(USER_ID, "매일 로그인 보상", 100)

        created_at = store.get_history(USER_ID)[0].created_at

        assert created_at.tzinfo is not None
        assert created_at.utcoffset() == timedelta(0)

    def test_user_locks_are_released(self, store):
        """Test that the per-user lock registry does not grow with users."""
        service = TokenService(store)
        for user_id in range(1, 51):
            service.credit(user_id, "충전", 300)
            service.redeem(user_id, 1)

        gc.collect()

        assert len(store._user_locks) == 0


class TestSqlLedgerStore:
    """SQL-specific behaviour."""

    def test_data_survives_a_new_store(self, tmp_path):
        """Test that a file database keeps the ledger across store instances."""
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        SqlLedgerStore(url).record_transaction(USER_ID, "친구 초대 보상", 500)

        reopened = SqlLedgerStore(url)

        assert reopened.get_balance(USER_ID) == 500
        assert reopened.get_history(USER_ID)[0].title == "친구 초대 보상"

    def test_database_failure_is_storage_unavailable(self):
        """Test that SQLAlchemy errors surface as StorageUnavailableError."""
        store = SqlLedgerStore("sqlite://")
        with store.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE token_transactions")

        with pytest.raises(StorageUnavailableError):
            store.get_history(USER_ID)

    def test_stale_balance_read_cannot_overdraw(self, tmp_path, monkeypatch):
        """Test that two processes sharing one database cannot double-spend.

        Each service has its own store and so its own locks; the second one
        reads a balance from before the first redemption.
        """
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        first = TokenService(SqlLedgerStore(url))
        second = TokenService(SqlLedgerStore(url))
        first.credit(USER_ID, "충전", 300)
        monkeypatch.setattr(second.store, "get_balance", lambda user_id: 300)

        first.redeem(USER_ID, 1)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            second.redeem(USER_ID, 1)

        assert exc_info.value.balance == 100
        assert first.store.get_balance(USER_ID) == 100
        assert len(first.store.get_history(USER_ID)) == 2


class TestSeeding:
    """Tests for demo data seeding."""

    def test_seed_demo_ledger(self):
        """Test that seeding records the demo history once."""
        store = InMemoryLedgerStore()

        seed_demo_ledger(store, USER_ID)
        seed_demo_ledger(store, USER_ID)

        assert len(store.get_history(USER_ID)) == len(DEMO_TRANSACTIONS)
        assert store.get_balance(USER_ID) == 700
        assert store.get_history(USER_ID)[0].title == "친구 초대 보상"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
