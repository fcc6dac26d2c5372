import itertools
import threading
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from .errors import InsufficientBalanceError
from .models import TokenTransaction


class LedgerStore(ABC):
    """Per-user balance plus append-only transaction history.

    Balance and history of one user are guarded by a single re-entrant lock,
    handed out by ``user_lock``. Callers that need read-compare-write (the
    redemption flow) hold that lock across the whole sequence;
    ``record_transaction`` takes it as well, so nesting is safe.

    Locks are held weakly: an entry disappears once no caller references its
    lock, and a caller that still holds or waits on it keeps it alive.
    """

    def __init__(self):
        self._user_locks = weakref.WeakValueDictionary()
        self._user_locks_guard = threading.Lock()

    def user_lock(self, user_id: int):
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._user_locks[user_id] = lock
            return lock

    def record_transaction(
        self, user_id: int, title: str, amount: int, require_non_negative: bool = False,
    ) -> TokenTransaction:
        """Append a transaction and move the balance by ``amount``.

        With ``require_non_negative`` the balance check happens in the same
        atomic step as the write and raises ``InsufficientBalanceError``
        instead of letting the balance drop below zero.
        """
        with self.user_lock(user_id):
            return self._append(
                user_id, title, amount, datetime.now(timezone.utc), require_non_negative
            )

    @abstractmethod
    def get_balance(self, user_id: int) -> int:
        ...

    @abstractmethod
    def get_history(self, user_id: int) -> list[TokenTransaction]:
        """Newest first. Each call returns a fresh snapshot."""

    @abstractmethod
    def _append(
        self, user_id: int, title: str, amount: int, created_at: datetime, require_non_negative: bool,
    ) -> TokenTransaction:
        ...


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        super().__init__()
        self.balances: dict[int, int] = {}
        self.transactions: dict[int, list[TokenTransaction]] = {}
        self._ids = itertools.count(1)
        self._ids_guard = threading.Lock()

    def get_balance(self, user_id: int) -> int:
        with self.user_lock(user_id):
            return self.balances.get(user_id, 0)

    def get_history(self, user_id: int) -> list[TokenTransaction]:
        with self.user_lock(user_id):
            entries = list(self.transactions.get(user_id, ()))
        entries.reverse()
        return entries

    def _append(
        self, user_id: int, title: str, amount: int, created_at: datetime, require_non_negative: bool,
    ) -> TokenTransaction:
        balance = self.balances.get(user_id, 0)
        if require_non_negative and balance + amount < 0:
            raise InsufficientBalanceError(user_id, balance, -amount)

        with self._ids_guard:
            transaction_id = next(self._ids)

        transaction = TokenTransaction(
            id=transaction_id,
            user_id=user_id,
            title=title,
            amount=amount,
            balance_after=balance + amount,
            created_at=created_at,
        )
        self.transactions.setdefault(user_id, []).append(transaction)
        self.balances[user_id] = balance + amount
        return transaction
