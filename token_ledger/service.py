import logging
from typing import Optional

from .catalog import ServiceCatalog
from .errors import (
    LedgerServiceError,
    ServiceNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    StorageUnavailableError,
)
from .models import (
    ServiceDescriptor,
    TokenBalance,
    TokenHistoryResponse,
    RedemptionResult,
)
from .store import LedgerStore, InMemoryLedgerStore

logger = logging.getLogger(__name__)

__all__ = [
    "TokenService",
    "LedgerServiceError",
    "ServiceNotFoundError",
    "InsufficientBalanceError",
    "InvalidAmountError",
    "StorageUnavailableError",
]


class TokenService:
    def __init__(self, store: Optional[LedgerStore] = None, catalog: Optional[ServiceCatalog] = None):
        self.store = store or InMemoryLedgerStore()
        self.catalog = catalog or ServiceCatalog.default()

    def redeem(self, user_id: int, service_id: int) -> RedemptionResult:
        service = self.catalog.get_service(service_id)

        with self.store.user_lock(user_id):
            balance = self.store.get_balance(user_id)
            if balance < service.cost:
                self._reject(user_id, service, balance)
                raise InsufficientBalanceError(user_id, balance, service.cost)

            # The store re-checks inside its write, which covers writers
            # outside this process.
            try:
                transaction = self.store.record_transaction(
                    user_id, f"{service.title} 사용", -service.cost, require_non_negative=True,
                )
            except InsufficientBalanceError as e:
                self._reject(user_id, service, e.balance)
                raise

        logger.info(
            "User %s redeemed service %s, balance now %s", user_id, service.id, transaction.balance_after
        )
        return RedemptionResult(new_balance=transaction.balance_after, transaction=transaction)

    def credit(self, user_id: int, title: str, amount: int) -> RedemptionResult:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Credit amount must be a positive integer, got {amount!r}")

        transaction = self.store.record_transaction(user_id, title, amount)

        logger.info(
            "User %s credited %s tokens (%s), balance now %s", user_id, amount, title, transaction.balance_after
        )
        return RedemptionResult(new_balance=transaction.balance_after, transaction=transaction)

    def _reject(self, user_id: int, service: ServiceDescriptor, balance: int) -> None:
        logger.info(
            "Redemption rejected: user=%s service=%s balance=%s cost=%s",
            user_id, service.id, balance, service.cost,
        )

    def get_balance(self, user_id: int) -> TokenBalance:
        with self.store.user_lock(user_id):
            amount = self.store.get_balance(user_id)
            history = self.store.get_history(user_id)

        return TokenBalance(
            user_id=user_id,
            amount=amount,
            total_entries=len(history),
            last_transaction_at=history[0].created_at if history else None,
        )

    def get_history(self, user_id: int, limit: int = 50, offset: int = 0) -> TokenHistoryResponse:
        with self.store.user_lock(user_id):
            entries = self.store.get_history(user_id)
            balance = self.store.get_balance(user_id)

        return TokenHistoryResponse(
            user_id=user_id,
            entries=entries[offset:offset + limit],
            total_count=len(entries),
            current_balance=balance,
        )

    def list_services(self) -> list[ServiceDescriptor]:
        return self.catalog.list_services()

    def get_service(self, service_id: int) -> ServiceDescriptor:
        return self.catalog.get_service(service_id)
