"""
Career Token Ledger

This package provides:
- Per-user token balances backed by an append-only transaction history
- A read-only catalog of services that can be bought with tokens
- All-or-nothing redemption, serialized per user
- In-memory and SQL-backed ledger stores selected by configuration
"""

from .models import (
    TokenTransaction,
    ServiceDescriptor,
    TokenBalance,
    RedemptionResult,
    TokenHistoryResponse,
)
from .catalog import ServiceCatalog
from .store import LedgerStore, InMemoryLedgerStore
from .service import TokenService

__all__ = [
    "TokenTransaction",
    "ServiceDescriptor",
    "TokenBalance",
    "RedemptionResult",
    "TokenHistoryResponse",
    "ServiceCatalog",
    "LedgerStore",
    "InMemoryLedgerStore",
    "TokenService",
]
