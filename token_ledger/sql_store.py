import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, create_engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import InsufficientBalanceError, StorageUnavailableError
from .models import TokenTransaction
from .store import LedgerStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class TokenAccountRow(Base):
    __tablename__ = "token_accounts"

    user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    balance = Column(BigInteger, nullable=False, default=0)


class TokenTransactionRow(Base):
    __tablename__ = "token_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("token_accounts.user_id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    amount = Column(BigInteger, nullable=False)
    balance_after = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


def _engine_for(database_url: str):
    # Some hosts hand out postgres:// while SQLAlchemy expects postgresql://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    kwargs = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


class SqlLedgerStore(LedgerStore):
    """Durable ledger backed by SQLAlchemy.

    The account row and the transaction row for one mutation are written in
    the same database transaction. Per-user locks only serialize writers in
    this process; across processes the non-negative guard is enforced by a
    conditional UPDATE on the account row.
    """

    def __init__(self, database_url: str):
        super().__init__()
        self.engine = _engine_for(database_url)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.exception("Ledger schema creation failed")
            raise StorageUnavailableError(f"Ledger database unavailable: {e}") from e

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Ledger database error: %s", e)
            raise StorageUnavailableError(f"Ledger database unavailable: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_balance(self, user_id: int) -> int:
        with self._session() as session:
            balance = session.execute(
                select(TokenAccountRow.balance).where(TokenAccountRow.user_id == user_id)
            ).scalar_one_or_none()
        return balance or 0

    def get_history(self, user_id: int) -> list[TokenTransaction]:
        with self._session() as session:
            rows = session.execute(
                select(TokenTransactionRow)
                .where(TokenTransactionRow.user_id == user_id)
                .order_by(TokenTransactionRow.id.desc())
            ).scalars().all()
            return [_to_transaction(row) for row in rows]

    def _append(
        self, user_id: int, title: str, amount: int, created_at: datetime, require_non_negative: bool,
    ) -> TokenTransaction:
        with self._session() as session:
            account = session.get(TokenAccountRow, user_id, with_for_update=True)
            if account is None:
                session.add(TokenAccountRow(user_id=user_id, balance=0))
                session.flush()

            # The guard lives in the UPDATE itself so check and write are one
            # statement, whichever process or dialect runs it.
            stmt = (
                update(TokenAccountRow)
                .where(TokenAccountRow.user_id == user_id)
                .values(balance=TokenAccountRow.balance + amount)
                .execution_options(synchronize_session=False)
            )
            if require_non_negative:
                stmt = stmt.where(TokenAccountRow.balance + amount >= 0)
            if session.execute(stmt).rowcount == 0:
                raise InsufficientBalanceError(user_id, self._read_balance(session, user_id), -amount)

            row = TokenTransactionRow(
                user_id=user_id,
                title=title,
                amount=amount,
                balance_after=self._read_balance(session, user_id),
                created_at=created_at,
            )
            session.add(row)
            session.flush()
            return _to_transaction(row)

    @staticmethod
    def _read_balance(session: Session, user_id: int) -> int:
        return session.execute(
            select(TokenAccountRow.balance).where(TokenAccountRow.user_id == user_id)
        ).scalar_one()


def _to_transaction(row: TokenTransactionRow) -> TokenTransaction:
    # SQLite hands DateTime(timezone=True) back naive; stored values are UTC.
    created_at = row.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return TokenTransaction(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        amount=row.amount,
        balance_after=row.balance_after,
        created_at=created_at,
    )
