"""
SQLAlchemy-backed append-only log of MintEvents.

Uses DATABASE_URL for PostgreSQL when set; otherwise SQLite (MINTLEDGER_DB_PATH
or mintledger.db). Writes are insert-ignore on signature so concurrent or
retried sync passes never produce duplicate rows or duplicate-key errors.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import BigInteger, Column, Integer, String, Text, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_mintledger.core.exceptions import CacheError
from backend_mintledger.database.models import MintEvent
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# Rows per INSERT statement; keeps SQLite under its bound-parameter limit.
_INSERT_CHUNK = 500

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class MintTransactionRow(Base):
    """One attributed mint transaction per signature."""

    __tablename__ = "mint_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    signature = Column(String(128), unique=True, nullable=False, index=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    token_address = Column(String(64), nullable=False, index=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    amount = Column(String(80), nullable=False)  # uint256 as decimal text; string avoids precision loss
    tx_data = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=True)

    def to_event(self) -> MintEvent:
        return MintEvent(
            id=self.id,
            signature=self.signature,
            timestamp=int(self.timestamp),
            token_address=self.token_address,
            wallet_address=self.wallet_address,
            amount=int(self.amount),
            raw_transaction=json.loads(self.tx_data) if self.tx_data else {},
            created_at=self.created_at,
        )


class PendingSignatureRow(Base):
    """Signature the fetcher gave up on; re-fetched on the next sync pass."""

    __tablename__ = "pending_signatures"

    signature = Column(String(128), primary_key=True)
    attempts = Column(Integer, nullable=False, default=1)
    first_seen_at = Column(BigInteger, nullable=False)
    last_attempt_at = Column(BigInteger, nullable=False)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump_tx(raw: dict[str, Any]) -> str:
    return json.dumps(raw, default=_json_default, separators=(",", ":"))


# -----------------------------------------------------------------------------
# Interface: the synchronizer depends on this, not on SQLAlchemy.
# -----------------------------------------------------------------------------


class MintCache(ABC):
    """Persistent, append-only mint log with per-token read projections."""

    @abstractmethod
    def get_cached_mint_transactions(self, token_address: str) -> list[MintEvent]:
        """All cached events for a token, oldest first. Unfiltered."""
        ...

    @abstractmethod
    def batch_store_mint_transactions(self, events: list[MintEvent]) -> int:
        """Insert events, ignoring signatures already present. Returns rows inserted."""
        ...

    @abstractmethod
    def get_latest_cached_transaction(self) -> MintEvent | None:
        """Newest event across all tokens (the global high-water mark), or None on cold start."""
        ...

    def get_total_minted(self, token_address: str, rules: Any = None) -> int:
        """Sum of cached amounts for a token after exclusion rules (default: the configured rules file)."""
        from backend_mintledger.attribution.filters import filter_mint_transactions, load_exclusion_rules

        if rules is None:
            rules = load_exclusion_rules()
        events = filter_mint_transactions(self.get_cached_mint_transactions(token_address), token_address, rules)
        return sum(e.amount for e in events)

    def get_pending_signatures(self) -> list[str]:
        return []

    def mark_pending(self, signatures: list[str]) -> None:
        return None

    def clear_pending(self, signatures: list[str]) -> None:
        return None


# -----------------------------------------------------------------------------
# SQLAlchemy implementation
# -----------------------------------------------------------------------------


class SqlMintCache(MintCache):
    """SQLAlchemy implementation (SQLite or PostgreSQL)."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        connect_args: dict[str, Any] = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = database_url
        self._engine = create_engine(
            database_url, connect_args=connect_args, pool_pre_ping=True, echo=echo
        )
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self._engine
        )
        logger.info("mint_cache_engine", url=database_url.split("?")[0].split("//")[-1])

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Commits on success, rolls back on error; SQLAlchemy errors surface as CacheError."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise CacheError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _insert_ignore(self, session: Session, model: Any, rows: list[dict[str, Any]], key: str) -> int:
        """INSERT ... ON CONFLICT DO NOTHING for SQLite/PostgreSQL; row-by-row fallback elsewhere."""
        if self.dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif self.dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            inserted = 0
            for row in rows:
                try:
                    with session.begin_nested():
                        session.add(model(**row))
                    inserted += 1
                except IntegrityError:
                    pass
            return inserted
        inserted = 0
        for start in range(0, len(rows), _INSERT_CHUNK):
            stmt = insert(model).values(rows[start : start + _INSERT_CHUNK])
            stmt = stmt.on_conflict_do_nothing(index_elements=[key])
            result = session.execute(stmt)
            inserted += max(result.rowcount or 0, 0)
        return inserted

    def get_cached_mint_transactions(self, token_address: str) -> list[MintEvent]:
        with self._session_scope() as session:
            rows = session.scalars(
                select(MintTransactionRow)
                .where(MintTransactionRow.token_address == token_address)
                .order_by(MintTransactionRow.timestamp.asc(), MintTransactionRow.id.desc())
            ).all()
            return [r.to_event() for r in rows]

    def batch_store_mint_transactions(self, events: list[MintEvent]) -> int:
        if not events:
            return 0
        now = int(time.time())
        rows: list[dict[str, Any]] = []
        seen: set[str] = set()
        for e in events:
            if e.signature in seen:
                continue
            seen.add(e.signature)
            rows.append(
                {
                    "signature": e.signature,
                    "timestamp": e.timestamp,
                    "token_address": e.token_address,
                    "wallet_address": e.wallet_address,
                    "amount": str(e.amount),
                    "tx_data": _dump_tx(e.raw_transaction),
                    "created_at": now,
                }
            )
        with self._session_scope() as session:
            inserted = self._insert_ignore(session, MintTransactionRow, rows, "signature")
        logger.info("mint_cache_stored", requested=len(events), inserted=inserted)
        return inserted

    def get_latest_cached_transaction(self) -> MintEvent | None:
        # Rows of one pass are inserted newest-first, so the lowest id wins a timestamp tie.
        with self._session_scope() as session:
            row = session.scalars(
                select(MintTransactionRow)
                .order_by(MintTransactionRow.timestamp.desc(), MintTransactionRow.id.asc())
                .limit(1)
            ).first()
            return row.to_event() if row is not None else None

    def get_pending_signatures(self) -> list[str]:
        with self._session_scope() as session:
            return list(
                session.scalars(
                    select(PendingSignatureRow.signature).order_by(
                        PendingSignatureRow.first_seen_at.asc()
                    )
                ).all()
            )

    def mark_pending(self, signatures: list[str]) -> None:
        if not signatures:
            return
        now = int(time.time())
        with self._session_scope() as session:
            for sig in dict.fromkeys(signatures):
                row = session.get(PendingSignatureRow, sig)
                if row is None:
                    session.add(
                        PendingSignatureRow(
                            signature=sig, attempts=1, first_seen_at=now, last_attempt_at=now
                        )
                    )
                else:
                    row.attempts += 1
                    row.last_attempt_at = now
        logger.warning("mint_cache_pending_marked", count=len(signatures))

    def clear_pending(self, signatures: list[str]) -> None:
        if not signatures:
            return
        with self._session_scope() as session:
            for sig in signatures:
                row = session.get(PendingSignatureRow, sig)
                if row is not None:
                    session.delete(row)


def get_mint_cache(database_url: str | None = None) -> SqlMintCache:
    """Return a SqlMintCache for database_url (default: settings) with schema ensured."""
    if database_url is None:
        from backend_mintledger.config import get_settings

        database_url = get_settings().database_url
    cache = SqlMintCache(database_url)
    cache.ensure_schema()
    return cache
