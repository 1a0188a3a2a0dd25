"""
Transaction Store

Data-access boundary for transactions and the webhook dedup ledger.

Guarantees:
- checkout_id, provider_charge_id and webhook_id uniqueness is enforced by
  database constraints; violations surface as ConflictError, while CHECK
  violations surface as InternalError
- Status changes are a single conditional UPDATE (only from pending), never
  a read-then-write
- List pages and counts come from one database transaction
- Every write stamps updated_at

No business rules live here beyond the state machine table.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import TransactionModel, WebhookEventModel
from ..exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from ..models.transactions import (
    Transaction,
    TransactionFilter,
    TransactionPage,
    TransactionStats,
    TransactionStatus,
    can_transition,
)
from ..models.webhooks import WebhookEventRecord
from ..utils import from_cents, to_cents, to_naive_utc, utcnow

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# Largest OFFSET every supported engine accepts (signed 64-bit)
MAX_OFFSET = 2 ** 63 - 1


def is_unique_violation(error: IntegrityError) -> bool:
    """
    True if an IntegrityError came from a UNIQUE/primary key constraint.

    SQLite reports "UNIQUE constraint failed", PostgreSQL "duplicate key value
    violates unique constraint" and MySQL "Duplicate entry".
    """
    message = str(error.orig).lower()
    return "unique" in message or "duplicate" in message


def _integrity_failure(error: IntegrityError, conflict_message: str) -> Exception:
    """Map a uniqueness violation to ConflictError and anything else (CHECK, NOT NULL) to InternalError."""
    if is_unique_violation(error):
        return ConflictError(conflict_message)
    logger.error(f"Constraint violation: {error.orig}")
    return InternalError("Internal server error", details={"constraint": str(error.orig)})


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a conditional status update."""
    applied: bool
    status: TransactionStatus


def _to_transaction(row: TransactionModel) -> Transaction:
    return Transaction(
        id=row.id,
        checkout_id=row.checkout_id,
        email=row.email,
        amount=from_cents(row.amount_cents),
        currency=row.currency or "USD",
        status=TransactionStatus(row.status),
        provider_charge_id=row.provider_charge_id,
        provider_charge_code=row.provider_charge_code,
        payment_url=row.payment_url,
        expires_at=row.expires_at,
        confirmed_at=row.confirmed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_webhook_record(row: WebhookEventModel) -> WebhookEventRecord:
    return WebhookEventRecord(
        id=row.id,
        webhook_id=row.webhook_id,
        webhook_type=row.webhook_type,
        provider_charge_id=row.provider_charge_id,
        processed_at=row.processed_at,
        payload=row.payload or {},
    )


class StoreSession:
    """Store operations bound to one open database transaction."""

    def __init__(self, session: AsyncSession, max_page_size: int = MAX_PAGE_SIZE):
        self._session = session
        self._max_page_size = max_page_size

    # ========================================================================
    # Transactions
    # ========================================================================

    async def insert(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction row.

        Raises:
            ConflictError: checkout_id, id or provider_charge_id already exists
            InternalError: a CHECK constraint rejected the row
        """
        now = utcnow()
        row = TransactionModel(
            id=transaction.id,
            checkout_id=transaction.checkout_id,
            email=transaction.email,
            amount_cents=to_cents(transaction.amount),
            currency=transaction.currency,
            status=transaction.status.value,
            provider_charge_id=transaction.provider_charge_id,
            provider_charge_code=transaction.provider_charge_code,
            payment_url=transaction.payment_url,
            expires_at=to_naive_utc(transaction.expires_at),
            confirmed_at=to_naive_utc(transaction.confirmed_at),
            created_at=to_naive_utc(transaction.created_at),
            updated_at=now,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.warning(
                    f"Transaction insert conflict: checkout_id={transaction.checkout_id}, "
                    f"charge={transaction.provider_charge_id}"
                )
            raise _integrity_failure(e, "Transaction already exists") from e

        logger.debug(f"Inserted transaction {transaction.id}")
        return transaction.model_copy(update={"updated_at": now})

    async def update_status_by_charge_id(
        self,
        charge_id: str,
        new_status: TransactionStatus,
        confirmed_at: Optional[datetime] = None
    ) -> TransitionResult:
        """
        Move the transaction for a charge out of pending.

        The UPDATE only matches rows still in pending, so a terminal row is
        never overwritten no matter how deliveries interleave.

        Args:
            charge_id: Provider charge identifier
            new_status: Target terminal status
            confirmed_at: Confirmation time, used only for completed (defaults to now)

        Returns:
            TransitionResult; applied=False with the current status if the row
            was already terminal

        Raises:
            ValidationError: new_status is not reachable from pending
            NotFoundError: no transaction has this charge id
        """
        if not can_transition(TransactionStatus.PENDING, new_status):
            raise ValidationError(f"Cannot transition transaction to {new_status.value}")

        now = utcnow()
        values = {"status": new_status.value, "updated_at": now}
        if new_status == TransactionStatus.COMPLETED:
            values["confirmed_at"] = to_naive_utc(confirmed_at) or now

        result = await self._session.execute(
            update(TransactionModel)
            .where(
                TransactionModel.provider_charge_id == charge_id,
                TransactionModel.status == TransactionStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            logger.info(f"Transaction for charge {charge_id} moved to {new_status.value}")
            return TransitionResult(applied=True, status=new_status)

        current = await self._session.execute(
            select(TransactionModel.status).where(TransactionModel.provider_charge_id == charge_id)
        )
        current_status = current.scalar_one_or_none()
        if current_status is None:
            raise NotFoundError(f"No transaction for charge {charge_id}")

        logger.info(
            f"Transaction for charge {charge_id} already {current_status}, "
            f"ignoring transition to {new_status.value}"
        )
        return TransitionResult(applied=False, status=TransactionStatus(current_status))

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return await self._get_one(TransactionModel.id == transaction_id)

    async def get_by_charge_id(self, charge_id: str) -> Optional[Transaction]:
        return await self._get_one(TransactionModel.provider_charge_id == charge_id)

    async def get_by_checkout_id(self, checkout_id: str) -> Optional[Transaction]:
        return await self._get_one(TransactionModel.checkout_id == checkout_id)

    async def _get_one(self, condition) -> Optional[Transaction]:
        result = await self._session.execute(select(TransactionModel).where(condition))
        row = result.scalar_one_or_none()
        return _to_transaction(row) if row else None

    async def list(
        self,
        filters: Optional[TransactionFilter] = None,
        page: int = 1,
        page_size: int = 10
    ) -> TransactionPage:
        """
        Get one page of transactions, most recent first.

        Raises:
            ValidationError: page < 1, page_size outside 1..max_page_size, or the
                page offset is too large to query
        """
        if page < 1 or page_size < 1 or page_size > self._max_page_size:
            raise ValidationError(
                "Invalid pagination parameters. Page must be >= 1, "
                f"limit must be between 1 and {self._max_page_size}"
            )
        if (page - 1) * page_size > MAX_OFFSET:
            raise ValidationError(f"Invalid pagination parameters. Page {page} is out of range")

        filters = filters or TransactionFilter()
        count_stmt = select(func.count()).select_from(TransactionModel)
        rows_stmt = select(TransactionModel)
        if filters.status is not None:
            count_stmt = count_stmt.where(TransactionModel.status == filters.status.value)
            rows_stmt = rows_stmt.where(TransactionModel.status == filters.status.value)
        if filters.email:
            count_stmt = count_stmt.where(TransactionModel.email == filters.email)
            rows_stmt = rows_stmt.where(TransactionModel.email == filters.email)

        total = (await self._session.execute(count_stmt)).scalar_one()
        result = await self._session.execute(
            rows_stmt
            .order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )

        return TransactionPage(
            transactions=[_to_transaction(row) for row in result.scalars().all()],
            page=page,
            page_size=page_size,
            total=total,
        )

    async def aggregate_counts(self) -> TransactionStats:
        """Total/pending/completed/failed counts from a single query."""
        def count_status(status: TransactionStatus):
            return func.coalesce(
                func.sum(case((TransactionModel.status == status.value, 1), else_=0)), 0
            )

        result = await self._session.execute(
            select(
                func.count().label("total"),
                count_status(TransactionStatus.PENDING).label("pending"),
                count_status(TransactionStatus.COMPLETED).label("completed"),
                count_status(TransactionStatus.FAILED).label("failed"),
            ).select_from(TransactionModel)
        )
        row = result.one()
        return TransactionStats(
            total=row.total,
            pending=row.pending,
            completed=row.completed,
            failed=row.failed,
        )

    # ========================================================================
    # Webhook ledger
    # ========================================================================

    async def record_webhook_event(self, record: WebhookEventRecord) -> WebhookEventRecord:
        """
        Insert the audit row for a delivery.

        Raises:
            ConflictError: webhook_id already recorded (duplicate delivery)
        """
        self._session.add(WebhookEventModel(
            id=record.id,
            webhook_id=record.webhook_id,
            webhook_type=record.webhook_type,
            provider_charge_id=record.provider_charge_id,
            processed_at=to_naive_utc(record.processed_at),
            payload=record.payload,
        ))
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise _integrity_failure(e, f"Webhook {record.webhook_id} already recorded") from e

        logger.debug(f"Recorded webhook {record.webhook_id} ({record.webhook_type})")
        return record

    async def get_webhook_event(self, webhook_id: str) -> Optional[WebhookEventRecord]:
        result = await self._session.execute(
            select(WebhookEventModel).where(WebhookEventModel.webhook_id == webhook_id)
        )
        row = result.scalar_one_or_none()
        return _to_webhook_record(row) if row else None

    async def list_webhook_events(self, charge_id: str) -> List[WebhookEventRecord]:
        """Audit trail for a charge, oldest first."""
        result = await self._session.execute(
            select(WebhookEventModel)
            .where(WebhookEventModel.provider_charge_id == charge_id)
            .order_by(WebhookEventModel.processed_at.asc(), WebhookEventModel.id.asc())
        )
        return [_to_webhook_record(row) for row in result.scalars().all()]


class TransactionStore:
    """
    Sole owner of persisted transaction and webhook rows.

    Each public method runs in its own short database transaction. Use
    atomic() to group several operations into one commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_page_size: int = MAX_PAGE_SIZE
    ):
        self._session_factory = session_factory
        self.max_page_size = max_page_size

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[StoreSession]:
        """
        Open one database transaction; commit on success, roll back on error.

        Usage:
            async with store.atomic() as tx:
                await tx.record_webhook_event(record)
                await tx.update_status_by_charge_id(charge_id, status)

        Raises:
            ConflictError: uniqueness violation detected at commit
            InternalError: any other persistence failure
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield StoreSession(session, self.max_page_size)
        except IntegrityError as e:
            raise _integrity_failure(e, "Uniqueness constraint violated") from e
        except SQLAlchemyError as e:
            logger.error(f"Persistence failure: {e}", exc_info=True)
            raise InternalError("Internal server error") from e

    async def insert(self, transaction: Transaction) -> Transaction:
        async with self.atomic() as tx:
            return await tx.insert(transaction)

    async def update_status_by_charge_id(
        self,
        charge_id: str,
        new_status: TransactionStatus,
        confirmed_at: Optional[datetime] = None
    ) -> TransitionResult:
        async with self.atomic() as tx:
            return await tx.update_status_by_charge_id(charge_id, new_status, confirmed_at)

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        async with self.atomic() as tx:
            return await tx.get_by_id(transaction_id)

    async def get_by_charge_id(self, charge_id: str) -> Optional[Transaction]:
        async with self.atomic() as tx:
            return await tx.get_by_charge_id(charge_id)

    async def get_by_checkout_id(self, checkout_id: str) -> Optional[Transaction]:
        async with self.atomic() as tx:
            return await tx.get_by_checkout_id(checkout_id)

    async def list(
        self,
        filters: Optional[TransactionFilter] = None,
        page: int = 1,
        page_size: int = 10
    ) -> TransactionPage:
        async with self.atomic() as tx:
            return await tx.list(filters, page, page_size)

    async def aggregate_counts(self) -> TransactionStats:
        async with self.atomic() as tx:
            return await tx.aggregate_counts()

    async def record_webhook_event(self, record: WebhookEventRecord) -> WebhookEventRecord:
        async with self.atomic() as tx:
            return await tx.record_webhook_event(record)

    async def get_webhook_event(self, webhook_id: str) -> Optional[WebhookEventRecord]:
        async with self.atomic() as tx:
            return await tx.get_webhook_event(webhook_id)

    async def list_webhook_events(self, charge_id: str) -> List[WebhookEventRecord]:
        async with self.atomic() as tx:
            return await tx.list_webhook_events(charge_id)
