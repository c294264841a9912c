"""Repository layer for the transaction ledger.

Maps ``TransactionRecord`` domain objects onto the ``paypal`` table and
implements the ``TransactionStore`` interface used by ``TransactionLedger``.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import case, select
from sqlalchemy.orm import Session

from paypal_restful.infrastructure.models import PayPalTransaction
from paypal_restful.models.transaction import TransactionRecord, TxnType

logger = structlog.get_logger(__name__)

# Domain attribute -> column, where the two differ.
_COLUMN_NAMES = {
    "currency": "mc_currency",
    "gross_amount": "mc_gross",
}

_TYPE_RANK = case(
    (PayPalTransaction.txn_type == TxnType.CREATE.value, TxnType.CREATE.sort_rank),
    (PayPalTransaction.txn_type == TxnType.AUTHORIZE.value, TxnType.AUTHORIZE.sort_rank),
    (PayPalTransaction.txn_type == TxnType.CAPTURE.value, TxnType.CAPTURE.sort_rank),
    else_=TxnType.REFUND.sort_rank,
)


class TransactionRepository:
    """Ledger storage backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def list_for_order(self, order_id: int) -> list[TransactionRecord]:
        rows = self.session.scalars(
            select(PayPalTransaction)
            .where(PayPalTransaction.order_id == order_id)
            .order_by(_TYPE_RANK, PayPalTransaction.date_added, PayPalTransaction.paypal_ipn_id)
        ).all()
        return [_to_record(row) for row in rows]

    def exists(self, order_id: int, txn_id: str) -> bool:
        return self._get(order_id, txn_id) is not None

    def insert(self, record: TransactionRecord) -> int:
        """
        Persist a new ledger row.

        Raises:
            ValueError: If the order already has a row with this txn_id
        """
        if self.exists(record.order_id, record.txn_id):
            raise ValueError(f"Transaction {record.txn_id} already recorded for order {record.order_id}")

        row = PayPalTransaction(**_to_columns(record))
        self.session.add(row)
        self.session.flush()

        logger.debug("ledger_row_inserted", order_id=record.order_id, txn_id=record.txn_id, row_id=row.paypal_ipn_id)
        return row.paypal_ipn_id

    def update(self, order_id: int, txn_id: str, **fields: Any) -> bool:
        row = self._get(order_id, txn_id)
        if row is None:
            return False
        _apply(row, fields)
        self.session.flush()
        return True

    def update_main(self, order_id: int, **fields: Any) -> bool:
        row = self.session.scalars(
            select(PayPalTransaction).where(
                PayPalTransaction.order_id == order_id,
                PayPalTransaction.txn_type == TxnType.CREATE.value,
            )
        ).first()
        if row is None:
            return False
        _apply(row, fields)
        self.session.flush()
        return True

    def _get(self, order_id: int, txn_id: str) -> PayPalTransaction | None:
        return self.session.scalars(
            select(PayPalTransaction).where(
                PayPalTransaction.order_id == order_id,
                PayPalTransaction.txn_id == txn_id,
            )
        ).first()


def _column_value(value: Any) -> Any:
    if isinstance(value, TxnType):
        return value.value
    return value


def _to_columns(record: TransactionRecord) -> dict[str, Any]:
    return {
        "order_id": record.order_id,
        "txn_id": record.txn_id,
        "txn_type": record.txn_type.value,
        "parent_txn_id": record.parent_txn_id,
        "payment_type": record.payment_type,
        "payment_status": record.payment_status,
        "pending_reason": record.pending_reason,
        "mc_currency": record.currency,
        "mc_gross": record.gross_amount,
        "settle_amount": record.settle_amount,
        "settle_currency": record.settle_currency,
        "exchange_rate": record.exchange_rate,
        "date_added": record.date_added,
        "last_modified": record.last_modified,
        "expiration_time": record.expiration_time,
        "final_capture": record.final_capture,
        "memo": record.memo,
        "invoice": record.invoice,
        "payment_gross": record.payment_gross,
        "payment_fee": record.payment_fee,
        "payment_date": record.payment_date,
        "notify_version": record.notify_version,
    }


def _apply(row: PayPalTransaction, fields: dict[str, Any]) -> None:
    for name, value in fields.items():
        setattr(row, _COLUMN_NAMES.get(name, name), _column_value(value))


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: PayPalTransaction) -> TransactionRecord:
    return TransactionRecord(
        order_id=row.order_id,
        txn_id=row.txn_id,
        txn_type=TxnType(row.txn_type),
        parent_txn_id=row.parent_txn_id or "",
        payment_type=row.payment_type or "",
        payment_status=row.payment_status or "",
        pending_reason=row.pending_reason,
        currency=row.mc_currency or "",
        gross_amount=row.mc_gross,
        settle_amount=row.settle_amount,
        settle_currency=row.settle_currency,
        exchange_rate=row.exchange_rate,
        date_added=_aware(row.date_added),
        last_modified=_aware(row.last_modified),
        expiration_time=_aware(row.expiration_time),
        final_capture=bool(row.final_capture),
        memo=row.memo or "",
        invoice=row.invoice or "",
        payment_gross=row.payment_gross,
        payment_fee=row.payment_fee,
        payment_date=_aware(row.payment_date),
        notify_version=row.notify_version or "",
        record_id=row.paypal_ipn_id,
    )
