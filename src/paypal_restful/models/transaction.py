"""Ledger domain models."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TxnType(str, Enum):
    """Type of a ledger row."""

    CREATE = "CREATE"
    AUTHORIZE = "AUTHORIZE"
    CAPTURE = "CAPTURE"
    REFUND = "REFUND"

    @property
    def sort_rank(self) -> int:
        """Ledger rows are listed CREATE, AUTHORIZE, CAPTURE, then everything else."""
        return _SORT_RANKS.get(self, 2)


_SORT_RANKS = {
    TxnType.CREATE: -1,
    TxnType.AUTHORIZE: 0,
    TxnType.CAPTURE: 1,
}


class PaymentCategory(str, Enum):
    """Child-payment arrays of a purchase unit's ``payments`` object.

    Declaration order is processing order: captures reference authorizations
    and refunds reference captures.
    """

    AUTHORIZATIONS = "authorizations"
    CAPTURES = "captures"
    REFUNDS = "refunds"

    @property
    def txn_type(self) -> TxnType:
        return _CATEGORY_TXN_TYPES[self]

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_TXN_TYPES = {
    PaymentCategory.AUTHORIZATIONS: TxnType.AUTHORIZE,
    PaymentCategory.CAPTURES: TxnType.CAPTURE,
    PaymentCategory.REFUNDS: TxnType.REFUND,
}

_CATEGORY_LABELS = {
    PaymentCategory.AUTHORIZATIONS: "Authorization",
    PaymentCategory.CAPTURES: "Capture",
    PaymentCategory.REFUNDS: "Refund",
}


@dataclass
class TransactionRecord:
    """
    One persisted ledger row.

    ``parent_txn_id`` is empty for the order's CREATE row; every other row
    references the ``txn_id`` of another row of the same order. Rows are
    appended and updated in place, never deleted.
    """

    order_id: int
    txn_id: str
    txn_type: TxnType
    parent_txn_id: str = ""
    payment_type: str = ""
    payment_status: str = ""
    pending_reason: str | None = None
    currency: str = ""
    gross_amount: Decimal | None = None
    settle_amount: Decimal | None = None
    settle_currency: str | None = None
    exchange_rate: Decimal | None = None
    date_added: datetime | None = None
    last_modified: datetime | None = None
    expiration_time: datetime | None = None
    final_capture: bool = False
    memo: str = ""
    invoice: str = ""
    payment_gross: Decimal | None = None
    payment_fee: Decimal | None = None
    payment_date: datetime | None = None
    notify_version: str = ""
    record_id: int | None = field(default=None, compare=False)

    @property
    def is_root(self) -> bool:
        return self.parent_txn_id == ""

    def sort_key(self) -> tuple[int, str, str]:
        """Canonical listing order: type rank, then date added, then id."""
        return (
            self.txn_type.sort_rank,
            self.date_added.isoformat() if self.date_added else "",
            self.txn_id,
        )

    def with_changes(self, **changes: Any) -> "TransactionRecord":
        return replace(self, **changes)
