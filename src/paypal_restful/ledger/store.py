"""Record-store interface for the transaction ledger."""

from typing import Any, Protocol

from paypal_restful.models.transaction import TransactionRecord, TxnType


class TransactionStore(Protocol):
    """
    Persistence used by ``TransactionLedger``.

    ``list_for_order`` returns an order's rows pre-sorted: CREATE first, then
    AUTHORIZE, then CAPTURE, then everything else, each group ascending by
    ``date_added``.
    """

    def list_for_order(self, order_id: int) -> list[TransactionRecord]: ...

    def exists(self, order_id: int, txn_id: str) -> bool: ...

    def insert(self, record: TransactionRecord) -> int: ...

    def update(self, order_id: int, txn_id: str, **fields: Any) -> bool: ...

    def update_main(self, order_id: int, **fields: Any) -> bool: ...


class InMemoryTransactionStore:
    """List-backed store, for tests and single-process tools."""

    def __init__(self, records: list[TransactionRecord] | None = None):
        self._records: list[TransactionRecord] = []
        for record in records or []:
            self.insert(record)

    def list_for_order(self, order_id: int) -> list[TransactionRecord]:
        rows = [record for record in self._records if record.order_id == order_id]
        return sorted(rows, key=lambda record: record.sort_key()[:2])

    def exists(self, order_id: int, txn_id: str) -> bool:
        return self._find(order_id, txn_id) is not None

    def insert(self, record: TransactionRecord) -> int:
        if self.exists(record.order_id, record.txn_id):
            raise ValueError(f"Transaction {record.txn_id} already recorded for order {record.order_id}")
        record_id = len(self._records) + 1
        self._records.append(record.with_changes(record_id=record_id))
        return record_id

    def update(self, order_id: int, txn_id: str, **fields: Any) -> bool:
        record = self._find(order_id, txn_id)
        if record is None:
            return False
        self._replace(record, record.with_changes(**fields))
        return True

    def update_main(self, order_id: int, **fields: Any) -> bool:
        for record in self._records:
            if record.order_id == order_id and record.txn_type == TxnType.CREATE:
                self._replace(record, record.with_changes(**fields))
                return True
        return False

    def _find(self, order_id: int, txn_id: str) -> TransactionRecord | None:
        for record in self._records:
            if record.order_id == order_id and record.txn_id == txn_id:
                return record
        return None

    def _replace(self, old: TransactionRecord, new: TransactionRecord) -> None:
        index = next(i for i, record in enumerate(self._records) if record is old)
        self._records[index] = new
