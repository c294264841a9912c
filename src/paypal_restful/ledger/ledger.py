"""Transaction ledger: local record of an order's PayPal transactions.

The ledger is a flat, append-only table. ``reconstruct`` rebuilds the
parent/child chain (CREATE -> AUTHORIZE -> CAPTURE -> REFUND, with
re-authorizations chained under their authorization) for display and
lookup; ``sync`` merges transactions made directly in the PayPal
Management Console into the table without ever duplicating a
transaction id.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import structlog

from paypal_restful.clients.paypal_api import PayPalRestfulApi
from paypal_restful.helpers import amount_currency, amount_value, parse_paypal_datetime, to_decimal, utcnow
from paypal_restful.ledger.store import TransactionStore
from paypal_restful.models.order import OrderSnapshot, OrderStatus
from paypal_restful.models.transaction import PaymentCategory, TransactionRecord, TxnType

logger = structlog.get_logger(__name__)

CONSOLE_MEMO = "{label} added during PayPal Management Console action."


@dataclass(frozen=True)
class LedgerMessage:
    """A message for the admin reviewing the order (level: info, warning, error)."""

    level: str
    text: str


def reconstruct(records: list[TransactionRecord]) -> list[TransactionRecord]:
    """
    Order an order's ledger rows so each row follows its parent.

    Rows are held in an arena keyed by txn_id and emitted by a pre-order walk
    from the CREATE row. Siblings are visited in canonical order (type rank,
    date added, txn_id), so the result does not depend on the input order.
    Rows whose parent isn't among ``records`` follow the CREATE tree, in the
    same canonical order.
    """
    canonical = sorted(records, key=TransactionRecord.sort_key)
    known_ids = {record.txn_id for record in canonical}

    roots: list[TransactionRecord] = []
    children: dict[str, list[TransactionRecord]] = {}
    for record in canonical:
        parent = record.parent_txn_id
        if record.txn_type == TxnType.CREATE or not parent or parent not in known_ids or parent == record.txn_id:
            roots.append(record)
        else:
            children.setdefault(parent, []).append(record)

    chain: list[TransactionRecord] = []
    visited: set[int] = set()

    def walk(start: TransactionRecord) -> None:
        stack = [start]
        while stack:
            record = stack.pop()
            if id(record) in visited:
                continue
            visited.add(id(record))
            chain.append(record)
            stack.extend(reversed(children.get(record.txn_id, [])))

    for root in roots:
        walk(root)
    # Rows only reachable through a parent cycle.
    for record in canonical:
        if id(record) not in visited:
            walk(record)

    return chain


def parent_txn_from_links(links: Any) -> str:
    """The id at the end of the response's ``rel: up`` link, '' when absent."""
    for link in links or []:
        if isinstance(link, dict) and link.get("rel") == "up":
            return str(link.get("href", "")).rstrip("/").split("/")[-1]
    return ""


def settlement_fields(paypal_response: dict[str, Any]) -> dict[str, Any]:
    """Map a receivable/payable breakdown onto ledger columns."""
    breakdown = (
        paypal_response.get("seller_receivable_breakdown")
        or paypal_response.get("seller_payable_breakdown")
        or {}
    )
    if not breakdown:
        return {}

    settled = breakdown.get("receivable_amount") or breakdown.get("net_amount") or {}
    return {
        "payment_gross": to_decimal(amount_value(breakdown.get("gross_amount"))),
        "payment_fee": to_decimal(amount_value(breakdown.get("paypal_fee"))),
        "settle_amount": to_decimal(amount_value(settled)),
        "settle_currency": amount_currency(settled) or None,
        "exchange_rate": to_decimal(amount_value(breakdown.get("exchange_rate"))),
    }


class TransactionLedger:
    """
    Reads, appends to and synchronizes the ledger rows of PayPal orders.

    Not re-entrant for a single order: callers serialize ``sync``/``append``
    per order id.
    """

    def __init__(
        self,
        api: PayPalRestfulApi,
        store: TransactionStore,
        module_version: str = "",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.api = api
        self.store = store
        self.module_version = module_version
        self.clock = clock
        self.messages: list[LedgerMessage] = []

    # ===== Reading =====

    def get_records(self, order_id: int, txn_type: TxnType | None = None) -> list[TransactionRecord]:
        """The order's rows in parent/child order, optionally of one type only."""
        chain = reconstruct(self.store.list_for_order(order_id))
        if txn_type is None:
            return chain
        return [record for record in chain if record.txn_type == txn_type]

    def get_invoice_id(self, order_id: int) -> str:
        main = self.get_records(order_id, TxnType.CREATE)
        return main[0].invoice if main else ""

    def find(self, order_id: int, txn_id: str, txn_type: TxnType | None = None) -> TransactionRecord | None:
        for record in self.get_records(order_id, txn_type):
            if record.txn_id == txn_id:
                return record
        return None

    def _add_message(self, level: str, text: str) -> None:
        self.messages.append(LedgerMessage(level=level, text=text))

    # ===== Synchronization =====

    def sync(self, order_id: int) -> list[TransactionRecord] | None:
        """
        Merge transactions recorded at PayPal but missing locally.

        Returns:
            The rows appended (possibly none), or None if the order has no
            local CREATE row or PayPal's order status couldn't be retrieved
        """
        main = self.get_records(order_id, TxnType.CREATE)
        if not main:
            self._add_message("error", f"No PayPal transactions recorded for order {order_id}.")
            logger.warning("ledger_sync_no_main_transaction", order_id=order_id)
            return None
        main_txn = main[0]

        status = self.api.get_order_status(main_txn.txn_id)
        if status is None:
            error_info = self.api.get_error_info()
            self._add_message("error", f"Unable to retrieve PayPal order details: {error_info.to_dict()}")
            logger.warning("ledger_sync_status_failed", order_id=order_id, error_info=error_info.to_dict())
            return None

        snapshot = OrderSnapshot.from_response(status)
        payment_type = snapshot.payment_type or main_txn.payment_type
        payments = snapshot.payments

        known_categories = {category.value for category in PaymentCategory}
        for record_type in payments:
            if record_type not in known_categories:
                self._add_message("warning", f"Unknown payment record ({record_type}) provided by PayPal.")
                logger.warning("ledger_sync_unknown_payment_record", order_id=order_id, record_type=record_type)

        fetched: dict[PaymentCategory, list[dict[str, Any]]] = {
            category: [entry for entry in payments.get(category.value) or [] if isinstance(entry, dict)]
            for category in PaymentCategory
        }
        parent_candidates: dict[PaymentCategory, list[dict[str, Any]]] = {
            PaymentCategory.AUTHORIZATIONS: [],
            PaymentCategory.CAPTURES: fetched[PaymentCategory.AUTHORIZATIONS],
            PaymentCategory.REFUNDS: fetched[PaymentCategory.CAPTURES],
        }

        appended: list[TransactionRecord] = []
        for category in PaymentCategory:
            for entry in fetched[category]:
                txn_id = str(entry.get("id", ""))
                if not txn_id or self.store.exists(order_id, txn_id):
                    continue

                record = self._insert(
                    self._build_record(
                        order_id,
                        category.txn_type,
                        entry,
                        CONSOLE_MEMO.format(label=category.label),
                        payment_type=payment_type,
                    )
                )
                appended.append(record)
                self._add_message("info", CONSOLE_MEMO.format(label=f"{category.label} {txn_id}"))

                parent_response = next(
                    (parent for parent in parent_candidates[category] if parent.get("id") == record.parent_txn_id),
                    None,
                )
                if parent_response is not None:
                    self.update_parent_status(order_id, parent_response)
                self.update_main_transaction(order_id, entry)

        logger.info("ledger_sync_complete", order_id=order_id, appended=len(appended))
        return appended

    # ===== Writing =====

    def append(
        self,
        order_id: int,
        txn_type: TxnType,
        paypal_response: dict[str, Any],
        memo: str,
        parent_txn_id: str | None = None,
        payment_type: str | None = None,
    ) -> str:
        """
        Record a transaction PayPal just reported.

        Args:
            order_id: Store order id
            txn_type: Ledger row type
            paypal_response: The authorization/capture/refund object
            memo: Memo recorded with the row
            parent_txn_id: Overrides the parent derived from the "up" link
                (a re-authorization's response doesn't carry one)
            payment_type: Overrides the order's payment type

        Returns:
            The parent transaction id, so the caller can refresh that row
        """
        record = self._build_record(order_id, txn_type, paypal_response, memo, parent_txn_id, payment_type)
        if self.store.exists(order_id, record.txn_id):
            logger.warning("ledger_append_duplicate_skipped", order_id=order_id, txn_id=record.txn_id)
            return record.parent_txn_id
        self._insert(record)
        return record.parent_txn_id

    def record_checkout(self, order_id: int, order_response: dict[str, Any]) -> list[TransactionRecord]:
        """
        Record a just-completed checkout: the order's CREATE row plus its first
        AUTHORIZE or CAPTURE row.
        """
        snapshot = OrderSnapshot.from_response(order_response)
        unit = snapshot.purchase_unit
        payments = snapshot.payments
        payment = (payments.get("captures") or payments.get("authorizations") or [{}])[0]

        txn_type = TxnType.CAPTURE if snapshot.intent == TxnType.CAPTURE.value else TxnType.AUTHORIZE
        paypal_status = payment.get("status", "")
        if paypal_status == OrderStatus.COMPLETED.value:
            payment_status = (
                OrderStatus.CAPTURED.value if txn_type == TxnType.CAPTURE else OrderStatus.APPROVED.value
            )
        else:
            payment_status = paypal_status

        if self.store.exists(order_id, snapshot.id):
            logger.warning("ledger_checkout_already_recorded", order_id=order_id, txn_id=snapshot.id)
            return self.get_records(order_id)

        settlement = settlement_fields(payment)
        main = TransactionRecord(
            order_id=order_id,
            txn_id=snapshot.id,
            txn_type=TxnType.CREATE,
            payment_type=snapshot.payment_type,
            payment_status=payment_status,
            pending_reason=(payment.get("status_details") or {}).get("reason"),
            currency=amount_currency(payment.get("amount")),
            gross_amount=to_decimal(amount_value(payment.get("amount"))),
            date_added=parse_paypal_datetime(snapshot.create_time),
            last_modified=parse_paypal_datetime(snapshot.update_time),
            expiration_time=parse_paypal_datetime(payment.get("expiration_time")),
            invoice=str(unit.get("invoice_id") or unit.get("custom_id") or ""),
            notify_version=self.module_version,
            **settlement,
        )
        recorded = [self._insert(main)]
        if payment.get("id"):
            recorded.append(
                self._insert(
                    self._build_record(
                        order_id,
                        txn_type,
                        payment,
                        "",
                        parent_txn_id=snapshot.id,
                        payment_type=snapshot.payment_type,
                    ).with_changes(final_capture=txn_type == TxnType.CAPTURE)
                )
            )
        return recorded

    def update_parent_status(self, order_id: int, paypal_response: dict[str, Any]) -> bool:
        """Copy a (parent) transaction's live status and update time onto its row."""
        txn_id = str(paypal_response.get("id", ""))
        updated = self.store.update(
            order_id,
            txn_id,
            payment_status=paypal_response.get("status", ""),
            pending_reason=(paypal_response.get("status_details") or {}).get("reason"),
            last_modified=parse_paypal_datetime(paypal_response.get("update_time")) or self.clock(),
            notify_version=self.module_version,
        )
        if not updated:
            logger.warning("ledger_parent_not_found", order_id=order_id, txn_id=txn_id)
        return updated

    def update_main_transaction(self, order_id: int, paypal_response: dict[str, Any]) -> bool:
        """Touch the CREATE row's modification time; its status is left as-is."""
        return self.store.update_main(
            order_id,
            last_modified=parse_paypal_datetime(paypal_response.get("update_time")) or self.clock(),
            notify_version=self.module_version,
        )

    def mark_voided(self, order_id: int, txn_id: str, memo: str, when: datetime | None = None) -> bool:
        """Flag an authorization as VOIDED, appending ``memo`` to its memo."""
        record = self.find(order_id, txn_id, TxnType.AUTHORIZE)
        if record is None:
            return False
        modified = when or self.clock()
        return self.store.update(
            order_id,
            txn_id,
            payment_status=OrderStatus.VOIDED.value,
            last_modified=modified,
            notify_version=self.module_version,
            memo=f"{record.memo}\n{modified.isoformat()}: {memo}",
        )

    def _insert(self, record: TransactionRecord) -> TransactionRecord:
        record_id = self.store.insert(record)
        logger.info(
            "ledger_transaction_added",
            order_id=record.order_id,
            txn_id=record.txn_id,
            txn_type=record.txn_type.value,
            parent_txn_id=record.parent_txn_id,
        )
        return record.with_changes(record_id=record_id)

    def _build_record(
        self,
        order_id: int,
        txn_type: TxnType,
        paypal_response: dict[str, Any],
        memo: str,
        parent_txn_id: str | None = None,
        payment_type: str | None = None,
    ) -> TransactionRecord:
        date_added = parse_paypal_datetime(paypal_response.get("create_time"))
        settlement = settlement_fields(paypal_response)
        if txn_type == TxnType.CAPTURE and settlement:
            settlement["payment_date"] = date_added

        note_to_payer = paypal_response.get("note_to_payer") or ""
        if note_to_payer:
            memo = f"{memo}\n\nPayment Note: {note_to_payer}"

        if payment_type is None:
            main = self.get_records(order_id, TxnType.CREATE)
            payment_type = main[0].payment_type if main else ""

        amount = paypal_response.get("amount")
        return TransactionRecord(
            order_id=order_id,
            txn_id=str(paypal_response.get("id", "")),
            txn_type=txn_type,
            parent_txn_id=(
                parent_txn_id if parent_txn_id is not None else parent_txn_from_links(paypal_response.get("links"))
            ),
            payment_type=payment_type,
            payment_status=paypal_response.get("status", ""),
            pending_reason=(paypal_response.get("status_details") or {}).get("reason"),
            currency=amount_currency(amount),
            gross_amount=to_decimal(amount_value(amount)),
            date_added=date_added,
            last_modified=parse_paypal_datetime(paypal_response.get("update_time")),
            expiration_time=parse_paypal_datetime(paypal_response.get("expiration_time")),
            final_capture=bool(paypal_response.get("final_capture", False)),
            memo=memo,
            notify_version=self.module_version,
            **settlement,
        )
