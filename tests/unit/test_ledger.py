"""Unit tests for the transaction ledger."""

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fakes import BASE_URL, order_response, up_link

from paypal_restful.ledger import InMemoryTransactionStore, TransactionLedger, reconstruct
from paypal_restful.models.transaction import TransactionRecord, TxnType

ORDER_ID = 1
T0 = datetime(2023, 11, 16, 20, 0, tzinfo=timezone.utc)


def record(txn_id: str, txn_type: TxnType, parent: str = "", minutes: int = 0, **fields) -> TransactionRecord:
    return TransactionRecord(
        order_id=ORDER_ID,
        txn_id=txn_id,
        txn_type=txn_type,
        parent_txn_id=parent,
        payment_type="paypal",
        currency="USD",
        gross_amount=Decimal("100.00"),
        date_added=T0 + timedelta(minutes=minutes),
        **fields,
    )


def order_link(order_id: str) -> list[dict[str, str]]:
    return [{"href": f"{BASE_URL}v2/checkout/orders/{order_id}", "rel": "up", "method": "GET"}]


@pytest.fixture
def main_record():
    return record("O1", TxnType.CREATE, payment_status="APPROVED", invoice="INV-1001")


class TestReconstruct:
    """Tests for parent/child chain reconstruction."""

    @pytest.fixture
    def records(self):
        return [
            record("O1", TxnType.CREATE),
            record("A1", TxnType.AUTHORIZE, "O1", minutes=1),
            record("C1", TxnType.CAPTURE, "A1", minutes=2),
            record("A2", TxnType.AUTHORIZE, "A1", minutes=3),
            record("C2", TxnType.CAPTURE, "A2", minutes=4),
            record("R1", TxnType.REFUND, "C1", minutes=5),
            record("X9", TxnType.REFUND, "MISSING", minutes=0),
        ]

    def test_children_follow_parents(self, records):
        chain = [r.txn_id for r in reconstruct(records)]

        assert chain == ["O1", "A1", "A2", "C2", "C1", "R1", "X9"]

    def test_output_independent_of_input_order(self, records):
        expected = reconstruct(records)
        rng = random.Random(20231116)

        for _ in range(25):
            shuffled = records[:]
            rng.shuffle(shuffled)
            assert reconstruct(shuffled) == expected

    def test_orphans_follow_the_create_tree(self):
        records = [
            record("R7", TxnType.REFUND, "GONE", minutes=1),
            record("C7", TxnType.CAPTURE, "GONE", minutes=2),
            record("O1", TxnType.CREATE),
        ]

        assert [r.txn_id for r in reconstruct(records)] == ["O1", "C7", "R7"]

    def test_parent_cycle_terminates(self):
        records = [
            record("O1", TxnType.CREATE),
            record("A1", TxnType.AUTHORIZE, "C1", minutes=1),
            record("C1", TxnType.CAPTURE, "A1", minutes=2),
        ]

        assert sorted(r.txn_id for r in reconstruct(records)) == ["A1", "C1", "O1"]

    def test_empty(self):
        assert reconstruct([]) == []


class TestReading:
    def test_get_records_by_type(self, ledger, store, main_record):
        store.insert(main_record)
        store.insert(record("A1", TxnType.AUTHORIZE, "O1", minutes=1))
        store.insert(record("C1", TxnType.CAPTURE, "A1", minutes=2))

        assert [r.txn_id for r in ledger.get_records(ORDER_ID)] == ["O1", "A1", "C1"]
        assert [r.txn_id for r in ledger.get_records(ORDER_ID, TxnType.CAPTURE)] == ["C1"]

    def test_get_invoice_id(self, ledger, store, main_record):
        store.insert(main_record)

        assert ledger.get_invoice_id(ORDER_ID) == "INV-1001"
        assert ledger.get_invoice_id(999) == ""


class TestSync:
    """Tests for TransactionLedger.sync."""

    def test_console_capture_is_appended_once(self, ledger, store, fake_paypal, main_record):
        store.insert(main_record)
        capture = {
            "id": "C1",
            "status": "COMPLETED",
            "amount": {"currency_code": "USD", "value": "100.00"},
            "create_time": "2023-11-16T21:00:00Z",
            "update_time": "2023-11-16T21:00:05Z",
            "links": order_link("O1"),
        }
        fake_paypal.add(
            "GET",
            "v2/checkout/orders/O1",
            200,
            order_response(order_id="O1", payments={"captures": [capture]}),
        )

        appended = ledger.sync(ORDER_ID)

        assert len(appended) == 1
        assert appended[0].txn_id == "C1"
        assert appended[0].txn_type == TxnType.CAPTURE
        assert appended[0].parent_txn_id == "O1"
        assert appended[0].memo == "Capture added during PayPal Management Console action."
        main = ledger.get_records(ORDER_ID, TxnType.CREATE)[0]
        assert main.payment_status == "APPROVED"
        assert main.last_modified == datetime(2023, 11, 16, 21, 0, 5, tzinfo=timezone.utc)

    def test_repeated_sync_is_idempotent(self, ledger, store, fake_paypal, main_record):
        store.insert(main_record)
        capture = {"id": "C1", "status": "COMPLETED", "links": order_link("O1")}
        fake_paypal.add(
            "GET",
            "v2/checkout/orders/O1",
            200,
            order_response(order_id="O1", payments={"captures": [capture]}),
        )

        ledger.sync(ORDER_ID)
        second = ledger.sync(ORDER_ID)

        assert second == []
        assert [r.txn_id for r in ledger.get_records(ORDER_ID)] == ["O1", "C1"]

    def test_parent_status_refreshed_from_remote(self, ledger, store, fake_paypal, main_record):
        store.insert(main_record)
        store.insert(record("A1", TxnType.AUTHORIZE, "O1", minutes=1, payment_status="CREATED"))
        payments = {
            "authorizations": [
                {
                    "id": "A1",
                    "status": "CAPTURED",
                    "update_time": "2023-11-17T09:00:00Z",
                    "links": order_link("O1"),
                },
            ],
            "captures": [
                {
                    "id": "C1",
                    "status": "PARTIALLY_REFUNDED",
                    "create_time": "2023-11-17T09:00:00Z",
                    "links": up_link("authorizations", "A1"),
                },
            ],
            "refunds": [
                {
                    "id": "R1",
                    "status": "COMPLETED",
                    "create_time": "2023-11-18T10:00:00Z",
                    "links": up_link("captures", "C1"),
                },
            ],
        }
        fake_paypal.add(
            "GET",
            "v2/checkout/orders/O1",
            200,
            order_response(order_id="O1", intent="AUTHORIZE", payments=payments),
        )

        appended = ledger.sync(ORDER_ID)

        assert [(r.txn_id, r.parent_txn_id) for r in appended] == [("C1", "A1"), ("R1", "C1")]
        auth = ledger.find(ORDER_ID, "A1")
        assert auth.payment_status == "CAPTURED"
        assert auth.last_modified == datetime(2023, 11, 17, 9, 0, tzinfo=timezone.utc)
        assert appended[1].memo == "Refund added during PayPal Management Console action."
        assert [r.txn_id for r in ledger.get_records(ORDER_ID)] == ["O1", "A1", "C1", "R1"]

    def test_unknown_payment_category_is_reported(self, ledger, store, fake_paypal, main_record):
        store.insert(main_record)
        fake_paypal.add(
            "GET",
            "v2/checkout/orders/O1",
            200,
            order_response(order_id="O1", payments={"disputes": [{"id": "D1"}]}),
        )

        assert ledger.sync(ORDER_ID) == []
        assert [(m.level, m.text) for m in ledger.messages] == [
            ("warning", "Unknown payment record (disputes) provided by PayPal."),
        ]

    def test_status_failure(self, ledger, store, fake_paypal, main_record):
        store.insert(main_record)
        fake_paypal.add("GET", "v2/checkout/orders/O1", 500, {"name": "INTERNAL_SERVER_ERROR"})

        assert ledger.sync(ORDER_ID) is None
        assert ledger.messages[0].level == "error"
        assert len(store.list_for_order(ORDER_ID)) == 1

    def test_order_without_records(self, ledger):
        assert ledger.sync(ORDER_ID) is None
        assert ledger.messages[0].level == "error"


class TestAppend:
    """Tests for TransactionLedger.append."""

    def test_capture_with_settlement_breakdown(self, ledger, store, main_record):
        store.insert(main_record)
        response = {
            "id": "C1",
            "status": "COMPLETED",
            "amount": {"currency_code": "USD", "value": "100.00"},
            "final_capture": True,
            "note_to_payer": "Thanks for your order",
            "create_time": "2023-11-16T21:00:00Z",
            "update_time": "2023-11-16T21:00:05Z",
            "seller_receivable_breakdown": {
                "gross_amount": {"currency_code": "USD", "value": "100.00"},
                "paypal_fee": {"currency_code": "USD", "value": "3.20"},
                "net_amount": {"currency_code": "USD", "value": "96.80"},
            },
            "links": up_link("authorizations", "A1"),
        }

        parent = ledger.append(ORDER_ID, TxnType.CAPTURE, response, "Captured.")

        assert parent == "A1"
        capture = ledger.find(ORDER_ID, "C1")
        assert capture.gross_amount == Decimal("100.00")
        assert capture.payment_gross == Decimal("100.00")
        assert capture.payment_fee == Decimal("3.20")
        assert capture.settle_amount == Decimal("96.80")
        assert capture.settle_currency == "USD"
        assert capture.final_capture is True
        assert capture.payment_date == datetime(2023, 11, 16, 21, 0, tzinfo=timezone.utc)
        assert capture.memo == "Captured.\n\nPayment Note: Thanks for your order"
        assert capture.payment_type == "paypal"
        assert capture.notify_version == "1.0.0"

    def test_refund_payable_breakdown(self, ledger, store, main_record):
        store.insert(main_record)
        response = {
            "id": "R1",
            "status": "COMPLETED",
            "amount": {"currency_code": "USD", "value": "10.00"},
            "seller_payable_breakdown": {
                "gross_amount": {"currency_code": "USD", "value": "10.00"},
                "paypal_fee": {"currency_code": "USD", "value": "0.30"},
                "net_amount": {"currency_code": "USD", "value": "9.70"},
            },
            "links": up_link("captures", "C1"),
        }

        assert ledger.append(ORDER_ID, TxnType.REFUND, response, "Refunded.") == "C1"

        refund = ledger.find(ORDER_ID, "R1")
        assert refund.settle_amount == Decimal("9.70")
        assert refund.payment_date is None

    def test_parent_override(self, ledger, store, main_record):
        store.insert(main_record)
        response = {"id": "A2", "status": "CREATED", "amount": {"currency_code": "USD", "value": "50.00"}}

        assert ledger.append(ORDER_ID, TxnType.AUTHORIZE, response, "Re-authorized.", parent_txn_id="A1") == "A1"
        assert ledger.find(ORDER_ID, "A2").parent_txn_id == "A1"

    def test_duplicate_is_not_inserted(self, ledger, store, main_record):
        store.insert(main_record)
        response = {"id": "C1", "status": "COMPLETED", "links": order_link("O1")}

        ledger.append(ORDER_ID, TxnType.CAPTURE, response, "first")
        parent = ledger.append(ORDER_ID, TxnType.CAPTURE, response, "second")

        assert parent == "O1"
        assert len(store.list_for_order(ORDER_ID)) == 2
        assert ledger.find(ORDER_ID, "C1").memo == "first"


class TestUpdates:
    def test_update_parent_status(self, ledger, store, main_record):
        store.insert(main_record)
        store.insert(record("A1", TxnType.AUTHORIZE, "O1", payment_status="CREATED"))

        updated = ledger.update_parent_status(
            ORDER_ID,
            {
                "id": "A1",
                "status": "PENDING",
                "status_details": {"reason": "PENDING_REVIEW"},
                "update_time": "2023-11-17T09:00:00Z",
            },
        )

        assert updated is True
        auth = ledger.find(ORDER_ID, "A1")
        assert auth.payment_status == "PENDING"
        assert auth.pending_reason == "PENDING_REVIEW"

    def test_update_parent_status_unknown_txn(self, ledger, store, main_record):
        store.insert(main_record)

        assert ledger.update_parent_status(ORDER_ID, {"id": "NOPE", "status": "CAPTURED"}) is False

    def test_update_main_transaction_keeps_status(self, ledger, store, main_record):
        store.insert(main_record)

        assert ledger.update_main_transaction(ORDER_ID, {"status": "COMPLETED", "update_time": "2023-11-17T09:00:00Z"})

        main = ledger.find(ORDER_ID, "O1")
        assert main.payment_status == "APPROVED"
        assert main.last_modified == datetime(2023, 11, 17, 9, 0, tzinfo=timezone.utc)

    def test_update_main_transaction_without_main(self, ledger):
        assert ledger.update_main_transaction(ORDER_ID, {}) is False

    def test_mark_voided_appends_memo(self, api, main_record):
        store = InMemoryTransactionStore([main_record, record("A1", TxnType.AUTHORIZE, "O1", memo="Authorized.")])
        voided_at = datetime(2023, 11, 20, 8, 30, tzinfo=timezone.utc)
        ledger = TransactionLedger(api, store, module_version="1.0.0", clock=lambda: voided_at)

        assert ledger.mark_voided(ORDER_ID, "A1", "Voided by admin.") is True

        auth = ledger.find(ORDER_ID, "A1")
        assert auth.payment_status == "VOIDED"
        assert auth.last_modified == voided_at
        assert auth.memo == f"Authorized.\n{voided_at.isoformat()}: Voided by admin."

    def test_mark_voided_requires_authorization(self, ledger, store, main_record):
        store.insert(main_record)

        assert ledger.mark_voided(ORDER_ID, "O1", "Voided.") is False


class TestRecordCheckout:
    def test_records_create_and_capture(self, ledger, store):
        capture = {
            "id": "C1",
            "status": "COMPLETED",
            "amount": {"currency_code": "USD", "value": "100.00"},
            "create_time": "2023-11-16T20:10:15Z",
            "update_time": "2023-11-16T20:10:17Z",
            "links": order_link("5O190127TN364715T"),
        }

        recorded = ledger.record_checkout(ORDER_ID, order_response(payments={"captures": [capture]}))

        assert [(r.txn_id, r.txn_type, r.parent_txn_id) for r in recorded] == [
            ("5O190127TN364715T", TxnType.CREATE, ""),
            ("C1", TxnType.CAPTURE, "5O190127TN364715T"),
        ]
        main = recorded[0]
        assert main.payment_status == "CAPTURED"
        assert main.invoice == "INV-1001"
        assert main.gross_amount == Decimal("100.00")
        assert recorded[1].final_capture is True
        assert recorded[0].record_id is not None
