"""Admin-initiated payment operations on an order's PayPal transactions.

Each operation checks that the targeted transaction is recorded locally with
the expected type, calls PayPal, records the outcome in the ledger and
refreshes the parent transaction's status. The store's order status is the
caller's to choose: the status to apply on completion is passed in, and the
result says whether it applies.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from paypal_restful.clients.paypal_api import PayPalRestfulApi
from paypal_restful.helpers import format_amount, to_decimal
from paypal_restful.ledger.ledger import LedgerMessage, TransactionLedger
from paypal_restful.models.errors import ErrorInfo
from paypal_restful.models.transaction import TransactionRecord, TxnType

logger = structlog.get_logger(__name__)

FINAL_CAPTURE_MEMO = "Final capture by {admin}, {amount}."
PARTIAL_CAPTURE_MEMO = "Partial capture by {admin}, {amount}."
REAUTH_MEMO = "Re-authorized by {admin}, {amount}."
REFUND_MEMO = "Refunded by {admin}, {amount}."
VOID_MEMO = "Voided by {admin}."


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of an admin payment operation.

    Attributes:
        success: Whether PayPal accepted the operation
        txn_id: PayPal id of the transaction created (the voided
            authorization's id for a void)
        amount: "<value> <currency>" processed
        comments: Order-history comments describing the operation
        order_status: Store order status to apply, None to leave it unchanged
        error_info: PayPal error information when PayPal refused the operation
        message: Description of a failure detected before calling PayPal
    """

    success: bool
    txn_id: str = ""
    amount: str = ""
    comments: str = ""
    order_status: int | None = None
    error_info: ErrorInfo | None = None
    message: str = ""


class PaymentOperations:
    """Capture, re-authorize, void and refund an order's PayPal payments."""

    def __init__(self, api: PayPalRestfulApi, ledger: TransactionLedger, admin_name: str = "admin"):
        self.api = api
        self.ledger = ledger
        self.admin_name = admin_name

    def capture_authorization(
        self,
        order_id: int,
        auth_txn_id: str,
        amount: Any,
        captured_status: int,
        note: str = "",
        final_capture: bool = True,
    ) -> OperationResult:
        """
        Capture all or part of a recorded authorization.

        Args:
            captured_status: Order status applied after a final capture
        """
        auth = self._find(order_id, auth_txn_id, TxnType.AUTHORIZE)
        if auth is None:
            return self._missing(order_id, auth_txn_id, TxnType.AUTHORIZE)

        value = self._format_amount(amount, auth.currency)
        if value is None:
            return self._invalid_amount(order_id, auth_txn_id, amount)

        response = self.api.capture_authorization(
            auth_txn_id,
            auth.currency,
            value,
            invoice_id=self.ledger.get_invoice_id(order_id),
            note_to_payer=note,
            final_capture=final_capture,
        )
        if response is None:
            return self._failed("capture", order_id, auth_txn_id)

        processed = _processed_amount(response)
        template = FINAL_CAPTURE_MEMO if final_capture else PARTIAL_CAPTURE_MEMO
        memo = _with_note(template.format(admin=self.admin_name, amount=processed), note)
        self.ledger.append(order_id, TxnType.CAPTURE, response, memo)

        self._refresh_parent(order_id, self.api.get_authorization_details(auth_txn_id))
        self.ledger.update_main_transaction(order_id, response)

        return OperationResult(
            success=True,
            txn_id=response.get("id", ""),
            amount=processed,
            comments=_with_note(f"FUNDS CAPTURED. Trans ID: {response.get('id', '')}\nAmount: {processed}", note),
            order_status=captured_status if final_capture else None,
        )

    def reauthorize(self, order_id: int, auth_txn_id: str, amount: Any) -> OperationResult:
        """
        Re-authorize a recorded authorization, possibly for a new amount.

        A re-authorization leaves the order's status unchanged.
        """
        auth = self._find(order_id, auth_txn_id, TxnType.AUTHORIZE)
        if auth is None:
            return self._missing(order_id, auth_txn_id, TxnType.AUTHORIZE)

        value = self._format_amount(amount, auth.currency)
        if value is None:
            return self._invalid_amount(order_id, auth_txn_id, amount)

        response = self.api.reauthorize_payment(auth_txn_id, auth.currency, value)
        if response is None:
            return self._failed("reauthorize", order_id, auth_txn_id)

        processed = _processed_amount(response)
        memo = REAUTH_MEMO.format(admin=self.admin_name, amount=processed)
        # PayPal's reauthorize response has no "up" link.
        self.ledger.append(order_id, TxnType.AUTHORIZE, response, memo, parent_txn_id=auth_txn_id)
        self.ledger.update_main_transaction(order_id, response)

        return OperationResult(
            success=True,
            txn_id=response.get("id", ""),
            amount=processed,
            comments=f"AUTHORIZATION ADDED. Trans ID: {response.get('id', '')}\nAmount: {processed}",
        )

    def void_authorization(
        self,
        order_id: int,
        auth_txn_id: str,
        voided_status: int,
        note: str = "",
    ) -> OperationResult:
        """Void a recorded authorization."""
        auth = self._find(order_id, auth_txn_id, TxnType.AUTHORIZE)
        if auth is None:
            return self._missing(order_id, auth_txn_id, TxnType.AUTHORIZE)

        if self.api.void_payment(auth_txn_id) is None:
            return self._failed("void", order_id, auth_txn_id)

        memo = _with_note(VOID_MEMO.format(admin=self.admin_name), note)
        self.ledger.mark_voided(order_id, auth_txn_id, memo)
        self.ledger.update_main_transaction(order_id, {})

        return OperationResult(
            success=True,
            txn_id=auth_txn_id,
            comments=_with_note(f"VOIDED. Trans ID: {auth_txn_id}", note),
            order_status=voided_status,
        )

    def refund_capture(
        self,
        order_id: int,
        capture_txn_id: str,
        refunded_status: int,
        amount: Any = None,
        note: str = "",
    ) -> OperationResult:
        """
        Refund a recorded capture, fully when ``amount`` is None.

        Args:
            refunded_status: Order status applied when the whole capture is refunded
        """
        capture = self._find(order_id, capture_txn_id, TxnType.CAPTURE)
        if capture is None:
            return self._missing(order_id, capture_txn_id, TxnType.CAPTURE)

        invoice_id = self.ledger.get_invoice_id(order_id)
        if amount is None:
            response = self.api.refund_capture_full(capture_txn_id, invoice_id, note)
        else:
            value = self._format_amount(amount, capture.currency)
            if value is None:
                return self._invalid_amount(order_id, capture_txn_id, amount)
            response = self.api.refund_capture_partial(
                capture_txn_id,
                capture.currency,
                value,
                invoice_id,
                note,
            )
        if response is None:
            return self._failed("refund", order_id, capture_txn_id)

        processed = _processed_amount(response)
        memo = _with_note(REFUND_MEMO.format(admin=self.admin_name, amount=processed), note)
        self.ledger.append(order_id, TxnType.REFUND, response, memo)

        self._refresh_parent(order_id, self.api.get_capture_details(capture_txn_id))
        self.ledger.update_main_transaction(order_id, response)

        refunded = to_decimal((response.get("amount") or {}).get("value"))
        fully_refunded = amount is None or (capture.gross_amount is not None and refunded == capture.gross_amount)
        return OperationResult(
            success=True,
            txn_id=response.get("id", ""),
            amount=processed,
            comments=_with_note(f"REFUNDED. Trans ID: {response.get('id', '')}\nAmount: {processed}", note),
            order_status=refunded_status if fully_refunded else None,
        )

    def _find(self, order_id: int, txn_id: str, txn_type: TxnType) -> TransactionRecord | None:
        return self.ledger.find(order_id, txn_id, txn_type)

    def _missing(self, order_id: int, txn_id: str, txn_type: TxnType) -> OperationResult:
        logger.warning("payment_operation_unknown_transaction", order_id=order_id, txn_id=txn_id, txn_type=txn_type.value)
        return OperationResult(
            success=False,
            txn_id=txn_id,
            message=f"No {txn_type.value} transaction {txn_id} recorded for order {order_id}.",
        )

    def _format_amount(self, amount: Any, currency_code: str) -> str | None:
        try:
            return format_amount(amount, currency_code)
        except ValueError:
            return None

    def _invalid_amount(self, order_id: int, txn_id: str, amount: Any) -> OperationResult:
        logger.warning("payment_operation_invalid_amount", order_id=order_id, txn_id=txn_id, amount=str(amount))
        return OperationResult(success=False, txn_id=txn_id, message=f"Invalid amount: {amount!r}.")

    def _failed(self, operation: str, order_id: int, txn_id: str) -> OperationResult:
        error_info = self.api.get_error_info()
        logger.warning(
            "payment_operation_failed",
            operation=operation,
            order_id=order_id,
            txn_id=txn_id,
            issue=error_info.first_issue,
            error_info=error_info.to_dict(),
        )
        return OperationResult(success=False, txn_id=txn_id, error_info=error_info)

    def _refresh_parent(self, order_id: int, parent_response: dict[str, Any] | None) -> None:
        if parent_response is None:
            error_info = self.api.get_error_info()
            self.ledger.messages.append(
                LedgerMessage(level="warning", text=f"Error retrieving parent transaction status: {error_info.to_dict()}")
            )
            logger.warning("payment_operation_parent_status_failed", order_id=order_id)
            return
        self.ledger.update_parent_status(order_id, parent_response)


def _processed_amount(response: dict[str, Any]) -> str:
    amount = response.get("amount") or {}
    return f"{amount.get('value', '')} {amount.get('currency_code', '')}".strip()


def _with_note(text: str, note: str) -> str:
    return f"{text}\n\n{note}" if note else text

