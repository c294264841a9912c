"""PayPal REST API operations used by the checkout and admin flows.

Every method returns the decoded PayPal response on success and None on
failure; the failure's details are available from ``get_error_info()``.

Reference:
- https://developer.paypal.com/docs/api/orders/v2/
- https://developer.paypal.com/docs/api/payments/v2/
"""

import time
from typing import Any, Callable

import httpx
import structlog

from paypal_restful.clients.http_client import PayPalHttpClient
from paypal_restful.clients.session_store import SessionStore
from paypal_restful.config import PayPalSettings
from paypal_restful.domain.order_diff import OrderDiffEngine
from paypal_restful.models.errors import DiffNotAllowed, ErrorDetail, ErrorInfo, ErrorKind
from paypal_restful.models.order import UPDATABLE_STATUSES, OrderSnapshot

logger = structlog.get_logger(__name__)


class PayPalRestfulApi:
    """Operation-level facade over ``PayPalHttpClient``."""

    def __init__(
        self,
        http_client: PayPalHttpClient,
        diff_engine: OrderDiffEngine | None = None,
    ):
        self.http_client = http_client
        self.diff_engine = diff_engine or OrderDiffEngine()
        self._error_info: ErrorInfo | None = None

    @classmethod
    def from_settings(
        cls,
        paypal_settings: PayPalSettings,
        session_store: SessionStore,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "PayPalRestfulApi":
        """Build the API and its HTTP client from configuration."""
        http_client = PayPalHttpClient(
            base_url=paypal_settings.endpoint,
            client_id=paypal_settings.client_id,
            client_secret=paypal_settings.client_secret,
            session_store=session_store,
            connect_timeout_seconds=paypal_settings.connect_timeout_seconds,
            timeout_seconds=paypal_settings.timeout_seconds,
            transport=transport,
            clock=clock,
        )
        return cls(http_client)

    def close(self) -> None:
        self.http_client.close()

    def get_error_info(self) -> ErrorInfo:
        """Error information for the most recent operation."""
        if self._error_info is not None:
            return self._error_info
        return self.http_client.get_error_info()

    def _call(self, method: str, path: str, body: Any = None, request_id: str | None = None) -> dict[str, Any] | None:
        self._error_info = None
        return self.http_client.request(method, path, body=body, request_id=request_id)

    # ===== Credentials =====

    def validate_credentials(self, client_id: str, client_secret: str) -> bool:
        """True when PayPal issues a token for the given credentials."""
        valid = self.http_client.token_cache.validate_credentials(client_id, client_secret)
        self._error_info = self.http_client.token_cache.get_error_info()
        return valid

    # ===== Orders =====

    def create_order(self, order_request: dict[str, Any], request_id: str | None = None) -> dict[str, Any] | None:
        logger.info("paypal_create_order", request_id=request_id)
        return self._call("POST", "v2/checkout/orders", order_request, request_id=request_id)

    def get_order_status(self, paypal_order_id: str) -> dict[str, Any] | None:
        return self._call("GET", f"v2/checkout/orders/{paypal_order_id}")

    def confirm_payment_source(
        self,
        paypal_order_id: str,
        payment_source: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._call(
            "POST",
            f"v2/checkout/orders/{paypal_order_id}/confirm-payment-source",
            {"payment_source": payment_source},
        )

    def capture_order(self, paypal_order_id: str, request_id: str | None = None) -> dict[str, Any] | None:
        return self._call("POST", f"v2/checkout/orders/{paypal_order_id}/capture", request_id=request_id)

    def authorize_order(self, paypal_order_id: str, request_id: str | None = None) -> dict[str, Any] | None:
        return self._call("POST", f"v2/checkout/orders/{paypal_order_id}/authorize", request_id=request_id)

    def update_order(
        self,
        paypal_order_id: str,
        order_request_current: dict[str, Any],
        order_request_update: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Patch an order that is still CREATED or APPROVED.

        Args:
            paypal_order_id: The id PayPal assigned when the order was created
            order_request_current: The order as presumed recorded at PayPal
            order_request_update: The to-be-updated order contents

        Returns:
            The PATCH response ({} for PayPal's 204), the current order status
            when there is nothing to change, or None on failure
        """
        logger.info("paypal_update_order_starting", paypal_order_id=paypal_order_id)

        status = self.get_order_status(paypal_order_id)
        if status is None:
            return None

        if status.get("status") not in UPDATABLE_STATUSES:
            self._error_info = ErrorInfo(
                numeric_code=422,
                http_status=422,
                name="ORDER_ALREADY_COMPLETED",
                detail_message="The order cannot be patched after it is completed.",
                details=(ErrorDetail(issue="ORDER_ALREADY_COMPLETED"),),
                kind=ErrorKind.PROTOCOL_ERROR,
            )
            logger.info("paypal_update_order_status_restricted", status=status.get("status"))
            return None

        try:
            updates = self.diff_engine.diff(
                OrderSnapshot.from_response(order_request_current),
                OrderSnapshot.from_response(order_request_update),
            )
        except DiffNotAllowed as e:
            self._error_info = e.error_info
            return None

        if not updates:
            logger.info("paypal_update_order_nothing_to_update", paypal_order_id=paypal_order_id)
            return status

        return self._call(
            "PATCH",
            f"v2/checkout/orders/{paypal_order_id}",
            [update.to_dict() for update in updates],
        )

    # ===== Authorizations =====

    def get_authorization_details(self, paypal_auth_id: str) -> dict[str, Any] | None:
        return self._call("GET", f"v2/payments/authorizations/{paypal_auth_id}")

    def capture_authorization(
        self,
        paypal_auth_id: str,
        currency_code: str | None = None,
        value: str | None = None,
        invoice_id: str = "",
        note_to_payer: str = "",
        final_capture: bool = True,
        request_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Capture all (no amount) or part of an authorization."""
        body: dict[str, Any] = {"final_capture": final_capture}
        if currency_code and value is not None:
            body["amount"] = {"currency_code": currency_code, "value": value}
        if invoice_id:
            body["invoice_id"] = invoice_id
        if note_to_payer:
            body["note_to_payer"] = note_to_payer
        return self._call(
            "POST",
            f"v2/payments/authorizations/{paypal_auth_id}/capture",
            body,
            request_id=request_id,
        )

    def reauthorize_payment(self, paypal_auth_id: str, currency_code: str, value: str) -> dict[str, Any] | None:
        return self._call(
            "POST",
            f"v2/payments/authorizations/{paypal_auth_id}/reauthorize",
            {"amount": {"currency_code": currency_code, "value": value}},
        )

    def void_payment(self, paypal_auth_id: str) -> dict[str, Any] | None:
        """Void an authorization; PayPal answers 204, so success is ``{}``."""
        return self._call("POST", f"v2/payments/authorizations/{paypal_auth_id}/void")

    # ===== Captures =====

    def get_capture_details(self, paypal_capture_id: str) -> dict[str, Any] | None:
        return self._call("GET", f"v2/payments/captures/{paypal_capture_id}")

    def refund_capture_full(
        self,
        paypal_capture_id: str,
        invoice_id: str = "",
        note_to_payer: str = "",
        request_id: str | None = None,
    ) -> dict[str, Any] | None:
        return self._refund_capture(paypal_capture_id, None, invoice_id, note_to_payer, request_id)

    def refund_capture_partial(
        self,
        paypal_capture_id: str,
        currency_code: str,
        value: str,
        invoice_id: str = "",
        note_to_payer: str = "",
        request_id: str | None = None,
    ) -> dict[str, Any] | None:
        amount = {"currency_code": currency_code, "value": value}
        return self._refund_capture(paypal_capture_id, amount, invoice_id, note_to_payer, request_id)

    def _refund_capture(
        self,
        paypal_capture_id: str,
        amount: dict[str, str] | None,
        invoice_id: str,
        note_to_payer: str,
        request_id: str | None,
    ) -> dict[str, Any] | None:
        body: dict[str, Any] = {}
        if amount is not None:
            body["amount"] = amount
        if invoice_id:
            body["invoice_id"] = invoice_id
        if note_to_payer:
            body["note_to_payer"] = note_to_payer
        return self._call(
            "POST",
            f"v2/payments/captures/{paypal_capture_id}/refund",
            body or None,
            request_id=request_id,
        )
