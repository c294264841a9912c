"""Checkout-side order state held in the customer's session.

A PayPal order is created once per distinct cart state: the cart (plus card
details, for card payments) is hashed into a GUID that doubles as the
``PayPal-Request-Id``, so re-submitting an unchanged cart reuses the order
already registered at PayPal.
"""

import copy
import hashlib
import json
from typing import Any

import structlog

from paypal_restful.clients.paypal_api import PayPalRestfulApi
from paypal_restful.clients.session_store import SessionStore

logger = structlog.get_logger(__name__)

SESSION_ORDER_KEY = "PayPalRestful.Order"

# Response members that PayPal assigns; they're never part of an update request.
_ORDER_ASSIGNED_KEYS = ("id", "status", "create_time", "links")
_PURCHASE_UNIT_ASSIGNED_KEYS = ("reference_id", "payee")


def order_guid(order_data: Any, card_info: Any = None) -> str:
    """
    Hash an order's state into a GUID-formatted string (8-4-4-4-12).

    Args:
        order_data: JSON-serializable order contents
        card_info: Card details, included for card payments
    """
    hash_data = json.dumps(order_data, sort_keys=True, separators=(",", ":"), default=str)
    if card_info is not None:
        hash_data += json.dumps(card_info, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(hash_data.encode("utf-8")).hexdigest()
    return f"{digest[0:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"


def strip_assigned_fields(order_response: dict[str, Any]) -> dict[str, Any]:
    """A copy of an order response without the members PayPal assigns."""
    current = copy.deepcopy(order_response)
    for key in _ORDER_ASSIGNED_KEYS:
        current.pop(key, None)
    units = current.get("purchase_units") or []
    if units and isinstance(units[0], dict):
        for key in _PURCHASE_UNIT_ASSIGNED_KEYS:
            units[0].pop(key, None)
    return current


class OrderSession:
    """The PayPal order created for a customer's checkout session."""

    def __init__(self, api: PayPalRestfulApi, session_store: SessionStore):
        self.api = api
        self.session_store = session_store

    @property
    def state(self) -> dict[str, Any] | None:
        """{current, id, status, create_time, guid, payment_source} or None."""
        return self.session_store.get(SESSION_ORDER_KEY)

    @property
    def current(self) -> dict[str, Any] | None:
        state = self.state
        return state["current"] if state else None

    @property
    def paypal_order_id(self) -> str | None:
        state = self.state
        return state["id"] if state else None

    def reset(self) -> None:
        self.session_store.delete(SESSION_ORDER_KEY)

    def create_order(
        self,
        order_request: dict[str, Any],
        payment_source: str = "paypal",
        card_info: dict[str, Any] | None = None,
    ) -> bool:
        """
        Register the order at PayPal unless this cart state already was.

        Returns:
            True when the session holds a PayPal order for ``order_request``;
            False on failure (details from ``api.get_error_info()``)
        """
        guid = order_guid(order_request, card_info if payment_source != "paypal" else None)

        state = self.state
        if state and state.get("guid") == guid:
            logger.info("checkout_order_unchanged", guid=guid, payment_source=payment_source)
            return True

        response = self.api.create_order(order_request, request_id=guid)
        if response is None:
            logger.warning("checkout_order_create_failed", guid=guid, error_info=self.api.get_error_info().to_dict())
            return False

        self.session_store.set(
            SESSION_ORDER_KEY,
            {
                "current": strip_assigned_fields(response),
                "id": response.get("id", ""),
                "status": response.get("status", ""),
                "create_time": response.get("create_time"),
                "guid": guid,
                "payment_source": payment_source,
            },
        )
        logger.info("checkout_order_created", paypal_order_id=response.get("id"), guid=guid)
        return True

    def update_order(self, desired: dict[str, Any]) -> dict[str, Any] | None:
        """
        Patch the session's PayPal order to match ``desired``.

        On success the session's snapshot becomes ``desired``.

        Returns:
            The updated order status, or None when the session holds no order
            or PayPal refused the update (details from ``api.get_error_info()``)
        """
        state = self.state
        if not state:
            logger.warning("checkout_order_update_without_order")
            return None

        result = self.api.update_order(state["id"], state["current"], desired)
        if result is None:
            return None

        self.session_store.set(SESSION_ORDER_KEY, {**state, "current": strip_assigned_fields(desired)})
        return result
