"""Order-side domain models: PayPal order snapshots and patch operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class OrderStatus(str, Enum):
    """PayPal status values for orders and their payments."""

    APPROVED = "APPROVED"
    CAPTURED = "CAPTURED"
    COMPLETED = "COMPLETED"
    CREATED = "CREATED"
    DENIED = "DENIED"
    FAILED = "FAILED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    # The payer must act (e.g. 3DS) via the "payer-action" link first.
    PAYER_ACTION_REQUIRED = "PAYER_ACTION_REQUIRED"
    PENDING = "PENDING"
    REFUNDED = "REFUNDED"
    SAVED = "SAVED"
    VOIDED = "VOIDED"


# Only orders in one of these states accept a PATCH.
UPDATABLE_STATUSES = frozenset({OrderStatus.CREATED.value, OrderStatus.APPROVED.value})


class PatchOperation(str, Enum):
    """JSON-Patch operations PayPal accepts on an order."""

    REPLACE = "replace"
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class FieldPath:
    """A path to a field within a purchase unit, e.g. ``("shipping", "name")``."""

    parts: tuple[str, ...]

    @classmethod
    def of(cls, *parts: str) -> "FieldPath":
        return cls(tuple(parts))

    def __str__(self) -> str:
        return "/".join(self.parts)

    def lookup(self, data: Mapping[str, Any]) -> tuple[bool, Any]:
        """
        Resolve this path in ``data``.

        Returns:
            (present, value); a key whose value is None counts as absent
        """
        node: Any = data
        for part in self.parts:
            if not isinstance(node, Mapping) or node.get(part) is None:
                return False, None
            node = node[part]
        return True, node


@dataclass(frozen=True)
class PatchOp:
    """A single order-update instruction."""

    op: PatchOperation
    path: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        patch: dict[str, Any] = {"op": self.op.value, "path": self.path}
        if self.op != PatchOperation.REMOVE:
            patch["value"] = self.value
        return patch


@dataclass(frozen=True)
class OrderSnapshot:
    """
    Read-only view of a PayPal order as returned by the orders API.

    The wrapped payload is never mutated; a newer state is obtained by
    re-fetching the order or taking the latest successful response.
    """

    data: Mapping[str, Any]

    @classmethod
    def from_response(cls, response: Mapping[str, Any] | None) -> "OrderSnapshot":
        return cls(data=dict(response or {}))

    @property
    def id(self) -> str:
        return str(self.data.get("id", ""))

    @property
    def status(self) -> str:
        return str(self.data.get("status", ""))

    @property
    def intent(self) -> str:
        return str(self.data.get("intent", ""))

    @property
    def create_time(self) -> str | None:
        return self.data.get("create_time")

    @property
    def update_time(self) -> str | None:
        return self.data.get("update_time")

    @property
    def purchase_unit(self) -> Mapping[str, Any]:
        """The order's single purchase unit (empty when absent)."""
        units = self.data.get("purchase_units") or []
        if units and isinstance(units[0], Mapping):
            return units[0]
        return {}

    @property
    def payments(self) -> Mapping[str, Any]:
        return self.purchase_unit.get("payments") or {}

    @property
    def payment_type(self) -> str:
        """First key of ``payment_source``, e.g. 'paypal' or 'card'."""
        source = self.data.get("payment_source") or {}
        return next(iter(source), "")
