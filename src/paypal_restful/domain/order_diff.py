"""Minimal, policy-checked JSON-Patch generation for PayPal order updates.

PayPal allows only some fields of an already-created order to be patched, and
only with some operations. ``ORDER_UPDATE_POLICY`` records those rules as data;
``OrderDiffEngine.diff`` refuses any update that would break them so that an
invalid PATCH is never sent.
"""

import copy
from typing import Any, Mapping

import structlog

from paypal_restful.models.errors import DiffNotAllowed
from paypal_restful.models.order import FieldPath, OrderSnapshot, PatchOp, PatchOperation

logger = structlog.get_logger(__name__)

PURCHASE_UNIT_PATH = "/purchase_units/@reference_id=='default'/"

_REPLACE_ADD_REMOVE = frozenset({PatchOperation.REPLACE, PatchOperation.ADD, PatchOperation.REMOVE})
_REPLACE_ADD = frozenset({PatchOperation.REPLACE, PatchOperation.ADD})

# Patchable purchase-unit fields and the operations PayPal permits on each,
# in the order the resulting operations are emitted.
ORDER_UPDATE_POLICY: tuple[tuple[FieldPath, frozenset[PatchOperation]], ...] = (
    (FieldPath.of("custom_id"), _REPLACE_ADD_REMOVE),
    (FieldPath.of("description"), _REPLACE_ADD_REMOVE),
    (FieldPath.of("shipping", "name"), _REPLACE_ADD),
    (FieldPath.of("shipping", "address"), _REPLACE_ADD),
    (FieldPath.of("shipping", "type"), _REPLACE_ADD),
    (FieldPath.of("soft_descriptor"), frozenset({PatchOperation.REPLACE, PatchOperation.REMOVE})),
    (FieldPath.of("amount"), frozenset({PatchOperation.REPLACE})),
    (FieldPath.of("items"), _REPLACE_ADD_REMOVE),
    (FieldPath.of("invoice_id"), _REPLACE_ADD_REMOVE),
)

_MISSING = object()


def structural_difference(current: Any, desired: Any) -> dict[str, Any]:
    """
    Recursively compare two purchase-unit structures key by key.

    A key whose values are both containers (dicts, or lists compared by
    position) is recursed into; any other differing value, or a key present
    on only one side, is recorded with its full value (the current value
    when there is one), copied so the inputs are never shared with the result.
    Keys whose value is None count as absent.

    Returns:
        Nested dict of differing keys; empty when the structures match
    """
    current_map = _as_mapping(current)
    desired_map = _as_mapping(desired)
    difference: dict[str, Any] = {}

    for key in list(current_map) + [key for key in desired_map if key not in current_map]:
        current_value = current_map.get(key, _MISSING)
        desired_value = desired_map.get(key, _MISSING)
        if current_value is None:
            current_value = _MISSING
        if desired_value is None:
            desired_value = _MISSING

        if current_value is _MISSING and desired_value is _MISSING:
            continue
        if _is_container(current_value) and _is_container(desired_value):
            nested = structural_difference(current_value, desired_value)
            if nested:
                difference[key] = nested
        elif current_value is _MISSING or desired_value is _MISSING or current_value != desired_value:
            difference[key] = copy.deepcopy(desired_value if current_value is _MISSING else current_value)

    return difference


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list))


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    if isinstance(value, list):
        return {str(index): item for index, item in enumerate(value)}
    return {}


def _discard(difference: dict[str, Any], path: FieldPath) -> None:
    """Remove ``path`` from a structural difference, pruning emptied parents."""
    node: Any = difference
    trail: list[tuple[dict[str, Any], str]] = []
    for part in path.parts[:-1]:
        child = node.get(part) if isinstance(node, dict) else None
        if not isinstance(child, dict):
            return
        trail.append((node, part))
        node = child
    if isinstance(node, dict):
        node.pop(path.parts[-1], None)
    for parent, key in reversed(trail):
        if parent[key]:
            break
        del parent[key]


class OrderDiffEngine:
    """Computes the permitted patch operations turning one order into another."""

    def __init__(
        self,
        policy: tuple[tuple[FieldPath, frozenset[PatchOperation]], ...] = ORDER_UPDATE_POLICY,
        path_prefix: str = PURCHASE_UNIT_PATH,
    ):
        self.policy = policy
        self.path_prefix = path_prefix

    def diff(self, current: OrderSnapshot, desired: OrderSnapshot) -> list[PatchOp]:
        """
        Compute the patch operations for an order update.

        Args:
            current: The order as currently recorded at PayPal
            desired: The order as it should become

        Returns:
            Patch operations in policy order; empty when nothing changed

        Raises:
            DiffNotAllowed: If a changed field is not patchable, or is changed
                with an operation PayPal doesn't permit on it
        """
        current_unit = current.purchase_unit
        desired_unit = desired.purchase_unit

        remaining = structural_difference(current_unit, desired_unit)
        if not remaining:
            return []

        operations: list[PatchOp] = []
        for field_path, allowed in self.policy:
            _discard(remaining, field_path)

            operation = self._resolve(field_path, current_unit, desired_unit)
            if operation is None:
                continue

            if operation.op not in allowed:
                message = f"{field_path} operation '{operation.op.value}' is not supported"
                logger.info("order_update_disallowed", field=str(field_path), operation=operation.op.value)
                raise DiffNotAllowed(message, field_path=str(field_path), operation=operation.op.value)

            operations.append(operation)

        if remaining:
            logger.info("order_update_disallowed", unpatchable_fields=sorted(remaining))
            raise DiffNotAllowed("Parameter error, order cannot be updated using current parameters")

        return operations

    def _resolve(
        self,
        field_path: FieldPath,
        current_unit: Mapping[str, Any],
        desired_unit: Mapping[str, Any],
    ) -> PatchOp | None:
        in_current, current_value = field_path.lookup(current_unit)
        in_desired, desired_value = field_path.lookup(desired_unit)
        path = f"{self.path_prefix}{field_path}"

        if in_current and in_desired:
            if current_value == desired_value:
                return None
            return PatchOp(PatchOperation.REPLACE, path, desired_value)
        if in_desired:
            return PatchOp(PatchOperation.ADD, path, desired_value)
        if in_current:
            return PatchOp(PatchOperation.REMOVE, path)
        return None
