"""Item transformation operations: cancel, split, move and extract.

All operations take the quotation's list of fulfillment-group dicts and
return an ``ItemChange`` built on a deep copy, so the caller's groups are
never touched when an operation fails half way. Every lookup that misses
raises; nothing silently no-ops.
"""

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from quotations.errors import InvalidParameterError, NotFoundError
from quotations.quotation.money import line_subtotal
from quotations.quotation.workflow import (
    ItemStatus,
    assert_owner_may_modify,
    push_status,
    roll_up_group_status,
)


@dataclass(frozen=True)
class ItemChange:
    """Outcome of an item operation."""

    groups: list[dict]
    changed_group_ids: tuple[str, ...]
    new_item_id: str | None = None
    moved_items: tuple[dict, ...] = field(default_factory=tuple)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def refresh_group(group: dict) -> dict:
    """Re-derive ``item_ids`` and ``total_item_quantity`` from ``items``."""
    group["item_ids"] = [item["id"] for item in group["items"]]
    group["total_item_quantity"] = sum(item["quantity"] for item in group["items"])
    return group


def find_group(groups: list[dict], group_id: str, label: str | None = None, field_name: str = "group_id") -> dict:
    group = next((g for g in groups if str(g["id"]) == str(group_id)), None)
    if group is None:
        suffix = f" ({label})" if label else ""
        raise NotFoundError({field_name: [f"Quotation fulfillment group{suffix} not found"]})
    return group


def locate_item(groups: list[dict], item_id: str) -> tuple[dict, dict]:
    """Return ``(group, item)`` for ``item_id`` across all groups."""
    for group in groups:
        for item in group["items"]:
            if str(item["id"]) == str(item_id):
                return group, item
    raise NotFoundError({"item_id": ["Quotation item not found"]})


def _sibling(item: dict, quantity: int, new_item_id: str | None, now: str) -> dict:
    """Copy ``item`` under a fresh id, carrying its workflow history forward."""
    sibling = copy.deepcopy(item)
    sibling["id"] = new_item_id or str(uuid4())
    sibling["quantity"] = quantity
    sibling["subtotal"] = line_subtotal(item["price"]["amount"], quantity)
    sibling["created_at"] = now
    sibling["updated_at"] = now
    return sibling


def cancel_item(
    groups: list[dict],
    item_id: str,
    cancel_quantity: int,
    reason: str | None = None,
    owner_gated: bool = False,
    new_item_id: str | None = None,
) -> ItemChange:
    """Cancel ``cancel_quantity`` units of an item.

    A partial cancel leaves the canceled units on the original item and
    moves the remainder onto a new sibling that keeps the pre-cancel status.
    """
    groups = copy.deepcopy(groups)
    group, item = locate_item(groups, item_id)

    if owner_gated:
        assert_owner_may_modify("Item", item["workflow"]["status"], field="item_id")

    if cancel_quantity > item["quantity"]:
        raise InvalidParameterError({"cancel_quantity": ["cancelQuantity may not be greater than item quantity"]})

    now = _now()
    sibling = None
    if cancel_quantity < item["quantity"]:
        sibling = _sibling(item, item["quantity"] - cancel_quantity, new_item_id, now)

    item["cancel_reason"] = reason
    item["quantity"] = cancel_quantity
    item["subtotal"] = line_subtotal(item["price"]["amount"], cancel_quantity)
    item["updated_at"] = now
    push_status(item["workflow"], ItemStatus.CANCELED.value)

    if sibling is not None:
        group["items"].append(sibling)

    refresh_group(group)
    roll_up_group_status(group)

    return ItemChange(
        groups=groups,
        changed_group_ids=(group["id"],),
        new_item_id=sibling["id"] if sibling else None,
    )


def split_item(
    groups: list[dict],
    item_id: str,
    new_item_quantity: int,
    new_item_id: str | None = None,
) -> ItemChange:
    """Move ``new_item_quantity`` units of an item onto a new sibling item."""
    groups = copy.deepcopy(groups)
    group, item = locate_item(groups, item_id)

    if item["quantity"] <= new_item_quantity:
        raise InvalidParameterError({"new_item_quantity": ["quantity must be less than current item quantity"]})

    now = _now()
    sibling = _sibling(item, new_item_quantity, new_item_id, now)

    item["quantity"] -= new_item_quantity
    item["subtotal"] = line_subtotal(item["price"]["amount"], item["quantity"])
    item["updated_at"] = now

    group["items"].append(sibling)
    refresh_group(group)

    return ItemChange(groups=groups, changed_group_ids=(group["id"],), new_item_id=sibling["id"])


def move_items(
    groups: list[dict],
    item_ids: list[str],
    from_group_id: str,
    to_group_id: str,
    owner_gated: bool = False,
) -> ItemChange:
    """Move items, in their current order, to the end of another group."""
    if str(from_group_id) == str(to_group_id):
        raise InvalidParameterError({"to_group_id": ["Items must be moved to a different fulfillment group"]})

    groups = copy.deepcopy(groups)
    from_group = find_group(groups, from_group_id, "from", field_name="from_group_id")
    to_group = find_group(groups, to_group_id, "to", field_name="to_group_id")

    wanted = {str(item_id) for item_id in item_ids}
    moving = [item for item in from_group["items"] if str(item["id"]) in wanted]

    if owner_gated:
        for item in moving:
            assert_owner_may_modify("Item", item["workflow"]["status"], field="item_ids")

    if len(moving) != len(wanted):
        raise NotFoundError({"item_ids": ["Some quotation items not found"]})

    remaining = [item for item in from_group["items"] if str(item["id"]) not in wanted]
    if not remaining:
        raise InvalidParameterError({"item_ids": ["move would result in group having no items"]})

    now = _now()
    from_group["items"] = remaining
    to_group["items"] = [*to_group["items"], *moving]

    for group in (from_group, to_group):
        group["updated_at"] = now
        refresh_group(group)
        roll_up_group_status(group)

    return ItemChange(
        groups=groups,
        changed_group_ids=(from_group["id"], to_group["id"]),
        moved_items=tuple(moving),
    )


def extract_items(groups: list[dict], item_ids: list[str]) -> ItemChange:
    """Pull items out of whichever groups hold them, for a new group.

    Raises:
        InvalidParameterError: when a group would be emptied or when some
            ids match no item on the quotation.
    """
    groups = copy.deepcopy(groups)
    wanted = {str(item_id) for item_id in item_ids}
    moved: list[dict] = []
    changed: list[str] = []
    now = _now()

    for group in groups:
        taken = [item for item in group["items"] if str(item["id"]) in wanted]
        if not taken:
            continue
        remaining = [item for item in group["items"] if str(item["id"]) not in wanted]
        if not remaining:
            raise InvalidParameterError({"move_item_ids": ["moveItemIds would result in group having no items"]})

        group["items"] = remaining
        group["updated_at"] = now
        refresh_group(group)
        roll_up_group_status(group)
        moved.extend(taken)
        changed.append(group["id"])

    if len(moved) != len(wanted):
        raise InvalidParameterError(
            {"move_item_ids": ["Some moveItemIds did not match any item IDs on the quotation"]}
        )

    return ItemChange(groups=groups, changed_group_ids=tuple(changed), moved_items=tuple(moved))
