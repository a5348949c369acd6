"""Workflow status engine for items, fulfillment groups and quotations.

Every entity carries ``{"status": str, "workflow": [str, ...]}``. The
history is append-only and ``status`` is always its last element. Pushing
the current status again is a no-op.
"""

import os
from enum import Enum

from quotations.errors import InvalidStateError


class QuotationStatus(Enum):
    """Statuses shared by quotations and their fulfillment groups."""

    NEW = "new"
    PROCESSING = "coreQuotationWorkflow/processing"
    PICKED = "coreQuotationWorkflow/picked"
    PACKED = "coreQuotationWorkflow/packed"
    LABELED = "coreQuotationWorkflow/labeled"
    SHIPPED = "coreQuotationWorkflow/shipped"
    COMPLETED = "coreQuotationWorkflow/completed"
    CANCELED = "coreQuotationWorkflow/canceled"


class ItemStatus(Enum):
    NEW = "new"
    CANCELED = "coreQuotationItemWorkflow/canceled"


GROUP_STATUS_PREFIX = "coreQuotationWorkflow/"

DEFAULT_OWNER_MUTABLE_STATUSES = (QuotationStatus.NEW.value,)


def new_workflow(status: str = QuotationStatus.NEW.value) -> dict:
    return {"status": status, "workflow": [status]}


def push_status(workflow: dict, status: str) -> bool:
    """Move ``workflow`` to ``status`` in place.

    Returns False, leaving the history untouched, when ``status`` is
    already current.
    """
    if workflow.get("status") == status:
        return False
    workflow["status"] = status
    workflow["workflow"] = [*workflow.get("workflow", []), status]
    return True


def roll_up_group_status(group: dict) -> bool:
    """Cancel ``group`` once every one of its items is canceled."""
    items = group.get("items") or []
    if items and all(item["workflow"]["status"] == ItemStatus.CANCELED.value for item in items):
        return push_status(group["workflow"], QuotationStatus.CANCELED.value)
    return False


def roll_up_quotation_status(workflow: dict, groups: list[dict]) -> bool:
    """Cancel the quotation once every fulfillment group is canceled."""
    if groups and all(group["workflow"]["status"] == QuotationStatus.CANCELED.value for group in groups):
        return push_status(workflow, QuotationStatus.CANCELED.value)
    return False


def expand_group_status(status: str) -> str:
    """Expand a short group status name (``shipped``) to its full form."""
    if status == QuotationStatus.NEW.value or status.startswith(GROUP_STATUS_PREFIX):
        return status
    return f"{GROUP_STATUS_PREFIX}{status}"


def owner_mutable_statuses() -> tuple[str, ...]:
    """Statuses in which a quotation's own account may still change it."""
    raw = os.environ.get("QUOTATION_OWNER_MUTABLE_STATUSES")
    if not raw:
        return DEFAULT_OWNER_MUTABLE_STATUSES
    return tuple(status.strip() for status in raw.split(",") if status.strip())


def assert_owner_may_modify(subject: str, status: str, field: str = "status") -> None:
    """Reject an owner's change when ``status`` is past the early lifecycle.

    Raises:
        InvalidStateError: naming the offending status and the allowed set.
    """
    allowed = owner_mutable_statuses()
    if status not in allowed:
        raise InvalidStateError({field: [f"{subject} status ({status}) is not one of: {', '.join(allowed)}"]})
