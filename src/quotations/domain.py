"""Quotations bounded context: placement and fulfillment-group mutation.

Owns the Quotation aggregate (CQRS) and the engine that cancels, splits
and moves items between fulfillment groups while keeping totals, taxes,
surcharges and workflow statuses consistent.
"""

from protean.domain import Domain

from quotations.utils.logging import configure_logging, get_logger

configure_logging()

quotations = Domain(name="quotations")

logger = get_logger(__name__)
