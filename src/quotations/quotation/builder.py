"""Fulfillment group builder.

Turns fulfillment-group input into a stored group: resolves every item
against the catalog, assigns fresh ids and the initial workflow, then hands
the group to totals recalculation.
"""

import copy
from datetime import UTC, datetime
from uuid import uuid4

from quotations.errors import InvalidParameterError, NotFoundError
from quotations.providers import Providers
from quotations.quotation.common_quotation import QuotationContext
from quotations.quotation.items import refresh_group
from quotations.quotation.money import fixed_string, line_subtotal, to_fixed
from quotations.quotation.totals import GroupTotals, recalculate_group
from quotations.quotation.workflow import ItemStatus, QuotationStatus, new_workflow


def build_item(input_item: dict, currency_code: str, providers: Providers) -> dict:
    """Build a quotation item from ``{product_id, variant_id, quantity, price}``.

    The unit price always comes from the catalog; a client-supplied price
    must match it.
    """
    product_id = input_item["product_id"]
    variant_id = input_item["variant_id"]
    quantity = int(input_item["quantity"])

    if quantity < 1:
        raise InvalidParameterError({"quantity": ["Item quantity must be at least 1"]})

    variant = providers.catalog.get_variant(product_id, variant_id)
    if variant is None:
        raise NotFoundError({"variant_id": [f"Catalog product variant not found: {product_id}/{variant_id}"]})

    price = to_fixed(variant.price)
    client_price = input_item.get("price")
    if client_price is not None and fixed_string(client_price) != fixed_string(price):
        raise InvalidParameterError({"price": ["Provided price for the variant does not match current price"]})

    if (
        variant.inventory_available is not None
        and not variant.can_backorder
        and quantity > variant.inventory_available
    ):
        raise InvalidParameterError({"quantity": ["Quantity quotationed is more than available inventory"]})

    now = datetime.now(UTC).isoformat()
    return {
        "id": str(uuid4()),
        "product_id": product_id,
        "variant_id": variant_id,
        "shop_id": variant.shop_id,
        "title": variant.title,
        "variant_title": variant.variant_title,
        "quantity": quantity,
        "price": {"amount": price, "currency_code": currency_code},
        "subtotal": line_subtotal(price, quantity),
        "is_taxable": variant.is_taxable,
        "tax_code": variant.tax_code,
        "attributes": copy.deepcopy(input_item.get("attributes") or []),
        "cancel_reason": None,
        "workflow": new_workflow(ItemStatus.NEW.value),
        "created_at": now,
        "updated_at": now,
    }


def build_fulfillment_group(
    input_group: dict,
    context: QuotationContext,
    providers: Providers,
    discount_total: float = 0.0,
    additional_items: list[dict] | tuple = (),
) -> GroupTotals:
    """Build and price a new fulfillment group.

    ``additional_items`` are existing items (already built) that join the
    group after its input items, as when items move into a new group.
    """
    now = datetime.now(UTC).isoformat()
    data = input_group.get("data") or {}
    group = {
        "id": str(uuid4()),
        "shop_id": input_group.get("shop_id") or context.shop_id,
        "type": input_group.get("type") or "shipping",
        "address": copy.deepcopy(data.get("shipping_address")),
        "items": [build_item(item, context.currency_code, providers) for item in input_group.get("items") or []],
        "shipment_method": None,
        "invoice": None,
        "tracking": None,
        "tracking_url": None,
        "workflow": new_workflow(QuotationStatus.NEW.value),
        "created_at": now,
        "updated_at": now,
    }
    group["items"].extend(copy.deepcopy(list(additional_items)))

    if not group["items"]:
        raise InvalidParameterError({"items": ["A fulfillment group must contain at least one item"]})

    refresh_group(group)

    return recalculate_group(
        group,
        context,
        providers,
        discount_total=discount_total,
        selected_method_id=input_group.get("selected_fulfillment_method_id"),
        expected_group_total=input_group.get("total_price"),
    )
