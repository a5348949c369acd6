"""Normalized read-only view of one fulfillment group for pricing providers.

Rate quote, surcharge and tax providers all receive this projection
instead of the stored group. It is rebuilt from a deep copy on every call
and made of frozen dataclasses, tuples and mapping proxies, so a provider
cannot reach back into the group being recalculated.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from quotations.quotation.money import Money, line_subtotal, subtract_fixed, sum_fixed, to_fixed


@dataclass(frozen=True)
class QuotationContext:
    """Quotation-level facts every group recalculation needs."""

    quotation_id: str
    shop_id: str
    currency_code: str
    account_id: str | None = None
    cart_id: str | None = None
    billing_address: Mapping | None = None
    origin_address: Mapping | None = None


@dataclass(frozen=True)
class CommonQuotationItem:
    id: str
    product_id: str
    variant_id: str
    shop_id: str
    quantity: int
    price: Money
    subtotal: Money
    is_taxable: bool = False
    tax_code: str | None = None
    title: str = ""
    variant_title: str = ""
    attributes: tuple = ()


@dataclass(frozen=True)
class FulfillmentPrices:
    handling: Money | None = None
    shipping: Money | None = None
    total: Money | None = None


@dataclass(frozen=True)
class CommonQuotationTotals:
    group_discount_total: Money
    group_item_total: Money
    group_total: Money
    quotation_discount_total: Money
    quotation_item_total: Money
    quotation_total: Money


@dataclass(frozen=True)
class CommonQuotation:
    quotation_id: str
    fulfillment_group_id: str
    shop_id: str
    currency_code: str
    fulfillment_type: str
    items: tuple[CommonQuotationItem, ...]
    totals: CommonQuotationTotals
    fulfillment_prices: FulfillmentPrices
    fulfillment_method_id: str | None = None
    account_id: str | None = None
    cart_id: str | None = None
    billing_address: Mapping | None = None
    shipping_address: Mapping | None = None
    origin_address: Mapping | None = None
    surcharges: tuple[Mapping, ...] = ()
    source_type: str = "quotation"


def _frozen_mapping(value) -> Mapping | None:
    if value is None:
        return None
    return MappingProxyType(copy.deepcopy(dict(value)))


def _item_view(item: dict, currency_code: str) -> CommonQuotationItem:
    price = item["price"]
    return CommonQuotationItem(
        id=item["id"],
        product_id=item["product_id"],
        variant_id=item["variant_id"],
        shop_id=item["shop_id"],
        quantity=item["quantity"],
        price=Money.of(price["amount"], price.get("currency_code") or currency_code),
        subtotal=Money.of(line_subtotal(price["amount"], item["quantity"]), currency_code),
        is_taxable=bool(item.get("is_taxable")),
        tax_code=item.get("tax_code"),
        title=item.get("title") or "",
        variant_title=item.get("variant_title") or "",
        attributes=tuple(_frozen_mapping(attribute) for attribute in item.get("attributes") or ()),
    )


def build_common_quotation(
    group: dict,
    context: QuotationContext,
    discount_total: float = 0.0,
    surcharges: list[dict] | None = None,
) -> CommonQuotation:
    currency_code = context.currency_code
    method = group.get("shipment_method")

    prices = FulfillmentPrices()
    method_id = None
    if method:
        handling = method.get("handling") or 0
        rate = method.get("rate") or 0
        prices = FulfillmentPrices(
            handling=Money.of(handling, currency_code),
            shipping=Money.of(rate, currency_code),
            total=Money.of(sum_fixed([handling, rate]), currency_code),
        )
        method_id = method.get("id")

    group_item_total = sum_fixed(item["subtotal"] for item in group["items"])
    discount_total = to_fixed(discount_total or 0)
    # Discounts are only known per quotation; a single group stands in for the whole.
    totals = CommonQuotationTotals(
        group_discount_total=Money.of(discount_total, currency_code),
        group_item_total=Money.of(group_item_total, currency_code),
        group_total=Money.of(subtract_fixed(group_item_total, discount_total), currency_code),
        quotation_discount_total=Money.of(discount_total, currency_code),
        quotation_item_total=Money.of(group_item_total, currency_code),
        quotation_total=Money.of(subtract_fixed(group_item_total, discount_total), currency_code),
    )

    return CommonQuotation(
        quotation_id=context.quotation_id,
        fulfillment_group_id=group["id"],
        shop_id=group.get("shop_id") or context.shop_id,
        currency_code=currency_code,
        fulfillment_type=group.get("type") or "shipping",
        items=tuple(_item_view(item, currency_code) for item in group["items"]),
        totals=totals,
        fulfillment_prices=prices,
        fulfillment_method_id=method_id,
        account_id=context.account_id,
        cart_id=context.cart_id,
        billing_address=_frozen_mapping(context.billing_address),
        shipping_address=_frozen_mapping(group.get("address")),
        origin_address=_frozen_mapping(context.origin_address),
        surcharges=tuple(_frozen_mapping(surcharge) for surcharge in surcharges or ()),
    )
