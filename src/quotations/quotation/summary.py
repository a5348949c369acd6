"""Derived read-side figures: quotation summary and display statuses."""

from dataclasses import dataclass

from quotations.providers import get_providers
from quotations.providers.port import Shop
from quotations.quotation.money import Money, ratio, sum_fixed
from quotations.quotation.quotation import Quotation


@dataclass(frozen=True)
class QuotationSummary:
    discount_total: Money
    effective_tax_rate: float
    fulfillment_total: Money
    item_total: Money
    surcharge_total: Money
    taxable_amount: Money
    tax_total: Money
    total: Money


def quotation_summary(quotation: Quotation) -> QuotationSummary:
    """Add up the invoices of every fulfillment group."""
    invoices = [group.get("invoice") or {} for group in quotation.fulfillment_groups]
    currency_code = quotation.currency_code

    def total_of(key: str) -> float:
        return sum_fixed(invoice.get(key) or 0 for invoice in invoices)

    taxes = total_of("taxes")
    taxable_amount = total_of("taxable_amount")
    return QuotationSummary(
        discount_total=Money(total_of("discounts"), currency_code),
        effective_tax_rate=ratio(taxes, taxable_amount),
        fulfillment_total=Money(total_of("shipping"), currency_code),
        item_total=Money(total_of("subtotal"), currency_code),
        surcharge_total=Money(total_of("surcharges"), currency_code),
        taxable_amount=Money(taxable_amount, currency_code),
        tax_total=Money(taxes, currency_code),
        total=Money(total_of("total"), currency_code),
    )


def display_status(status: str, shop: Shop | None, language: str | None) -> str:
    """Shop-configured label for ``status`` in ``language``, else the raw status."""
    labels = (shop.quotation_status_labels if shop else None) or {}
    return (labels.get(status) or {}).get(language) or status


def quotation_display_status(quotation: Quotation, language: str | None) -> str:
    shop = get_providers().shops.get_shop(quotation.shop_id)
    return display_status(quotation.status, shop, language)


def fulfillment_group_display_status(group: dict, language: str | None) -> str:
    shop = get_providers().shops.get_shop(group["shop_id"])
    return display_status(group["workflow"]["status"], shop, language)
