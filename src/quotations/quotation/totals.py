"""Group totals recalculation.

Runs after every change to a group's item set. Inside one group the steps
are sequential because each feeds the next:

1. re-resolve the shipment method against fresh rate quotes,
2. collect surcharges from every surcharge provider,
3. compute taxes (zero when no tax provider is registered),
4. assemble the invoice.

Independent groups are recalculated concurrently with ``fan_out``.
"""

import contextvars
import copy
import os
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import structlog

from quotations.errors import InvalidStateError
from quotations.providers import Providers
from quotations.providers.port import ProviderError, TaxResult
from quotations.quotation.common_quotation import QuotationContext, build_common_quotation
from quotations.quotation.money import fixed_string, ratio, subtract_fixed, sum_fixed, to_fixed

logger = structlog.get_logger(__name__)

METHOD_UNAVAILABLE_MESSAGE = (
    "The selected fulfillment method is no longer available. Fetch updated fulfillment options "
    "and try creating the quotation again with a valid method."
)


@dataclass(frozen=True)
class GroupTotals:
    """A recalculated group together with the figures derived for it."""

    group: dict
    surcharges: tuple[dict, ...] = ()
    surcharge_total: float = 0.0
    tax_total: float = 0.0
    taxable_amount: float = 0.0


def _max_workers() -> int:
    return int(os.environ.get("QUOTATION_FANOUT_WORKERS", "8"))


def fan_out(fn: Callable, values: Iterable) -> list:
    """Apply ``fn`` to every value concurrently and return results in order.

    Each call runs in a copy of the caller's context, so bound log fields
    carry over into the worker threads. The first exception raised by any
    call propagates to the caller.
    """
    values = list(values)
    if len(values) < 2:
        return [fn(value) for value in values]

    with ThreadPoolExecutor(
        max_workers=min(len(values), _max_workers()),
        thread_name_prefix="quotation-group",
    ) as pool:
        futures = [pool.submit(contextvars.copy_context().run, fn, value) for value in values]
        return [future.result() for future in futures]


def existing_discount_total(group: dict) -> float:
    return (group.get("invoice") or {}).get("discounts") or 0.0


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------
def add_shipment_method(
    group: dict,
    context: QuotationContext,
    providers: Providers,
    selected_method_id: str | None,
    discount_total: float,
) -> None:
    common_quotation = build_common_quotation(group, context, discount_total)
    try:
        quotes = providers.rate_quotes.quote(common_quotation)
    except ProviderError as exc:
        logger.error("Rate quote provider failed", fulfillment_group_id=group["id"], error=str(exc))
        raise InvalidStateError({"shipment_method": [f"Unable to get fulfillment rates: {exc}"]}) from exc

    errored = next((quote for quote in quotes if quote.request_status == "error"), None)
    if errored is not None:
        raise InvalidStateError({"shipment_method": [errored.message or "Unable to get fulfillment rates"]})

    selected = next((quote for quote in quotes if quote.method.get("id") == selected_method_id), None)
    if selected is None:
        raise InvalidStateError({"selected_fulfillment_method_id": [METHOD_UNAVAILABLE_MESSAGE]})

    method = selected.method
    group["shipment_method"] = {
        "id": method["id"],
        "carrier": method.get("carrier"),
        "currency_code": context.currency_code,
        "label": method.get("label"),
        "group": method.get("group"),
        "name": method.get("name"),
        "handling": to_fixed(selected.handling_price),
        "rate": to_fixed(selected.rate),
    }


def get_surcharges_for_group(
    group: dict,
    context: QuotationContext,
    providers: Providers,
    discount_total: float,
) -> tuple[list[dict], float]:
    common_quotation = build_common_quotation(group, context, discount_total)
    surcharges: list[dict] = []
    for provider in providers.surcharges:
        try:
            returned = provider.get_surcharges(common_quotation)
        except ProviderError as exc:
            logger.error("Surcharge provider failed", fulfillment_group_id=group["id"], error=str(exc))
            raise InvalidStateError({"surcharges": [f"Unable to calculate surcharges: {exc}"]}) from exc
        surcharges.extend({**surcharge, "fulfillment_group_id": group["id"]} for surcharge in returned)

    return surcharges, sum_fixed(surcharge["amount"] for surcharge in surcharges)


def add_taxes_to_group(
    group: dict,
    context: QuotationContext,
    providers: Providers,
    discount_total: float,
    surcharges: list[dict],
) -> TaxResult:
    if providers.tax is None:
        return TaxResult(tax_total=0.0, taxable_amount=0.0)

    common_quotation = build_common_quotation(group, context, discount_total, surcharges)
    try:
        result = providers.tax.set_taxes(group, common_quotation, surcharges)
    except ProviderError as exc:
        logger.error("Tax provider failed", fulfillment_group_id=group["id"], error=str(exc))
        raise InvalidStateError({"taxes": [f"Unable to calculate taxes: {exc}"]}) from exc

    return TaxResult(tax_total=to_fixed(result.tax_total), taxable_amount=to_fixed(result.taxable_amount))


def build_invoice(
    group: dict,
    currency_code: str,
    discount_total: float,
    surcharge_total: float,
    taxes: TaxResult,
) -> dict:
    subtotal = sum_fixed(item["subtotal"] for item in group["items"])
    shipping = to_fixed((group.get("shipment_method") or {}).get("rate") or 0)
    discounts = to_fixed(discount_total or 0)
    total = sum_fixed([subtotal, shipping, surcharge_total, taxes.tax_total, -discounts])

    return {
        "currency_code": currency_code,
        "subtotal": subtotal,
        "shipping": shipping,
        "surcharges": surcharge_total,
        "taxes": taxes.tax_total,
        "taxable_amount": taxes.taxable_amount,
        "discounts": discounts,
        "total": max(total, 0.0),
        "effective_tax_rate": ratio(taxes.tax_total, taxes.taxable_amount),
    }


def _compare_expected_total(actual_total: float, expected_group_total, discount_total: float) -> None:
    expected = max(subtract_fixed(expected_group_total, discount_total), 0.0)
    if fixed_string(actual_total) != fixed_string(expected):
        raise InvalidStateError(
            {
                "total_price": [
                    f"Client provided total price {expected} for fulfillment group, "
                    f"but actual total is {actual_total}"
                ]
            }
        )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
def recalculate_group(
    group: dict,
    context: QuotationContext,
    providers: Providers,
    discount_total: float = 0.0,
    selected_method_id: str | None = None,
    expected_group_total: float | None = None,
) -> GroupTotals:
    """Recalculate shipment method, surcharges, taxes and invoice of a group.

    Works on a copy; the returned ``GroupTotals.group`` replaces the input.
    """
    group = copy.deepcopy(group)
    if selected_method_id is None:
        selected_method_id = (group.get("shipment_method") or {}).get("id")

    add_shipment_method(group, context, providers, selected_method_id, discount_total)
    surcharges, surcharge_total = get_surcharges_for_group(group, context, providers, discount_total)
    taxes = add_taxes_to_group(group, context, providers, discount_total, surcharges)
    group["invoice"] = build_invoice(group, context.currency_code, discount_total, surcharge_total, taxes)

    if expected_group_total is not None:
        _compare_expected_total(group["invoice"]["total"], expected_group_total, discount_total)

    return GroupTotals(
        group=group,
        surcharges=tuple(surcharges),
        surcharge_total=surcharge_total,
        tax_total=taxes.tax_total,
        taxable_amount=taxes.taxable_amount,
    )


def recalculate_groups(
    groups: list[dict],
    group_ids: Iterable[str],
    context: QuotationContext,
    providers: Providers,
) -> tuple[list[dict], list[GroupTotals]]:
    """Recalculate the listed groups in parallel, keeping the others as they are.

    Each group keeps the discount total already on its invoice.
    """
    wanted = set(group_ids)
    targets = [group for group in groups if group["id"] in wanted]
    results = fan_out(
        lambda group: recalculate_group(group, context, providers, discount_total=existing_discount_total(group)),
        targets,
    )
    by_id = {result.group["id"]: result.group for result in results}
    return [by_id.get(group["id"], group) for group in groups], results


def merge_surcharges(existing: list[dict], results: list[GroupTotals]) -> list[dict]:
    """Replace the surcharges of recalculated groups in the flat quotation list."""
    recalculated = {result.group["id"] for result in results}
    kept = [surcharge for surcharge in existing if surcharge.get("fulfillment_group_id") not in recalculated]
    return kept + [surcharge for result in results for surcharge in result.surcharges]
