import json
import os

import pytest


@pytest.fixture(scope="session")
def _quotations_domain(request):
    """Initialize the quotations domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from quotations.domain import quotations

    quotations.init()
    return quotations


@pytest.fixture(autouse=True)
def run_around_tests(_quotations_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _quotations_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain
    from quotations.providers import reset_providers

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    reset_providers()
    ctx.pop()


# ---------------------------------------------------------------------------
# Providers and inputs
# ---------------------------------------------------------------------------
@pytest.fixture()
def providers():
    """Fresh fake provider bundle: demo shop, three variants, $5 standard shipping."""
    from quotations.providers import build_fake_providers, set_providers

    bundle = build_fake_providers()
    bundle.catalog.add_variant("prod-1", "var-1", 9.99)
    bundle.catalog.add_variant("prod-2", "var-2", 20.00)
    bundle.catalog.add_variant("prod-3", "var-3", 5.00, is_taxable=True)
    set_providers(bundle)
    return bundle


@pytest.fixture()
def quotation_context():
    from quotations.quotation.common_quotation import QuotationContext

    return QuotationContext(quotation_id="quo-test", shop_id="shop-001", currency_code="USD")


@pytest.fixture()
def group_input():
    """Build fulfillment group input from ``(product_id, variant_id, quantity)`` tuples."""

    def _make(items=(("prod-1", "var-1", 1),), method="standard", total_price=None, address=None):
        return {
            "shop_id": "shop-001",
            "type": "shipping",
            "items": [
                {"product_id": product_id, "variant_id": variant_id, "quantity": quantity}
                for product_id, variant_id, quantity in items
            ],
            "selected_fulfillment_method_id": method,
            "total_price": total_price,
            "data": {"shipping_address": address or {"full_name": "Jane Doe", "phone": "555-0100"}},
        }

    return _make


@pytest.fixture()
def place(providers, group_input):
    """Place a quotation through the command pipeline.

    Without explicit payments a single payment for the exact total is made,
    assuming default fakes ($5 shipping per group, no tax or surcharges).
    """
    from protean import current_domain
    from quotations.quotation.money import line_subtotal, sum_fixed
    from quotations.quotation.placement import PlaceQuotation

    def _expected_total(groups):
        amounts = []
        for group in groups:
            for item in group["items"]:
                variant = providers.catalog.get_variant(item["product_id"], item["variant_id"])
                amounts.append(line_subtotal(variant.price, item["quantity"]))
            amounts.append(5.0)
        return sum_fixed(amounts)

    def _place(groups=None, payments=None, account_id="acct-1", user_id="user-1", email="buyer@example.com", **kwargs):
        groups = groups if groups is not None else [group_input()]
        if payments is None:
            payments = [{"method": "iou_example", "amount": _expected_total(groups)}]
        return current_domain.process(
            PlaceQuotation(
                shop_id="shop-001",
                currency_code="USD",
                email=email,
                fulfillment_groups=json.dumps(groups),
                payments=json.dumps(payments),
                account_id=account_id,
                user_id=user_id,
                **kwargs,
            ),
            asynchronous=False,
        )

    return _place
