"""Tests for the read-only group view handed to pricing providers."""

import dataclasses

import pytest
from quotations.quotation.common_quotation import QuotationContext, build_common_quotation


def _group():
    return {
        "id": "g1",
        "shop_id": "shop-001",
        "type": "shipping",
        "address": {"full_name": "Jane Doe"},
        "items": [
            {
                "id": "i1",
                "product_id": "prod-1",
                "variant_id": "var-1",
                "shop_id": "shop-001",
                "quantity": 3,
                "price": {"amount": 9.99, "currency_code": "USD"},
                "subtotal": 29.97,
                "is_taxable": True,
                "attributes": [{"label": "Size", "value": "M"}],
            }
        ],
        "shipment_method": {"id": "standard", "handling": 1.0, "rate": 4.0},
    }


@pytest.fixture()
def context():
    return QuotationContext(
        quotation_id="quo-1",
        shop_id="shop-001",
        currency_code="USD",
        billing_address={"full_name": "Bill Payer"},
    )


class TestBuildCommonQuotation:
    def test_totals_and_prices(self, context):
        common = build_common_quotation(_group(), context, discount_total=2.0)

        assert common.fulfillment_group_id == "g1"
        assert common.fulfillment_method_id == "standard"
        assert common.totals.group_item_total.amount == 29.97
        assert common.totals.group_total.amount == 27.97
        assert common.totals.group_discount_total.amount == 2.0
        assert common.fulfillment_prices.total.amount == 5.0
        assert common.source_type == "quotation"

    def test_items_are_normalized(self, context):
        item = build_common_quotation(_group(), context).items[0]
        assert item.price.amount == 9.99
        assert item.subtotal.amount == 29.97
        assert item.is_taxable is True

    def test_group_without_method_has_empty_prices(self, context):
        group = _group()
        group["shipment_method"] = None
        common = build_common_quotation(group, context)
        assert common.fulfillment_method_id is None
        assert common.fulfillment_prices.total is None


class TestReadOnly:
    def test_view_is_frozen(self, context):
        common = build_common_quotation(_group(), context)
        with pytest.raises(dataclasses.FrozenInstanceError):
            common.shop_id = "other"
        with pytest.raises(dataclasses.FrozenInstanceError):
            common.items[0].quantity = 100

    def test_addresses_cannot_be_mutated(self, context):
        common = build_common_quotation(_group(), context)
        with pytest.raises(TypeError):
            common.shipping_address["full_name"] = "Mallory"
        with pytest.raises(TypeError):
            common.billing_address["full_name"] = "Mallory"

    def test_view_is_detached_from_the_group(self, context):
        group = _group()
        common = build_common_quotation(group, context)
        group["address"]["full_name"] = "Changed"
        group["items"][0]["quantity"] = 99
        assert common.shipping_address["full_name"] == "Jane Doe"
        assert common.items[0].quantity == 3
