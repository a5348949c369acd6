"""Application tests for item splitting via domain.process()."""

import pytest
from protean import current_domain
from quotations.errors import AccessDeniedError, InvalidParameterError
from quotations.providers.fake_adapter import FakeRateQuoteProvider
from quotations.quotation.quotation import Quotation
from quotations.quotation.splitting import SplitQuotationItem


def _split(quotation_id, item_id, quantity):
    return current_domain.process(
        SplitQuotationItem(quotation_id=quotation_id, item_id=item_id, new_item_quantity=quantity),
        asynchronous=False,
    )


@pytest.fixture()
def placed(place, group_input):
    return place(groups=[group_input(items=[("prod-1", "var-1", 5)])]).quotation


class TestSplitQuotationItem:
    def test_split_creates_sibling(self, placed):
        item_id = placed.fulfillment_groups[0]["item_ids"][0]
        result = _split(placed.id, item_id, 3)

        group = current_domain.repository_for(Quotation).get(placed.id).fulfillment_groups[0]
        assert group["item_ids"] == [item_id, result.new_item_id]
        assert [item["quantity"] for item in group["items"]] == [2, 3]
        assert group["total_item_quantity"] == 5

    def test_split_recalculates_group(self, placed, providers):
        providers.rate_quotes.configure([FakeRateQuoteProvider.standard_quote(rate=8.0)])
        item_id = placed.fulfillment_groups[0]["item_ids"][0]
        _split(placed.id, item_id, 3)

        group = current_domain.repository_for(Quotation).get(placed.id).fulfillment_groups[0]
        assert group["invoice"]["subtotal"] == 49.95
        assert group["invoice"]["shipping"] == 8.0
        assert group["invoice"]["total"] == 57.95

    def test_split_whole_quantity(self, placed):
        item_id = placed.fulfillment_groups[0]["item_ids"][0]
        with pytest.raises(InvalidParameterError):
            _split(placed.id, item_id, 5)

    def test_requires_move_permission(self, placed, providers):
        providers.permissions.deny("move:item")
        item_id = placed.fulfillment_groups[0]["item_ids"][0]
        with pytest.raises(AccessDeniedError):
            _split(placed.id, item_id, 1)
