"""Application tests for moving items between fulfillment groups."""

import json

import pytest
from protean import current_domain
from quotations.errors import InvalidParameterError, InvalidStateError, NotFoundError
from quotations.providers.fake_adapter import FakeSurchargeProvider
from quotations.quotation.moving import MoveQuotationItems
from quotations.quotation.quotation import Quotation
from quotations.quotation.update import UpdateQuotation
from quotations.quotation.workflow import QuotationStatus


def _move(quotation_id, item_ids, from_group_id, to_group_id, acting_account_id=None):
    return current_domain.process(
        MoveQuotationItems(
            quotation_id=quotation_id,
            item_ids=json.dumps(item_ids),
            from_group_id=from_group_id,
            to_group_id=to_group_id,
            acting_account_id=acting_account_id,
        ),
        asynchronous=False,
    )


@pytest.fixture()
def placed(place, group_input):
    groups = [
        group_input(items=[("prod-1", "var-1", 1), ("prod-2", "var-2", 1), ("prod-3", "var-3", 1)]),
        group_input(items=[("prod-2", "var-2", 2)]),
    ]
    return place(groups=groups).quotation


class TestMoveQuotationItems:
    def test_move_two_items(self, placed):
        source, target = placed.fulfillment_groups
        i1, i2, i3 = source["item_ids"]

        _move(placed.id, [i1, i2], source["id"], target["id"])

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        source, target = quotation.fulfillment_groups
        assert source["item_ids"] == [i3]
        assert target["item_ids"][-2:] == [i1, i2]
        assert source["invoice"]["subtotal"] == 5.0
        assert target["invoice"]["subtotal"] == 69.99
        assert quotation.total_item_quantity == 5

    def test_move_all_items_is_atomic(self, placed):
        source, target = placed.fulfillment_groups

        with pytest.raises(InvalidParameterError):
            _move(placed.id, source["item_ids"], source["id"], target["id"])

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        assert quotation.fulfillment_groups == placed.fulfillment_groups

    def test_surcharges_follow_recalculated_groups(self, placed, providers):
        providers.surcharges.append(FakeSurchargeProvider([{"amount": 2.0, "message": "Handling"}]))
        source, target = placed.fulfillment_groups

        _move(placed.id, source["item_ids"][:1], source["id"], target["id"])

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        tagged = sorted(surcharge["fulfillment_group_id"] for surcharge in quotation.surcharge_records)
        assert tagged == sorted([source["id"], target["id"]])
        assert all(group["invoice"]["surcharges"] == 2.0 for group in quotation.fulfillment_groups)

    def test_owner_blocked_after_processing_started(self, placed):
        current_domain.process(
            UpdateQuotation(quotation_id=placed.id, status=QuotationStatus.PROCESSING.value),
            asynchronous=False,
        )
        source, target = placed.fulfillment_groups
        with pytest.raises(InvalidStateError):
            _move(placed.id, source["item_ids"][:1], source["id"], target["id"], acting_account_id="acct-1")

    def test_operator_moves_after_processing_started(self, placed):
        current_domain.process(
            UpdateQuotation(quotation_id=placed.id, status=QuotationStatus.PROCESSING.value),
            asynchronous=False,
        )
        source, target = placed.fulfillment_groups
        _move(placed.id, source["item_ids"][:1], source["id"], target["id"], acting_account_id="operator-1")

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        assert len(quotation.fulfillment_groups[1]["items"]) == 2

    def test_unknown_item_in_set_moves_nothing(self, placed):
        source, target = placed.fulfillment_groups
        before = current_domain.repository_for(Quotation).get(placed.id).shipping

        with pytest.raises(NotFoundError):
            _move(placed.id, [source["item_ids"][0], "missing"], source["id"], target["id"])

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        assert quotation.shipping == before
        assert quotation.fulfillment_groups[0]["item_ids"] == source["item_ids"]
