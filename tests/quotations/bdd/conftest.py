"""Shared BDD fixtures and step definitions for the Quotations domain."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then
from quotations.quotation.quotation import Quotation


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


@pytest.fixture()
def labels():
    """Test label → stored item id."""
    return {}


def _reload(quotation_id):
    return current_domain.repository_for(Quotation).get(quotation_id)


def _group_labels(group, labels):
    ids_to_labels = {item_id: label for label, item_id in labels.items()}
    return ",".join(ids_to_labels[item_id] for item_id in group["item_ids"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a placed quotation with one item of quantity 5", target_fixture="quotation_id")
def placed_single_item(place, group_input):
    quotation = place(groups=[group_input(items=[("prod-1", "var-1", 5)])]).quotation
    return str(quotation.id)


@given(
    parsers.cfparse('a placed quotation with items "{first}" in the first group and "{second}" in the second'),
    target_fixture="quotation_id",
)
def placed_two_groups(place, group_input, providers, labels, first, second):
    groups = []
    for names in (first.split(","), second.split(",")):
        for name in names:
            providers.catalog.add_variant(f"prod-{name}", f"var-{name}", 1.0)
        groups.append(group_input(items=[(f"prod-{name}", f"var-{name}", 1) for name in names]))

    quotation = place(groups=groups).quotation
    for group in quotation.fulfillment_groups:
        for item in group["items"]:
            labels[item["variant_id"].removeprefix("var-")] = item["id"]
    return str(quotation.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request fails with "{message}"'))
def request_fails(error, message):
    assert isinstance(error["exc"], (ValidationError, ObjectNotFoundError))
    assert message in str(error["exc"])


@then(parsers.cfparse("the group has {count:d} items"))
def group_item_count(quotation_id, count):
    assert len(_reload(quotation_id).fulfillment_groups[0]["items"]) == count


@then(parsers.cfparse('the first group holds "{names}"'))
def first_group_holds(quotation_id, labels, names):
    assert _group_labels(_reload(quotation_id).fulfillment_groups[0], labels) == names


@then(parsers.cfparse('the second group holds "{names}"'))
def second_group_holds(quotation_id, labels, names):
    assert _group_labels(_reload(quotation_id).fulfillment_groups[1], labels) == names


@then(parsers.cfparse('the item quantities are "{quantities}"'))
def item_quantities(quotation_id, quantities):
    group = _reload(quotation_id).fulfillment_groups[0]
    assert ",".join(str(item["quantity"]) for item in group["items"]) == quantities


@then(parsers.cfparse("the quotation total item quantity is {quantity:d}"))
def total_item_quantity(quotation_id, quantity):
    assert _reload(quotation_id).total_item_quantity == quantity
