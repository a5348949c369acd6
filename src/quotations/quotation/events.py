"""Quotation domain events.

All events are past tense and versioned. Payloads stay flat; nested data
travels as JSON text like everywhere else in the aggregate.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from quotations.domain import quotations


@quotations.event(part_of="Quotation")
class QuotationPlaced:
    """A new quotation was placed and its payments authorized."""

    __version__ = 1

    quotation_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    account_id = Identifier()
    reference_id = String(max_length=100)
    email = String(max_length=254)
    currency_code = String(max_length=3)
    total = Float(required=True)
    total_item_quantity = Integer(required=True)
    fulfillment_group_ids = Text()  # JSON list
    placed_at = DateTime(required=True)


@quotations.event(part_of="Quotation")
class QuotationUpdated:
    """Fulfillment groups, items or details of a quotation changed."""

    __version__ = 1

    quotation_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    change = String(required=True, max_length=50)
    updated_by = Identifier()
    status = String(max_length=100)
    total_item_quantity = Integer()
    updated_at = DateTime(required=True)


@quotations.event(part_of="Quotation")
class QuotationCanceled:
    """Every fulfillment group of the quotation is now canceled."""

    __version__ = 1

    quotation_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    canceled_by = Identifier()
    canceled_at = DateTime(required=True)
