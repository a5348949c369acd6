"""Quotation item split: command and handler.

Splitting moves part of an item's quantity onto a new sibling in the same
group. Item statuses are untouched; the group is re-priced.
"""

from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Identifier, Integer

from quotations.domain import quotations
from quotations.providers import get_providers
from quotations.quotation.access import resource_for
from quotations.quotation.items import split_item
from quotations.quotation.persistence import QuotationResult, context_for, load_quotation, save_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.totals import merge_surcharges, recalculate_groups

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class SplitQuotationItem:
    quotation_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_item_quantity = Integer(required=True, min_value=1)
    acting_account_id = Identifier()


@quotations.command_handler(part_of=Quotation)
class SplitQuotationItemHandler:
    @handle(SplitQuotationItem)
    def split_quotation_item(self, command):
        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        providers.permissions.validate(resource_for(quotation.id), "move:item", shop_id=quotation.shop_id)

        change = split_item(
            quotation.fulfillment_groups,
            command.item_id,
            command.new_item_quantity,
            new_item_id=str(uuid4()),
        )
        groups, results = recalculate_groups(
            change.groups,
            change.changed_group_ids,
            context_for(quotation, providers),
            providers,
        )
        quotation.apply_fulfillment_change(
            groups,
            merge_surcharges(quotation.surcharge_records, results),
            change="split_item",
            updated_by=command.acting_account_id,
        )
        save_quotation(quotation)

        logger.info(
            "Quotation item split",
            quotation_id=str(quotation.id),
            item_id=command.item_id,
            new_item_id=change.new_item_id,
            new_item_quantity=command.new_item_quantity,
        )
        return QuotationResult(quotation=quotation, new_item_id=change.new_item_id)
