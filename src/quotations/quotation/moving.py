"""Move quotation items between fulfillment groups: command and handler."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Text

from quotations.domain import quotations
from quotations.providers import get_providers
from quotations.quotation.access import resource_for
from quotations.quotation.items import move_items
from quotations.quotation.persistence import QuotationResult, context_for, load_quotation, save_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.totals import merge_surcharges, recalculate_groups

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class MoveQuotationItems:
    """Move items, in order, from one fulfillment group to the end of another."""

    quotation_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of item ids
    from_group_id = Identifier(required=True)
    to_group_id = Identifier(required=True)
    acting_account_id = Identifier()


@quotations.command_handler(part_of=Quotation)
class MoveQuotationItemsHandler:
    @handle(MoveQuotationItems)
    def move_quotation_items(self, command):
        item_ids = json.loads(command.item_ids) if isinstance(command.item_ids, str) else command.item_ids

        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        providers.permissions.validate(
            resource_for(quotation.id),
            "move:item",
            shop_id=quotation.shop_id,
            owner_id=quotation.account_id,
        )

        owner = quotation.is_owned_by(command.acting_account_id)
        if owner:
            quotation.assert_owner_may_modify()

        change = move_items(
            quotation.fulfillment_groups,
            item_ids,
            command.from_group_id,
            command.to_group_id,
            owner_gated=owner,
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
            change="move_items",
            updated_by=command.acting_account_id,
        )
        save_quotation(quotation)

        logger.info(
            "Quotation items moved",
            quotation_id=str(quotation.id),
            item_ids=item_ids,
            from_group_id=command.from_group_id,
            to_group_id=command.to_group_id,
        )
        return QuotationResult(quotation=quotation)
