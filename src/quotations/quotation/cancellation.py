"""Quotation item cancellation: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String

from quotations.domain import quotations
from quotations.providers import get_providers
from quotations.quotation.access import resource_for
from quotations.quotation.persistence import QuotationResult, load_quotation, save_quotation
from quotations.quotation.quotation import Quotation

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class CancelQuotationItem:
    """Cancel some or all units of one item."""

    quotation_id = Identifier(required=True)
    item_id = Identifier(required=True)
    cancel_quantity = Integer(required=True, min_value=1)
    reason = String(max_length=500)
    acting_account_id = Identifier()


@quotations.command_handler(part_of=Quotation)
class CancelQuotationItemHandler:
    @handle(CancelQuotationItem)
    def cancel_quotation_item(self, command):
        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        providers.permissions.validate(
            resource_for(quotation.id),
            "cancel:item",
            shop_id=quotation.shop_id,
            owner_id=quotation.account_id,
        )

        new_item_id = quotation.cancel_item(
            item_id=command.item_id,
            cancel_quantity=command.cancel_quantity,
            reason=command.reason,
            acting_account_id=command.acting_account_id,
        )
        save_quotation(quotation)

        logger.info(
            "Quotation item canceled",
            quotation_id=str(quotation.id),
            item_id=command.item_id,
            cancel_quantity=command.cancel_quantity,
            new_item_id=new_item_id,
            quotation_status=quotation.status,
        )
        return QuotationResult(quotation=quotation, new_item_id=new_item_id)
