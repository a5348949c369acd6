"""Quotation detail update: command and handler."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text

from quotations.domain import quotations
from quotations.providers import get_providers
from quotations.quotation.access import resource_for
from quotations.quotation.persistence import QuotationResult, load_quotation, save_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.workflow import QuotationStatus

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class UpdateQuotation:
    """Change email, custom fields or status. Omitted fields stay as they are."""

    quotation_id = Identifier(required=True)
    email = String(max_length=254)
    custom_fields = Text()  # JSON dict
    status = String(max_length=100, choices=QuotationStatus)
    acting_account_id = Identifier()


@quotations.command_handler(part_of=Quotation)
class UpdateQuotationHandler:
    @handle(UpdateQuotation)
    def update_quotation(self, command):
        custom_fields = None
        if command.custom_fields is not None:
            custom_fields = (
                json.loads(command.custom_fields) if isinstance(command.custom_fields, str) else command.custom_fields
            )

        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        providers.permissions.validate(resource_for(quotation.id), "update", shop_id=quotation.shop_id)

        changed = quotation.update_details(
            email=command.email,
            custom_fields=custom_fields,
            status=command.status,
            updated_by=command.acting_account_id,
        )
        if changed:
            save_quotation(quotation)
            logger.info("Quotation updated", quotation_id=str(quotation.id), status=quotation.status)

        return QuotationResult(quotation=quotation)
