"""Fulfillment group commands: add a group, update a group's tracking/status."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text

from quotations.domain import quotations
from quotations.providers import get_providers
from quotations.quotation.access import resource_for
from quotations.quotation.builder import build_fulfillment_group
from quotations.quotation.items import extract_items
from quotations.quotation.persistence import QuotationResult, context_for, load_quotation, save_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.totals import merge_surcharges, recalculate_groups
from quotations.quotation.workflow import QuotationStatus

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class AddQuotationFulfillmentGroup:
    """Add a fulfillment group, optionally moving existing items into it."""

    quotation_id = Identifier(required=True)
    fulfillment_group = Text(required=True)  # JSON: group input dict
    move_item_ids = Text()  # JSON list of item ids
    acting_account_id = Identifier()


@quotations.command(part_of="Quotation")
class UpdateQuotationFulfillmentGroup:
    quotation_id = Identifier(required=True)
    group_id = Identifier(required=True)
    tracking = String(max_length=255)
    tracking_url = String(max_length=1000)
    status = String(max_length=100, choices=QuotationStatus)
    acting_account_id = Identifier()


@quotations.command_handler(part_of=Quotation)
class FulfillmentGroupHandler:
    @handle(AddQuotationFulfillmentGroup)
    def add_fulfillment_group(self, command):
        group_input = (
            json.loads(command.fulfillment_group)
            if isinstance(command.fulfillment_group, str)
            else command.fulfillment_group
        )
        move_item_ids = []
        if command.move_item_ids:
            move_item_ids = (
                json.loads(command.move_item_ids) if isinstance(command.move_item_ids, str) else command.move_item_ids
            )

        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        resource = resource_for(quotation.id)
        providers.permissions.validate(resource, "update", shop_id=quotation.shop_id)
        if move_item_ids:
            providers.permissions.validate(resource, "move:item", shop_id=quotation.shop_id)

        context = context_for(quotation, providers)
        groups = quotation.fulfillment_groups
        surcharges = quotation.surcharge_records
        moved_items = ()

        if move_item_ids:
            change = extract_items(groups, move_item_ids)
            groups, results = recalculate_groups(change.groups, change.changed_group_ids, context, providers)
            surcharges = merge_surcharges(surcharges, results)
            moved_items = change.moved_items

        built = build_fulfillment_group(
            group_input,
            context,
            providers,
            discount_total=0.0,
            additional_items=moved_items,
        )
        new_group_id = built.group["id"]

        quotation.apply_fulfillment_change(
            [*groups, built.group],
            [*surcharges, *built.surcharges],
            change="add_fulfillment_group",
            updated_by=command.acting_account_id,
        )
        save_quotation(quotation)

        logger.info(
            "Fulfillment group added",
            quotation_id=str(quotation.id),
            fulfillment_group_id=new_group_id,
            moved_item_count=len(moved_items),
        )
        return QuotationResult(quotation=quotation, new_fulfillment_group_id=new_group_id)

    @handle(UpdateQuotationFulfillmentGroup)
    def update_fulfillment_group(self, command):
        providers = get_providers()
        quotation = load_quotation(command.quotation_id)

        providers.permissions.validate(resource_for(quotation.id), "update", shop_id=quotation.shop_id)

        changed = quotation.update_fulfillment_group(
            command.group_id,
            tracking=command.tracking,
            tracking_url=command.tracking_url,
            status=command.status,
            updated_by=command.acting_account_id,
        )
        if not changed:
            return QuotationResult(quotation=quotation)

        save_quotation(quotation)
        logger.info(
            "Fulfillment group updated",
            quotation_id=str(quotation.id),
            fulfillment_group_id=command.group_id,
            status=command.status,
        )
        return QuotationResult(quotation=quotation)
