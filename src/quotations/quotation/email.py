"""Quotation emails sent to the quotation's email address.

QuotationPlaced triggers the ``quotations/new`` email. Other templates are
chosen by action (shipped, refunded, itemRefund) or by the quotation's
current status.
"""

from collections import OrderedDict

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from quotations.domain import quotations
from quotations.providers import Providers, get_providers
from quotations.quotation.access import create_anonymous_access_token
from quotations.quotation.events import QuotationPlaced
from quotations.quotation.money import fixed_string, line_subtotal
from quotations.quotation.quotation import Quotation
from quotations.quotation.summary import display_status, quotation_summary

logger = structlog.get_logger(__name__)

ACTION_TEMPLATES = {
    "shipped": "quotations/shipped",
    "refunded": "quotations/refunded",
    "itemRefund": "quotations/itemRefund",
}

SUBJECTS = {
    "quotations/new": "Quotation {reference_id} received",
    "quotations/shipped": "Quotation {reference_id} has shipped",
    "quotations/refunded": "Quotation {reference_id} refunded",
    "quotations/itemRefund": "Items on quotation {reference_id} refunded",
}


def template_name(action: str | None, status: str) -> str:
    return ACTION_TEMPLATES.get(action) or f"quotations/{status}"


def combined_items(quotation: Quotation) -> list[dict]:
    """Items of all groups with the same variant and price folded together."""
    combined: OrderedDict[tuple, dict] = OrderedDict()
    for group in quotation.fulfillment_groups:
        for item in group["items"]:
            key = (item["variant_id"], item["price"]["amount"])
            if key in combined:
                combined[key]["quantity"] += item["quantity"]
            else:
                combined[key] = {
                    "product_id": item["product_id"],
                    "variant_id": item["variant_id"],
                    "title": item.get("title"),
                    "variant_title": item.get("variant_title"),
                    "quantity": item["quantity"],
                    "price": item["price"]["amount"],
                }
    for entry in combined.values():
        entry["subtotal"] = line_subtotal(entry["price"], entry["quantity"])
    return list(combined.values())


def quotation_url(quotation: Quotation, url_template: str | None, token: str | None) -> str | None:
    if not url_template:
        return None
    url = url_template.replace(":quotationId", quotation.reference_id or str(quotation.id))
    return url.replace(":token", token or "")


def email_data(quotation: Quotation, providers: Providers, token: str | None = None) -> dict:
    shop = providers.shops.get_shop(quotation.shop_id)
    summary = quotation_summary(quotation)
    groups = quotation.fulfillment_groups
    return {
        "shop_name": shop.name if shop else None,
        "reference_id": quotation.reference_id or str(quotation.id),
        "status": display_status(quotation.status, shop, quotation.preferred_language),
        "items": combined_items(quotation),
        "billing": {
            "subtotal": fixed_string(summary.item_total.amount),
            "shipping": fixed_string(summary.fulfillment_total.amount),
            "taxes": fixed_string(summary.tax_total.amount),
            "discounts": fixed_string(summary.discount_total.amount),
            "total": fixed_string(summary.total.amount),
            "currency_code": quotation.currency_code,
        },
        "shipping_address": groups[0].get("address") if groups else None,
        "tracking": [group["tracking"] for group in groups if group.get("tracking")],
        "quotation_url": quotation_url(quotation, shop.storefront_quotation_url if shop else None, token),
    }


def render(template: str, data: dict) -> dict:
    subject = SUBJECTS.get(template, "Quotation {reference_id}: {status}").format(**data)
    lines = [f"{item['quantity']} x {item['title'] or item['variant_id']}  {item['subtotal']}" for item in data["items"]]
    billing = data["billing"]
    lines += [
        "",
        f"Subtotal: {billing['currency_code']} {billing['subtotal']}",
        f"Shipping: {billing['currency_code']} {billing['shipping']}",
        f"Taxes: {billing['currency_code']} {billing['taxes']}",
        f"Discounts: {billing['currency_code']} {billing['discounts']}",
        f"Total: {billing['currency_code']} {billing['total']}",
    ]
    if data["quotation_url"]:
        lines += ["", f"View your quotation: {data['quotation_url']}"]
    return {"subject": subject, "body": "\n".join(lines)}


def send_quotation_email(quotation: Quotation, action: str | None = None) -> bool:
    """Send the email for ``action``; False when there is no address or delivery fails.

    Anonymous quotations get a fresh access token in their link when the
    shop's storefront URL asks for one.
    """
    if not quotation.email:
        logger.info("Quotation has no email address, skipping email", quotation_id=str(quotation.id))
        return False

    providers = get_providers()
    shop = providers.shops.get_shop(quotation.shop_id)

    token = None
    if not quotation.account_id and shop and ":token" in (shop.storefront_quotation_url or ""):
        token, record = create_anonymous_access_token()
        quotation.add_access_token(record)
        current_domain.repository_for(Quotation).add(quotation)

    template = template_name(action, quotation.status)
    message = render(template, email_data(quotation, providers, token))
    result = providers.email.send(to=quotation.email, subject=message["subject"], body=message["body"])

    if result.get("status") == "failed":
        logger.warning(
            "Quotation email delivery failed",
            quotation_id=str(quotation.id),
            template=template,
            error=result.get("error"),
        )
        return False

    logger.info(
        "Quotation email sent",
        quotation_id=str(quotation.id),
        template=template,
        message_id=result.get("message_id"),
    )
    return True


@quotations.event_handler(part_of=Quotation)
class QuotationEmailHandler:
    @handle(QuotationPlaced)
    def on_quotation_placed(self, event: QuotationPlaced) -> None:
        quotation = current_domain.repository_for(Quotation).get(event.quotation_id)
        send_quotation_email(quotation)
