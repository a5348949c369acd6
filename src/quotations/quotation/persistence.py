"""Loading and saving quotations from command handlers."""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from quotations.errors import NotFoundError, ServerError
from quotations.providers import Providers
from quotations.quotation.common_quotation import QuotationContext
from quotations.quotation.quotation import Quotation


@dataclass(frozen=True)
class QuotationResult:
    """What every quotation command hands back to its caller."""

    quotation: Quotation
    new_item_id: str | None = None
    new_fulfillment_group_id: str | None = None
    token: str | None = None


def load_quotation(quotation_id: str) -> Quotation:
    try:
        return current_domain.repository_for(Quotation).get(quotation_id)
    except ObjectNotFoundError as exc:
        raise NotFoundError({"quotation_id": ["Quotation not found"]}) from exc


def save_quotation(quotation: Quotation) -> Quotation:
    """Persist the whole document; an empty result is an integrity fault."""
    saved = current_domain.repository_for(Quotation).add(quotation)
    if saved is None:
        raise ServerError({"quotation": ["Unable to update quotation"]})
    return saved


def context_for(quotation: Quotation, providers: Providers) -> QuotationContext:
    shop = providers.shops.get_shop(quotation.shop_id)
    return QuotationContext(
        quotation_id=str(quotation.id),
        shop_id=quotation.shop_id,
        currency_code=quotation.currency_code,
        account_id=quotation.account_id,
        cart_id=quotation.cart_id,
        billing_address=quotation.billing_address_data,
        origin_address=shop.address_book[0] if shop and shop.address_book else None,
    )
