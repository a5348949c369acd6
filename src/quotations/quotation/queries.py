"""Read operations on quotations.

Single-quotation lookups accept an anonymous access token in place of a
permission check; list lookups check ``read`` permission for every shop.
"""

from dataclasses import dataclass
from datetime import datetime

from protean.utils.globals import current_domain

from quotations.errors import InvalidParameterError, NotFoundError
from quotations.providers import get_providers
from quotations.quotation.access import READ_RESOURCE, check_read_access
from quotations.quotation.persistence import load_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.workflow import expand_group_status


@dataclass(frozen=True)
class QuotationFilters:
    created_at_from: datetime | None = None
    created_at_to: datetime | None = None
    status: str | None = None
    fulfillment_status: tuple[str, ...] = ()
    payment_status: tuple[str, ...] = ()
    search: str | None = None


def quotation_by_id(quotation_id: str, shop_id: str, token: str | None = None) -> Quotation:
    if not quotation_id or not shop_id:
        raise InvalidParameterError({"quotation_id": ["You must provide quotation_id and shop_id arguments"]})

    quotation = load_quotation(quotation_id)
    check_read_access(quotation, shop_id, get_providers(), token)
    return quotation


def quotation_by_reference_id(reference_id: str, shop_id: str, token: str | None = None) -> Quotation:
    if not reference_id or not shop_id:
        raise InvalidParameterError({"reference_id": ["You must provide reference_id and shop_id arguments"]})

    repo = current_domain.repository_for(Quotation)
    matches = repo._dao.query.filter(reference_id=reference_id, shop_id=shop_id).all().items
    if not matches:
        raise NotFoundError({"reference_id": ["Quotation not found"]})

    quotation = matches[0]
    check_read_access(quotation, shop_id, get_providers(), token)
    return quotation


def _for_shops(shop_ids: list[str], **filters) -> list[Quotation]:
    repo = current_domain.repository_for(Quotation)
    found = []
    for shop_id in shop_ids:
        found.extend(repo._dao.query.filter(shop_id=shop_id, **filters).all().items)
    return sorted(found, key=lambda quotation: quotation.created_at, reverse=True)


def quotations_by_account_id(
    account_id: str,
    shop_ids: list[str],
    statuses: list[str] | None = None,
) -> list[Quotation]:
    if not account_id:
        raise InvalidParameterError({"account_id": ["You must provide account_id arguments"]})
    if not shop_ids:
        raise InvalidParameterError({"shop_ids": ["You must provide ShopId(s)"]})

    providers = get_providers()
    for shop_id in shop_ids:
        providers.permissions.validate(READ_RESOURCE, "read", shop_id=shop_id, owner_id=account_id)

    results = _for_shops(shop_ids, account_id=account_id)
    if statuses:
        results = [quotation for quotation in results if quotation.status in statuses]
    return results


def _matches_search(quotation: Quotation, search: str) -> bool:
    if search in (str(quotation.id), quotation.reference_id, quotation.email):
        return True

    needle = search.lower()
    addresses = [payment.get("address") or {} for payment in quotation.payment_records]
    addresses += [group.get("address") or {} for group in quotation.fulfillment_groups]
    return any(
        needle in (address.get(key) or "").lower() for address in addresses for key in ("full_name", "phone")
    )


def _matches(quotation: Quotation, filters: QuotationFilters) -> bool:
    if filters.created_at_from and quotation.created_at < filters.created_at_from:
        return False
    if filters.created_at_to and quotation.created_at > filters.created_at_to:
        return False
    if filters.status and quotation.status != expand_group_status(filters.status):
        return False
    if filters.fulfillment_status:
        wanted = {expand_group_status(status) for status in filters.fulfillment_status}
        if not any(group["workflow"]["status"] in wanted for group in quotation.fulfillment_groups):
            return False
    if filters.payment_status:
        if not any(payment.get("status") in filters.payment_status for payment in quotation.payment_records):
            return False
    if filters.search and not _matches_search(quotation, filters.search):
        return False
    return True


def list_quotations(shop_ids: list[str], filters: QuotationFilters | None = None) -> list[Quotation]:
    """Quotations of the given shops, newest first."""
    if not shop_ids:
        raise InvalidParameterError({"shop_ids": ["You must provide ShopId(s)"]})

    providers = get_providers()
    for shop_id in shop_ids:
        providers.permissions.validate(READ_RESOURCE, "read", shop_id=shop_id)

    filters = filters or QuotationFilters()
    return [quotation for quotation in _for_shops(shop_ids) if _matches(quotation, filters)]
