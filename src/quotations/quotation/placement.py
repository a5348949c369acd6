"""Quotation placement: command and handler.

Placement has no existing aggregate to load. It builds and prices every
fulfillment group, authorizes payments for exactly the computed total and
inserts a brand-new quotation:

    shop / guest checkout checks
    → cart lookup (discounts)
    → build groups (in parallel)
    → authorize payments
    → anonymous access token (no account)
    → reference id, custom fields
    → save + QuotationPlaced
"""

import json
from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Identifier, String, Text

from quotations.domain import quotations
from quotations.errors import AccessDeniedError, InvalidParameterError, NotFoundError
from quotations.providers import Providers, get_providers
from quotations.providers.port import Cart
from quotations.quotation.access import create_anonymous_access_token
from quotations.quotation.builder import build_fulfillment_group
from quotations.quotation.common_quotation import QuotationContext
from quotations.quotation.money import sum_fixed
from quotations.quotation.payments import create_payments
from quotations.quotation.persistence import QuotationResult, save_quotation
from quotations.quotation.quotation import Quotation
from quotations.quotation.totals import fan_out

logger = structlog.get_logger(__name__)


@quotations.command(part_of="Quotation")
class PlaceQuotation:
    shop_id = Identifier(required=True)
    currency_code = String(required=True, max_length=3)
    email = String(max_length=254)
    fulfillment_groups = Text(required=True)  # JSON: list of group input dicts
    payments = Text()  # JSON: list of {method, amount, data, billing_address}
    billing_address = Text()  # JSON: address dict
    cart_id = Identifier()
    custom_fields = Text()  # JSON dict
    preferred_language = String(max_length=10)
    account_id = Identifier()  # Placing account, absent for guests
    user_id = Identifier()  # Authenticated user, absent for anonymous callers


def _json(value, default):
    if value is None:
        return default
    return json.loads(value) if isinstance(value, str) else value


def _reference_id(quotation_doc: dict, cart: Cart | None, providers: Providers) -> str:
    if providers.reference_ids:
        if len(providers.reference_ids) > 1:
            logger.warning(
                "More than one reference id provider registered, using the first",
                provider_count=len(providers.reference_ids),
            )
        reference_id = providers.reference_ids[0].create_reference_id(quotation_doc)
        if not isinstance(reference_id, str):
            raise InvalidParameterError({"reference_id": ["Reference id provider did not return a string"]})
        return reference_id

    if cart is not None and cart.reference_id:
        return cart.reference_id
    return uuid4().hex[:12].upper()


@quotations.command_handler(part_of=Quotation)
class PlaceQuotationHandler:
    @handle(PlaceQuotation)
    def place_quotation(self, command):
        group_inputs = _json(command.fulfillment_groups, [])
        payment_inputs = _json(command.payments, [])
        billing_address = _json(command.billing_address, None)
        custom_fields = _json(command.custom_fields, {})

        if not group_inputs:
            raise InvalidParameterError({"fulfillment_groups": ["At least one fulfillment group is required"]})

        providers = get_providers()

        shop = providers.shops.get_shop(command.shop_id)
        if shop is None:
            raise NotFoundError({"shop_id": ["Shop not found"]})

        if not command.user_id and not shop.allow_guest_checkout:
            raise AccessDeniedError({"user_id": ["Guest checkout not allowed"]})

        cart = None
        discounts: list[dict] = []
        discount_total = 0.0
        if command.cart_id:
            cart = providers.carts.get_cart(command.cart_id)
            if cart is None:
                raise NotFoundError({"cart_id": ["Cart not found"]})
            discounts = [dict(discount) for discount in cart.discounts]
            discount_total = cart.discount_total or 0.0

        quotation_id = str(uuid4())
        context = QuotationContext(
            quotation_id=quotation_id,
            shop_id=shop.id,
            currency_code=command.currency_code,
            account_id=command.account_id,
            cart_id=command.cart_id,
            billing_address=billing_address,
            origin_address=shop.address_book[0] if shop.address_book else None,
        )

        # The cart discount is a single quotation-wide amount. It is charged
        # against the first group only so it is not counted once per group.
        built = fan_out(
            lambda indexed: build_fulfillment_group(
                indexed[1],
                context,
                providers,
                discount_total=discount_total if indexed[0] == 0 else 0.0,
            ),
            enumerate(group_inputs),
        )
        groups = [result.group for result in built]
        surcharges = [surcharge for result in built for surcharge in result.surcharges]
        quotation_total = sum_fixed(group["invoice"]["total"] for group in groups)

        payments = create_payments(
            payment_inputs,
            quotation_total,
            shop,
            providers,
            currency_code=command.currency_code,
            account_id=command.account_id,
            email=command.email,
            billing_address=billing_address,
            shipping_address=groups[0].get("address"),
        )

        token = None
        access_tokens = []
        if not command.account_id:
            token, record = create_anonymous_access_token()
            access_tokens.append(record)

        quotation_doc = {
            "id": quotation_id,
            "shop_id": shop.id,
            "account_id": command.account_id,
            "cart_id": command.cart_id,
            "email": command.email,
            "currency_code": command.currency_code,
            "shipping": groups,
        }
        reference_id = _reference_id(quotation_doc, cart, providers)

        for transform in providers.custom_field_transforms:
            custom_fields = transform.transform(custom_fields, {**quotation_doc, "reference_id": reference_id})

        quotation = Quotation.place(
            quotation_id=quotation_id,
            shop_id=shop.id,
            currency_code=command.currency_code,
            groups=groups,
            surcharges=surcharges,
            payments=payments,
            account_id=command.account_id,
            cart_id=command.cart_id,
            reference_id=reference_id,
            email=command.email,
            billing_address=billing_address,
            custom_fields=custom_fields,
            discounts=discounts,
            access_tokens=access_tokens,
            preferred_language=command.preferred_language,
        )
        save_quotation(quotation)

        logger.info(
            "Quotation placed",
            quotation_id=quotation_id,
            reference_id=reference_id,
            shop_id=shop.id,
            total=quotation_total,
            fulfillment_group_count=len(groups),
            anonymous=token is not None,
        )
        return QuotationResult(quotation=quotation, token=token)
