"""Payment verification and authorization at placement time."""

import structlog

from quotations.errors import PaymentFailedError
from quotations.providers import Providers
from quotations.providers.port import ProviderError, Shop
from quotations.quotation.money import fixed_string, sum_fixed
from quotations.quotation.totals import fan_out

logger = structlog.get_logger(__name__)


def verify_payments_match_total(payment_inputs: list[dict], quotation_total: float) -> None:
    """Require the payments to add up exactly to the quotation total.

    Both sides are compared as 3-decimal strings, never as floats.
    """
    payment_total = sum_fixed(payment["amount"] for payment in payment_inputs)
    if fixed_string(payment_total) != fixed_string(quotation_total):
        raise PaymentFailedError({"payments": ["Total of all payments must equal quotation total"]})


def create_payments(
    payment_inputs: list[dict],
    quotation_total: float,
    shop: Shop,
    providers: Providers,
    currency_code: str,
    account_id: str | None = None,
    email: str | None = None,
    billing_address: dict | None = None,
    shipping_address: dict | None = None,
) -> list[dict]:
    """Authorize every payment and return the stored payment records.

    All methods are checked before the first authorization is attempted.
    """
    verify_payments_match_total(payment_inputs, quotation_total)

    available = set(shop.available_payment_methods or ())
    for payment_input in payment_inputs:
        method_name = payment_input["method"]
        if method_name not in available:
            raise PaymentFailedError({"payments": [f"Payment method not enabled for this shop: {method_name}"]})
        if method_name not in providers.payment_methods:
            logger.error("Payment method has no registered provider", method=method_name, shop_id=shop.id)
            raise PaymentFailedError({"payments": [f"Invalid payment method name: {method_name}"]})

    def authorize(payment_input: dict) -> dict:
        provider = providers.payment_methods[payment_input["method"]]
        try:
            payment = provider.create_authorized_payment(
                {
                    "account_id": account_id,
                    "amount": payment_input["amount"],
                    "billing_address": payment_input.get("billing_address") or billing_address or shipping_address,
                    "currency_code": currency_code,
                    "email": email,
                    "shipping_address": shipping_address,
                    "shop_id": shop.id,
                    "data": dict(payment_input.get("data") or {}),
                }
            )
        except ProviderError as exc:
            logger.error(
                "Error creating payment",
                method=payment_input["method"],
                amount=payment_input["amount"],
                error=str(exc),
            )
            raise PaymentFailedError(
                {"payments": [f"There was a problem authorizing this payment: {exc}"]}
            ) from exc

        return {
            **payment,
            "currency": {"exchange_rate": 1, "user_currency": currency_code},
            "currency_code": currency_code,
        }

    return [payment for payment in fan_out(authorize, payment_inputs) if payment]
