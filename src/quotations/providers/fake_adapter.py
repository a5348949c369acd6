"""Configurable fake providers for development and testing.

Every fake keeps its data in memory, records the calls it receives in
``calls`` and can be reconfigured at runtime, so tests can assert on what
the engine asked for and steer what it gets back.
"""

import threading
from datetime import UTC, datetime
from uuid import uuid4

from quotations.errors import AccessDeniedError
from quotations.providers.port import (
    Cart,
    CartDirectory,
    Catalog,
    CatalogVariant,
    EmailPort,
    PaymentProvider,
    PermissionChecker,
    ProviderError,
    RateQuote,
    RateQuoteProvider,
    ReferenceIdProvider,
    Shop,
    ShopDirectory,
    SurchargeProvider,
    TaxProvider,
    TaxResult,
)
from quotations.quotation.money import sum_fixed, to_fixed

DEFAULT_SHOP_ID = "shop-001"
DEFAULT_PAYMENT_METHOD = "iou_example"
DEFAULT_FULFILLMENT_METHOD_ID = "standard"


def default_shop() -> Shop:
    return Shop(
        id=DEFAULT_SHOP_ID,
        name="Demo Shop",
        currency_code="USD",
        allow_guest_checkout=True,
        available_payment_methods=(DEFAULT_PAYMENT_METHOD,),
        address_book=(
            {
                "full_name": "Demo Shop Warehouse",
                "address1": "1 Depot Road",
                "city": "Springfield",
                "region": "IL",
                "postal": "62701",
                "country": "US",
            },
        ),
    )


class FakeShopDirectory(ShopDirectory):
    def __init__(self, shops: list[Shop] | None = None) -> None:
        self.shops: dict[str, Shop] = {}
        for shop in shops if shops is not None else [default_shop()]:
            self.add_shop(shop)

    def add_shop(self, shop: Shop) -> None:
        self.shops[shop.id] = shop

    def get_shop(self, shop_id: str) -> Shop | None:
        return self.shops.get(shop_id)


class FakeCartDirectory(CartDirectory):
    def __init__(self) -> None:
        self.carts: dict[str, Cart] = {}

    def add_cart(self, cart: Cart) -> None:
        self.carts[cart.id] = cart

    def get_cart(self, cart_id: str) -> Cart | None:
        return self.carts.get(cart_id)


class FakeCatalog(Catalog):
    def __init__(self) -> None:
        self.variants: dict[tuple[str, str], CatalogVariant] = {}

    def add_variant(self, product_id: str, variant_id: str, price: float, **kwargs) -> CatalogVariant:
        kwargs.setdefault("shop_id", DEFAULT_SHOP_ID)
        kwargs.setdefault("title", f"Product {product_id}")
        kwargs.setdefault("variant_title", f"Variant {variant_id}")
        variant = CatalogVariant(product_id=product_id, variant_id=variant_id, price=price, **kwargs)
        self.variants[(product_id, variant_id)] = variant
        return variant

    def get_variant(self, product_id: str, variant_id: str) -> CatalogVariant | None:
        return self.variants.get((product_id, variant_id))


class FakePermissionChecker(PermissionChecker):
    """Allows everything except the actions it has been told to deny."""

    def __init__(self) -> None:
        self.denied_actions: set[str] = set()
        self.deny_all = False
        self.calls: list[dict] = []

    def deny(self, action: str | None = None) -> None:
        if action is None:
            self.deny_all = True
        else:
            self.denied_actions.add(action)

    def reset(self) -> None:
        self.denied_actions.clear()
        self.deny_all = False
        self.calls.clear()

    def validate(self, resource: str, action: str, shop_id: str, owner_id: str | None = None) -> None:
        self.calls.append({"resource": resource, "action": action, "shop_id": shop_id, "owner_id": owner_id})
        if self.deny_all or action in self.denied_actions:
            raise AccessDeniedError({"permission": [f"Access denied: {action} on {resource}"]})


class FakeRateQuoteProvider(RateQuoteProvider):
    def __init__(self, quotes: list[RateQuote] | None = None) -> None:
        self.quotes: list[RateQuote] = quotes if quotes is not None else [self.standard_quote()]
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    @staticmethod
    def standard_quote(rate: float = 5.0, handling: float = 0.0) -> RateQuote:
        return RateQuote(
            method={
                "id": DEFAULT_FULFILLMENT_METHOD_ID,
                "carrier": "Flat Rate",
                "label": "Standard",
                "name": "standard",
                "group": "Ground",
            },
            handling_price=handling,
            shipping_price=to_fixed(rate - handling),
            rate=rate,
        )

    def configure(self, quotes: list[RateQuote]) -> None:
        self.quotes = list(quotes)

    def fail_with(self, message: str) -> None:
        self.quotes = [RateQuote(method={}, request_status="error", message=message)]

    def quote(self, common_quotation) -> list[RateQuote]:
        with self._lock:
            self.calls.append(
                {
                    "fulfillment_group_id": common_quotation.fulfillment_group_id,
                    "item_ids": [item.id for item in common_quotation.items],
                }
            )
        return list(self.quotes)


class FakeSurchargeProvider(SurchargeProvider):
    """Returns the same configured surcharges for every group."""

    def __init__(self, surcharges: list[dict] | None = None) -> None:
        self.surcharges = surcharges or []
        self.calls: list[str] = []

    def get_surcharges(self, common_quotation) -> list[dict]:
        self.calls.append(common_quotation.fulfillment_group_id)
        return [{"id": f"surcharge-{uuid4().hex[:8]}", **surcharge} for surcharge in self.surcharges]


class FakeTaxProvider(TaxProvider):
    """Flat-rate tax on taxable items."""

    def __init__(self, rate: float = 0.1) -> None:
        self.rate = rate
        self.calls: list[str] = []

    def set_taxes(self, group: dict, common_quotation, surcharges: list[dict]) -> TaxResult:
        self.calls.append(common_quotation.fulfillment_group_id)
        taxable = []
        taxes = []
        for item in group["items"]:
            if not item.get("is_taxable"):
                item["tax"] = 0.0
                continue
            tax = to_fixed(item["subtotal"] * self.rate)
            item["tax"] = tax
            item["tax_rate"] = self.rate
            taxable.append(item["subtotal"])
            taxes.append(tax)
        return TaxResult(tax_total=sum_fixed(taxes), taxable_amount=sum_fixed(taxable))


class FakePaymentProvider(PaymentProvider):
    def __init__(self, name: str = DEFAULT_PAYMENT_METHOD) -> None:
        self.name = name
        self.should_succeed = True
        self.failure_reason = "Payment declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        """Configure provider behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_authorized_payment(self, payment_input: dict) -> dict:
        self.calls.append(payment_input)
        if not self.should_succeed:
            raise ProviderError(self.failure_reason)

        return {
            "id": f"pay_{uuid4().hex[:12]}",
            "name": self.name,
            "method": "credit",
            "display_name": "IOU",
            "processor": "Example",
            "mode": "authorize",
            "status": "created",
            "amount": payment_input["amount"],
            "address": payment_input.get("billing_address"),
            "shop_id": payment_input.get("shop_id"),
            "transaction_id": f"fake_txn_{uuid4().hex[:12]}",
            "data": payment_input.get("data") or {},
            "created_at": datetime.now(UTC).isoformat(),
        }


class FakeReferenceIdProvider(ReferenceIdProvider):
    def __init__(self, reference_id="REF-0001") -> None:
        self.reference_id = reference_id
        self.calls: list[str] = []

    def create_reference_id(self, quotation: dict) -> str:
        self.calls.append(quotation["id"])
        return self.reference_id


class FakeEmailAdapter(EmailPort):
    """Email adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_emails: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Email delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> dict:
        if not self.should_succeed:
            return {
                "message_id": None,
                "status": "failed",
                "error": self.failure_reason,
            }

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent_emails.append(
            {
                "message_id": message_id,
                "to": to,
                "subject": subject,
                "body": body,
                "html_body": html_body,
            }
        )
        return {"message_id": message_id, "status": "sent"}
