"""Provider ports (abstract interfaces) consumed by the quotation engine.

Shops, carts, catalog prices, permissions, rate quotes, surcharges, taxes,
payment authorization, reference ids, custom field transforms and email
are all owned by other systems. The engine only sees these contracts, so
fake adapters (dev/test) and real integrations are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class ProviderError(Exception):
    """Raised by an adapter when the external system rejects a call."""


# ---------------------------------------------------------------------------
# Data returned by providers
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Shop:
    id: str
    name: str = ""
    currency_code: str = "USD"
    allow_guest_checkout: bool = True
    available_payment_methods: tuple[str, ...] = ()
    address_book: tuple[dict, ...] = ()
    quotation_status_labels: dict = field(default_factory=dict)  # {status: {language: label}}
    storefront_quotation_url: str | None = None
    language: str = "en"


@dataclass(frozen=True)
class Cart:
    id: str
    reference_id: str | None = None
    account_id: str | None = None
    discounts: tuple[dict, ...] = ()
    discount_total: float = 0.0


@dataclass(frozen=True)
class CatalogVariant:
    product_id: str
    variant_id: str
    shop_id: str
    price: float
    currency_code: str = "USD"
    title: str = ""
    variant_title: str = ""
    is_taxable: bool = False
    tax_code: str | None = None
    inventory_available: int | None = None  # None means inventory is not tracked
    can_backorder: bool = False


@dataclass(frozen=True)
class RateQuote:
    """One fulfillment method price offered for a group."""

    method: dict  # id, carrier, label, name, group
    handling_price: float = 0.0
    shipping_price: float = 0.0
    rate: float = 0.0
    request_status: str = "success"
    message: str | None = None


@dataclass(frozen=True)
class TaxResult:
    tax_total: float = 0.0
    taxable_amount: float = 0.0


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------
class ShopDirectory(ABC):
    @abstractmethod
    def get_shop(self, shop_id: str) -> Shop | None: ...


class CartDirectory(ABC):
    @abstractmethod
    def get_cart(self, cart_id: str) -> Cart | None: ...


class Catalog(ABC):
    @abstractmethod
    def get_variant(self, product_id: str, variant_id: str) -> CatalogVariant | None:
        """Return the current catalog entry for a product variant."""
        ...


class PermissionChecker(ABC):
    @abstractmethod
    def validate(self, resource: str, action: str, shop_id: str, owner_id: str | None = None) -> None:
        """Raise AccessDeniedError unless the actor may perform ``action``."""
        ...


class RateQuoteProvider(ABC):
    @abstractmethod
    def quote(self, common_quotation) -> list[RateQuote]:
        """Return available fulfillment methods for a group."""
        ...


class SurchargeProvider(ABC):
    @abstractmethod
    def get_surcharges(self, common_quotation) -> list[dict]:
        """Return surcharges (``id``, ``amount``, ...) that apply to a group."""
        ...


class TaxProvider(ABC):
    @abstractmethod
    def set_taxes(self, group: dict, common_quotation, surcharges: list[dict]) -> TaxResult:
        """Compute taxes for a group.

        May annotate the group's items with their tax amounts; the
        ``common_quotation`` view itself is read-only.
        """
        ...


class PaymentProvider(ABC):
    name: str

    @abstractmethod
    def create_authorized_payment(self, payment_input: dict) -> dict:
        """Authorize ``payment_input["amount"]`` and return the payment record."""
        ...


class ReferenceIdProvider(ABC):
    @abstractmethod
    def create_reference_id(self, quotation: dict) -> str: ...


class CustomFieldTransform(ABC):
    @abstractmethod
    def transform(self, custom_fields: dict, context: dict) -> dict: ...


class EmailPort(ABC):
    """Abstract interface for email dispatch adapters."""

    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> dict:
        """Send an email message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
