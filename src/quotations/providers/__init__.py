"""Provider registry.

Provides get_providers() / set_providers() / reset_providers() to swap the
bundle of collaborators the quotation engine talks to. The registry is
resolved once and injected into every operation; nothing is looked up by
string tag per call. Fake adapters are the default; QUOTATION_PROVIDERS
selects another bundle in deployed environments.
"""

import os
from dataclasses import dataclass, field

from quotations.providers.port import (
    CartDirectory,
    Catalog,
    CustomFieldTransform,
    EmailPort,
    PaymentProvider,
    PermissionChecker,
    RateQuoteProvider,
    ReferenceIdProvider,
    ShopDirectory,
    SurchargeProvider,
    TaxProvider,
)


@dataclass
class Providers:
    shops: ShopDirectory
    carts: CartDirectory
    catalog: Catalog
    permissions: PermissionChecker
    rate_quotes: RateQuoteProvider
    email: EmailPort
    surcharges: list[SurchargeProvider] = field(default_factory=list)
    tax: TaxProvider | None = None
    payment_methods: dict[str, PaymentProvider] = field(default_factory=dict)
    reference_ids: list[ReferenceIdProvider] = field(default_factory=list)
    custom_field_transforms: list[CustomFieldTransform] = field(default_factory=list)


def build_fake_providers() -> Providers:
    from quotations.providers.fake_adapter import (
        FakeCartDirectory,
        FakeCatalog,
        FakeEmailAdapter,
        FakePaymentProvider,
        FakePermissionChecker,
        FakeRateQuoteProvider,
        FakeShopDirectory,
    )

    payment = FakePaymentProvider()
    return Providers(
        shops=FakeShopDirectory(),
        carts=FakeCartDirectory(),
        catalog=FakeCatalog(),
        permissions=FakePermissionChecker(),
        rate_quotes=FakeRateQuoteProvider(),
        email=FakeEmailAdapter(),
        payment_methods={payment.name: payment},
    )


_current_providers: Providers | None = None


def get_providers() -> Providers:
    """Return the active provider bundle. Defaults to fake adapters."""
    global _current_providers
    if _current_providers is None:
        adapter = os.environ.get("QUOTATION_PROVIDERS", "fake")
        if adapter == "fake":
            _current_providers = build_fake_providers()
        else:
            raise ValueError(f"Unknown provider bundle: {adapter}")
    return _current_providers


def set_providers(providers: Providers) -> None:
    """Override the active provider bundle (useful for tests)."""
    global _current_providers
    _current_providers = providers


def reset_providers() -> None:
    """Reset to the default bundle."""
    global _current_providers
    _current_providers = None
