"""Typed error kinds raised by quotation operations.

Each class carries a stable ``code`` and a protean-style ``messages`` dict
keyed by the failing field, so the API layer can surface it verbatim.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class NotFoundError(ObjectNotFoundError):
    """Quotation, fulfillment group, item, shop or cart is absent."""

    code = "not-found"


class InvalidParameterError(ValidationError):
    """Cross-field input problem (quantity too large, empty group, id mismatch)."""

    code = "invalid-param"


class InvalidStateError(ValidationError):
    """Status gate violation or an unavailable fulfillment method."""

    code = "invalid"


class PaymentFailedError(ValidationError):
    """Payment total mismatch, disabled method or authorization failure."""

    code = "payment-failed"


class AccessDeniedError(Exception):
    code = "access-denied"

    def __init__(self, messages: dict):
        self.messages = messages
        super().__init__(messages)


class ServerError(Exception):
    """The persisted update had no effect even though every check passed."""

    code = "server-error"

    def __init__(self, messages: dict):
        self.messages = messages
        super().__init__(messages)
