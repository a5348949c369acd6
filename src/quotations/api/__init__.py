"""Quotations domain API package."""

from quotations.api.routes import register_exception_handlers, router

__all__ = ["router", "register_exception_handlers"]
