"""Application tests for quotation detail updates."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from quotations.errors import AccessDeniedError
from quotations.quotation.quotation import Quotation
from quotations.quotation.update import UpdateQuotation
from quotations.quotation.workflow import QuotationStatus


class TestUpdateQuotation:
    def test_update_email_and_custom_fields(self, place):
        placed = place().quotation
        current_domain.process(
            UpdateQuotation(quotation_id=placed.id, email="new@example.com", custom_fields=json.dumps({"po": "42"})),
            asynchronous=False,
        )

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        assert quotation.email == "new@example.com"
        assert quotation.custom_field_values == {"po": "42"}

    def test_status_change_is_recorded_in_history(self, place):
        placed = place().quotation
        current_domain.process(
            UpdateQuotation(quotation_id=placed.id, status=QuotationStatus.PROCESSING.value),
            asynchronous=False,
        )

        quotation = current_domain.repository_for(Quotation).get(placed.id)
        assert quotation.workflow_state["workflow"] == ["new", QuotationStatus.PROCESSING.value]

    def test_unknown_status_is_rejected(self, place):
        placed = place().quotation
        with pytest.raises(ValidationError):
            current_domain.process(UpdateQuotation(quotation_id=placed.id, status="bogus"), asynchronous=False)

    def test_requires_update_permission(self, place, providers):
        placed = place().quotation
        providers.permissions.deny("update")
        with pytest.raises(AccessDeniedError):
            current_domain.process(UpdateQuotation(quotation_id=placed.id, email="x@example.com"), asynchronous=False)
