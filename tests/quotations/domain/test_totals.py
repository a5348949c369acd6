"""Tests for group totals recalculation with fake pricing providers."""

import threading

import pytest
import structlog
from quotations.errors import InvalidStateError
from quotations.providers.fake_adapter import FakeRateQuoteProvider, FakeSurchargeProvider, FakeTaxProvider
from quotations.providers.port import ProviderError, RateQuote
from quotations.quotation.items import refresh_group
from quotations.quotation.totals import (
    METHOD_UNAVAILABLE_MESSAGE,
    GroupTotals,
    fan_out,
    merge_surcharges,
    recalculate_group,
    recalculate_groups,
)
from quotations.quotation.workflow import new_workflow
from quotations.utils.logging import add_context, clear_context


def _group(group_id="g1", quantity=2, price=10.0, is_taxable=False, method_id="standard"):
    return refresh_group(
        {
            "id": group_id,
            "shop_id": "shop-001",
            "type": "shipping",
            "items": [
                {
                    "id": f"{group_id}-i1",
                    "product_id": "prod-1",
                    "variant_id": "var-1",
                    "shop_id": "shop-001",
                    "quantity": quantity,
                    "price": {"amount": price, "currency_code": "USD"},
                    "subtotal": price * quantity,
                    "is_taxable": is_taxable,
                    "workflow": new_workflow(),
                }
            ],
            "shipment_method": {"id": method_id} if method_id else None,
            "invoice": None,
            "workflow": new_workflow(),
        }
    )


class TestRecalculateGroup:
    def test_invoice_without_tax_or_surcharges(self, providers, quotation_context):
        result = recalculate_group(_group(), quotation_context, providers)

        invoice = result.group["invoice"]
        assert invoice["subtotal"] == 20.0
        assert invoice["shipping"] == 5.0
        assert invoice["taxes"] == 0.0
        assert invoice["surcharges"] == 0.0
        assert invoice["total"] == 25.0
        assert invoice["effective_tax_rate"] == 0.0
        assert result.group["shipment_method"]["rate"] == 5.0
        assert result.group["shipment_method"]["currency_code"] == "USD"

    def test_input_group_is_not_modified(self, providers, quotation_context):
        group = _group()
        recalculate_group(group, quotation_context, providers)
        assert group["invoice"] is None

    def test_discount_reduces_total(self, providers, quotation_context):
        result = recalculate_group(_group(), quotation_context, providers, discount_total=3.0)
        assert result.group["invoice"]["discounts"] == 3.0
        assert result.group["invoice"]["total"] == 22.0

    def test_total_never_goes_negative(self, providers, quotation_context):
        result = recalculate_group(_group(), quotation_context, providers, discount_total=500.0)
        assert result.group["invoice"]["total"] == 0.0

    def test_surcharges_are_tagged_with_group(self, providers, quotation_context):
        providers.surcharges.append(FakeSurchargeProvider([{"amount": 1.5, "message": "Fuel"}]))
        result = recalculate_group(_group(), quotation_context, providers)

        assert result.surcharge_total == 1.5
        assert result.surcharges[0]["fulfillment_group_id"] == "g1"
        assert result.group["invoice"]["total"] == 26.5

    def test_taxes(self, providers, quotation_context):
        providers.tax = FakeTaxProvider(rate=0.1)
        result = recalculate_group(_group(is_taxable=True), quotation_context, providers)

        invoice = result.group["invoice"]
        assert invoice["taxes"] == 2.0
        assert invoice["taxable_amount"] == 20.0
        assert invoice["effective_tax_rate"] == 0.1
        assert invoice["total"] == 27.0

    def test_selected_method_must_still_be_offered(self, providers, quotation_context):
        with pytest.raises(InvalidStateError) as exc:
            recalculate_group(_group(method_id="express"), quotation_context, providers)
        assert METHOD_UNAVAILABLE_MESSAGE in str(exc.value)

    def test_error_quote_is_rejected(self, providers, quotation_context):
        providers.rate_quotes.fail_with("Carrier offline")
        with pytest.raises(InvalidStateError) as exc:
            recalculate_group(_group(), quotation_context, providers)
        assert "Carrier offline" in str(exc.value)

    def test_provider_failure_becomes_invalid_state(self, providers, quotation_context):
        class BrokenRates(FakeRateQuoteProvider):
            def quote(self, common_quotation):
                raise ProviderError("timeout")

        providers.rate_quotes = BrokenRates()
        with pytest.raises(InvalidStateError) as exc:
            recalculate_group(_group(), quotation_context, providers)
        assert "timeout" in str(exc.value)

    def test_method_price_comes_from_fresh_quote(self, providers, quotation_context):
        providers.rate_quotes.configure([FakeRateQuoteProvider.standard_quote(rate=7.25, handling=1.0)])
        result = recalculate_group(_group(), quotation_context, providers)
        assert result.group["shipment_method"]["rate"] == 7.25
        assert result.group["shipment_method"]["handling"] == 1.0
        assert result.group["invoice"]["total"] == 27.25

    def test_expected_total_mismatch(self, providers, quotation_context):
        with pytest.raises(InvalidStateError) as exc:
            recalculate_group(_group(), quotation_context, providers, expected_group_total=24.0)
        assert "Client provided total price 24.0" in str(exc.value)

    def test_expected_total_match(self, providers, quotation_context):
        result = recalculate_group(_group(), quotation_context, providers, expected_group_total=25.0)
        assert result.group["invoice"]["total"] == 25.0


class TestRecalculateGroups:
    def test_only_listed_groups_are_recalculated(self, providers, quotation_context):
        groups = [_group("g1"), _group("g2"), _group("g3")]
        updated, results = recalculate_groups(groups, ["g1", "g3"], quotation_context, providers)

        assert [group["id"] for group in updated] == ["g1", "g2", "g3"]
        assert updated[0]["invoice"]["total"] == 25.0
        assert updated[1]["invoice"] is None
        assert sorted(call["fulfillment_group_id"] for call in providers.rate_quotes.calls) == ["g1", "g3"]
        assert len(results) == 2

    def test_existing_discount_is_kept(self, providers, quotation_context):
        group = _group()
        group["invoice"] = {"discounts": 4.0}
        updated, _ = recalculate_groups([group], ["g1"], quotation_context, providers)
        assert updated[0]["invoice"]["discounts"] == 4.0
        assert updated[0]["invoice"]["total"] == 21.0

    def test_one_failing_group_fails_the_batch(self, providers, quotation_context):
        groups = [_group("g1"), _group("g2", method_id="express")]
        with pytest.raises(InvalidStateError):
            recalculate_groups(groups, ["g1", "g2"], quotation_context, providers)


class TestFanOut:
    def test_results_keep_input_order(self):
        assert fan_out(lambda value: value * 2, [3, 1, 2]) == [6, 2, 4]

    def test_runs_concurrently(self):
        barrier = threading.Barrier(3, timeout=5)
        assert fan_out(lambda value: barrier.wait() is not None and value, [1, 2, 3]) == [1, 2, 3]

    def test_bound_log_context_reaches_workers(self):
        add_context(request_id="req-42")
        try:
            seen = fan_out(lambda value: structlog.contextvars.get_contextvars().get("request_id"), [1, 2])
        finally:
            clear_context()
        assert seen == ["req-42", "req-42"]

    def test_first_error_propagates(self):
        def explode(value):
            if value == 2:
                raise ValueError("boom")
            return value

        with pytest.raises(ValueError):
            fan_out(explode, [1, 2, 3])


class TestMergeSurcharges:
    def test_replaces_only_recalculated_groups(self):
        existing = [
            {"id": "s1", "fulfillment_group_id": "g1", "amount": 1.0},
            {"id": "s2", "fulfillment_group_id": "g2", "amount": 2.0},
        ]
        results = [GroupTotals(group={"id": "g1"}, surcharges=({"id": "s3", "fulfillment_group_id": "g1"},))]
        assert [surcharge["id"] for surcharge in merge_surcharges(existing, results)] == ["s2", "s3"]
