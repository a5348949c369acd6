"""Quotation aggregate (CQRS): an order-like document with fulfillment groups.

The quotation exclusively owns its fulfillment groups (``shipping``) and
their items. Groups, items, payments and surcharges are JSON documents in
``Text`` fields and are always rewritten whole in a single save:

    shipping[]  → {id, shop_id, type, address, items[], item_ids[],
                   total_item_quantity, shipment_method, invoice,
                   workflow{status, workflow[]}, tracking, tracking_url}
    items[]     → {id, product_id, variant_id, shop_id, quantity,
                   price{amount, currency_code}, subtotal, cancel_reason,
                   workflow{status, workflow[]}}

Invariants:
    - every group's ``item_ids`` equals the ids of its ``items``, in order
    - every group's ``total_item_quantity`` equals the sum of item quantities
    - ``total_item_quantity`` equals the sum over all groups
"""

import json
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from quotations.domain import quotations
from quotations.errors import NotFoundError
from quotations.quotation import items as item_ops
from quotations.quotation.events import QuotationCanceled, QuotationPlaced, QuotationUpdated
from quotations.quotation.money import sum_fixed
from quotations.quotation.workflow import (
    QuotationStatus,
    assert_owner_may_modify,
    push_status,
    roll_up_quotation_status,
)


def _loads(value, default):
    if not value:
        return default
    return json.loads(value) if isinstance(value, str) else value


@quotations.aggregate
class Quotation:
    account_id = Identifier()  # Nullable for anonymous quotations
    shop_id = Identifier(required=True)
    cart_id = Identifier()
    reference_id = String(max_length=100)
    currency_code = String(max_length=3, default="USD")
    email = String(max_length=254)
    preferred_language = String(max_length=10)
    billing_address = Text()  # JSON address dict
    shipping = Text()  # JSON list of fulfillment group dicts
    payments = Text()  # JSON list of authorized payment dicts
    surcharges = Text()  # JSON list of surcharge dicts, tagged with fulfillment_group_id
    discounts = Text()  # JSON list of discount dicts
    custom_fields = Text()  # JSON dict
    anonymous_access_tokens = Text()  # JSON list of {hashed_token, created_at}
    total_item_quantity = Integer(default=0)
    status = String(max_length=100, choices=QuotationStatus, default=QuotationStatus.NEW.value)
    workflow = Text()  # JSON list of every status held, in order
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def groups_track_their_items(self):
        for group in self.fulfillment_groups:
            if group.get("item_ids") != [item["id"] for item in group["items"]]:
                raise ValidationError({"shipping": [f"Fulfillment group {group['id']} item_ids do not match its items"]})
            if group.get("total_item_quantity") != sum(item["quantity"] for item in group["items"]):
                raise ValidationError(
                    {"shipping": [f"Fulfillment group {group['id']} total_item_quantity does not match its items"]}
                )

    @invariant.post
    def total_item_quantity_matches_groups(self):
        expected = sum(group.get("total_item_quantity") or 0 for group in self.fulfillment_groups)
        if (self.total_item_quantity or 0) != expected:
            raise ValidationError({"total_item_quantity": ["Total item quantity must equal the sum over all groups"]})

    # -------------------------------------------------------------------
    # JSON views (fresh copies on every access)
    # -------------------------------------------------------------------
    @property
    def fulfillment_groups(self) -> list[dict]:
        return _loads(self.shipping, [])

    @property
    def payment_records(self) -> list[dict]:
        return _loads(self.payments, [])

    @property
    def surcharge_records(self) -> list[dict]:
        return _loads(self.surcharges, [])

    @property
    def access_tokens(self) -> list[dict]:
        return _loads(self.anonymous_access_tokens, [])

    @property
    def custom_field_values(self) -> dict:
        return _loads(self.custom_fields, {})

    @property
    def billing_address_data(self) -> dict | None:
        return _loads(self.billing_address, None)

    @property
    def workflow_state(self) -> dict:
        return {"status": self.status, "workflow": _loads(self.workflow, [self.status])}

    def group(self, group_id: str) -> dict:
        return item_ops.find_group(self.fulfillment_groups, group_id)

    def as_document(self) -> dict:
        """Plain dict of the whole quotation with JSON fields expanded."""
        return {
            "id": str(self.id),
            "account_id": self.account_id,
            "shop_id": self.shop_id,
            "cart_id": self.cart_id,
            "reference_id": self.reference_id,
            "currency_code": self.currency_code,
            "email": self.email,
            "preferred_language": self.preferred_language,
            "billing_address": self.billing_address_data,
            "shipping": self.fulfillment_groups,
            "payments": self.payment_records,
            "surcharges": self.surcharge_records,
            "discounts": _loads(self.discounts, []),
            "custom_fields": self.custom_field_values,
            "total_item_quantity": self.total_item_quantity,
            "workflow": self.workflow_state,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        quotation_id: str,
        shop_id: str,
        currency_code: str,
        groups: list[dict],
        surcharges: list[dict],
        payments: list[dict],
        account_id: str | None = None,
        cart_id: str | None = None,
        reference_id: str | None = None,
        email: str | None = None,
        billing_address: dict | None = None,
        custom_fields: dict | None = None,
        discounts: list[dict] | None = None,
        access_tokens: list[dict] | None = None,
        preferred_language: str | None = None,
    ):
        """Create a new quotation from fully built and priced groups."""
        now = datetime.now(UTC)
        status = QuotationStatus.NEW.value
        quotation = cls(
            id=quotation_id,
            account_id=account_id,
            shop_id=shop_id,
            cart_id=cart_id,
            reference_id=reference_id,
            currency_code=currency_code,
            email=email,
            preferred_language=preferred_language,
            billing_address=json.dumps(billing_address) if billing_address else None,
            shipping=json.dumps(groups),
            payments=json.dumps(payments),
            surcharges=json.dumps(surcharges),
            discounts=json.dumps(discounts or []),
            custom_fields=json.dumps(custom_fields or {}),
            anonymous_access_tokens=json.dumps(access_tokens or []),
            total_item_quantity=sum(group["total_item_quantity"] for group in groups),
            status=status,
            workflow=json.dumps([status]),
            created_at=now,
            updated_at=now,
        )
        quotation.raise_(
            QuotationPlaced(
                quotation_id=quotation_id,
                shop_id=shop_id,
                account_id=account_id,
                reference_id=reference_id,
                email=email,
                currency_code=currency_code,
                total=sum_fixed(group["invoice"]["total"] for group in groups),
                total_item_quantity=quotation.total_item_quantity,
                fulfillment_group_ids=json.dumps([group["id"] for group in groups]),
                placed_at=now,
            )
        )
        return quotation

    # -------------------------------------------------------------------
    # Actor gating
    # -------------------------------------------------------------------
    def is_owned_by(self, account_id: str | None) -> bool:
        """True when the acting account is the one that placed the quotation."""
        return bool(self.account_id) and account_id is not None and str(self.account_id) == str(account_id)

    def assert_owner_may_modify(self) -> None:
        assert_owner_may_modify("Quotation", self.status)

    # -------------------------------------------------------------------
    # Fulfillment mutations
    # -------------------------------------------------------------------
    def _replace_fulfillment(
        self,
        groups: list[dict],
        change: str,
        updated_by: str | None,
        surcharges: list[dict] | None = None,
        workflow: dict | None = None,
    ) -> datetime:
        now = datetime.now(UTC)
        with atomic_change(self):
            self.shipping = json.dumps(groups)
            self.total_item_quantity = sum(group["total_item_quantity"] for group in groups)
            if surcharges is not None:
                self.surcharges = json.dumps(surcharges)
            if workflow is not None:
                self.status = workflow["status"]
                self.workflow = json.dumps(workflow["workflow"])
            self.updated_at = now

        self.raise_(
            QuotationUpdated(
                quotation_id=str(self.id),
                shop_id=self.shop_id,
                change=change,
                updated_by=updated_by,
                status=self.status,
                total_item_quantity=self.total_item_quantity,
                updated_at=now,
            )
        )
        return now

    def cancel_item(
        self,
        item_id: str,
        cancel_quantity: int,
        reason: str | None = None,
        acting_account_id: str | None = None,
    ) -> str | None:
        """Cancel some or all units of an item; return the remainder item's id.

        Cancels the group once all its items are canceled and the quotation
        once all its groups are.
        """
        owner = self.is_owned_by(acting_account_id)
        if owner:
            self.assert_owner_may_modify()

        change = item_ops.cancel_item(
            self.fulfillment_groups,
            item_id,
            cancel_quantity,
            reason=reason,
            owner_gated=owner,
        )

        workflow = self.workflow_state
        quotation_canceled = roll_up_quotation_status(workflow, change.groups)

        now = self._replace_fulfillment(
            change.groups,
            change="cancel_item",
            updated_by=acting_account_id,
            workflow=workflow if quotation_canceled else None,
        )

        if quotation_canceled:
            self.raise_(
                QuotationCanceled(
                    quotation_id=str(self.id),
                    shop_id=self.shop_id,
                    canceled_by=acting_account_id,
                    canceled_at=now,
                )
            )

        return change.new_item_id

    def apply_fulfillment_change(
        self,
        groups: list[dict],
        surcharges: list[dict],
        change: str,
        updated_by: str | None = None,
    ) -> None:
        """Store recalculated groups and surcharges from split, move or add-group."""
        self._replace_fulfillment(groups, change=change, updated_by=updated_by, surcharges=surcharges)

    def update_fulfillment_group(
        self,
        group_id: str,
        tracking: str | None = None,
        tracking_url: str | None = None,
        status: str | None = None,
        updated_by: str | None = None,
    ) -> bool:
        """Set tracking details and status on one group.

        Returns False, without changing anything, when no given field differs
        from what the group already holds.
        """
        groups = self.fulfillment_groups
        group = next((g for g in groups if str(g["id"]) == str(group_id)), None)
        if group is None:
            raise NotFoundError({"group_id": ["Quotation fulfillment group not found"]})

        changed = False
        if tracking is not None and group.get("tracking") != tracking:
            group["tracking"] = tracking
            changed = True
        if tracking_url is not None and group.get("tracking_url") != tracking_url:
            group["tracking_url"] = tracking_url
            changed = True
        if status is not None:
            changed = push_status(group["workflow"], status) or changed

        if not changed:
            return False

        group["updated_at"] = datetime.now(UTC).isoformat()

        self._replace_fulfillment(groups, change="update_fulfillment_group", updated_by=updated_by)
        return True

    # -------------------------------------------------------------------
    # Details
    # -------------------------------------------------------------------
    def update_details(
        self,
        email: str | None = None,
        custom_fields: dict | None = None,
        status: str | None = None,
        updated_by: str | None = None,
    ) -> bool:
        """Update email, custom fields and status. False when nothing was given."""
        if email is None and custom_fields is None and status is None:
            return False

        now = datetime.now(UTC)
        workflow = self.workflow_state
        if status is not None:
            push_status(workflow, status)

        with atomic_change(self):
            if email is not None:
                self.email = email
            if custom_fields is not None:
                self.custom_fields = json.dumps(custom_fields)
            self.status = workflow["status"]
            self.workflow = json.dumps(workflow["workflow"])
            self.updated_at = now

        self.raise_(
            QuotationUpdated(
                quotation_id=str(self.id),
                shop_id=self.shop_id,
                change="update_details",
                updated_by=updated_by,
                status=self.status,
                total_item_quantity=self.total_item_quantity,
                updated_at=now,
            )
        )
        return True

    def add_access_token(self, record: dict) -> None:
        """Store a hashed anonymous access token."""
        self.anonymous_access_tokens = json.dumps([*self.access_tokens, record])
        self.updated_at = datetime.now(UTC)
