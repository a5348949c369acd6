"""Pydantic request/response models for the Quotations API.

API schemas are separate from Protean commands (anti-corruption pattern).
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------
class ItemInput(BaseModel):
    product_id: str
    variant_id: str
    quantity: int = Field(..., ge=1)
    price: float | None = None
    attributes: list[dict] = Field(default_factory=list)


class FulfillmentGroupInput(BaseModel):
    shop_id: str | None = None
    type: str = "shipping"
    items: list[ItemInput] = Field(default_factory=list)
    selected_fulfillment_method_id: str | None = None
    total_price: float | None = None
    data: dict | None = Field(None, description="Carries shipping_address for shipping groups")


class PaymentInput(BaseModel):
    method: str = Field(..., examples=["iou_example"])
    amount: float = Field(..., ge=0)
    data: dict | None = None
    billing_address: dict | None = None


class PlaceQuotationRequest(BaseModel):
    shop_id: str
    currency_code: str = Field(..., min_length=3, max_length=3, examples=["USD"])
    email: str | None = None
    fulfillment_groups: list[FulfillmentGroupInput] = Field(..., min_length=1)
    payments: list[PaymentInput] = Field(default_factory=list)
    billing_address: dict | None = None
    cart_id: str | None = None
    custom_fields: dict | None = None
    preferred_language: str | None = None
    account_id: str | None = None
    user_id: str | None = None


class CancelItemRequest(BaseModel):
    cancel_quantity: int = Field(..., ge=1)
    reason: str | None = Field(None, max_length=500)
    acting_account_id: str | None = None


class SplitItemRequest(BaseModel):
    new_item_quantity: int = Field(..., ge=1)
    acting_account_id: str | None = None


class MoveItemsRequest(BaseModel):
    item_ids: list[str] = Field(..., min_length=1)
    from_group_id: str
    to_group_id: str
    acting_account_id: str | None = None


class AddFulfillmentGroupRequest(BaseModel):
    fulfillment_group: FulfillmentGroupInput
    move_item_ids: list[str] = Field(default_factory=list)
    acting_account_id: str | None = None


class UpdateFulfillmentGroupRequest(BaseModel):
    tracking: str | None = None
    tracking_url: str | None = None
    status: str | None = None
    acting_account_id: str | None = None


class UpdateQuotationRequest(BaseModel):
    email: str | None = None
    custom_fields: dict | None = None
    status: str | None = None
    acting_account_id: str | None = None


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------
class MoneyResponse(BaseModel):
    amount: float
    currency_code: str


class SummaryResponse(BaseModel):
    discount_total: MoneyResponse
    effective_tax_rate: float
    fulfillment_total: MoneyResponse
    item_total: MoneyResponse
    surcharge_total: MoneyResponse
    taxable_amount: MoneyResponse
    tax_total: MoneyResponse
    total: MoneyResponse


class QuotationResponse(BaseModel):
    id: str
    shop_id: str
    account_id: str | None = None
    reference_id: str | None = None
    email: str | None = None
    currency_code: str
    status: str
    display_status: str
    total_item_quantity: int
    shipping: list[dict]
    payments: list[dict]
    surcharges: list[dict]
    custom_fields: dict
    summary: SummaryResponse
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QuotationMutationResponse(BaseModel):
    quotation: QuotationResponse
    token: str | None = None
    new_item_id: str | None = None
    new_fulfillment_group_id: str | None = None


class QuotationListResponse(BaseModel):
    quotations: list[QuotationResponse]
    total: int
