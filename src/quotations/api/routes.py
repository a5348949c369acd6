"""FastAPI routes for the Quotations domain.

Thin adapters that translate HTTP requests into domain commands and
queries. No business logic, just schema→command→response translation.
"""

import json
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from quotations.api.schemas import (
    AddFulfillmentGroupRequest,
    CancelItemRequest,
    MoveItemsRequest,
    PlaceQuotationRequest,
    QuotationListResponse,
    QuotationMutationResponse,
    QuotationResponse,
    SplitItemRequest,
    SummaryResponse,
    UpdateFulfillmentGroupRequest,
    UpdateQuotationRequest,
)
from quotations.errors import AccessDeniedError, PaymentFailedError, ServerError
from quotations.quotation.cancellation import CancelQuotationItem
from quotations.quotation.groups import AddQuotationFulfillmentGroup, UpdateQuotationFulfillmentGroup
from quotations.quotation.moving import MoveQuotationItems
from quotations.quotation.persistence import QuotationResult
from quotations.quotation.placement import PlaceQuotation
from quotations.quotation.queries import (
    QuotationFilters,
    list_quotations,
    quotation_by_id,
    quotation_by_reference_id,
    quotations_by_account_id,
)
from quotations.quotation.quotation import Quotation
from quotations.quotation.splitting import SplitQuotationItem
from quotations.quotation.summary import quotation_display_status, quotation_summary
from quotations.quotation.update import UpdateQuotation

router = APIRouter(prefix="/quotations", tags=["quotations"])


def _quotation_response(quotation: Quotation) -> QuotationResponse:
    document = quotation.as_document()
    return QuotationResponse(
        id=document["id"],
        shop_id=document["shop_id"],
        account_id=document["account_id"],
        reference_id=document["reference_id"],
        email=document["email"],
        currency_code=document["currency_code"],
        status=quotation.status,
        display_status=quotation_display_status(quotation, quotation.preferred_language),
        total_item_quantity=quotation.total_item_quantity,
        shipping=document["shipping"],
        payments=document["payments"],
        surcharges=document["surcharges"],
        custom_fields=document["custom_fields"],
        summary=SummaryResponse(**asdict(quotation_summary(quotation))),
        created_at=quotation.created_at,
        updated_at=quotation.updated_at,
    )


def _mutation_response(result: QuotationResult) -> QuotationMutationResponse:
    return QuotationMutationResponse(
        quotation=_quotation_response(result.quotation),
        token=result.token,
        new_item_id=result.new_item_id,
        new_fulfillment_group_id=result.new_fulfillment_group_id,
    )


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------
@router.post("", status_code=201, response_model=QuotationMutationResponse)
async def place_quotation(body: PlaceQuotationRequest) -> QuotationMutationResponse:
    """Place a quotation. Anonymous placements get a one-time access token back."""
    command = PlaceQuotation(
        shop_id=body.shop_id,
        currency_code=body.currency_code,
        email=body.email,
        fulfillment_groups=json.dumps([group.model_dump() for group in body.fulfillment_groups]),
        payments=json.dumps([payment.model_dump() for payment in body.payments]),
        billing_address=json.dumps(body.billing_address) if body.billing_address else None,
        cart_id=body.cart_id,
        custom_fields=json.dumps(body.custom_fields) if body.custom_fields is not None else None,
        preferred_language=body.preferred_language,
        account_id=body.account_id,
        user_id=body.user_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


# ---------------------------------------------------------------------------
# Item mutations
# ---------------------------------------------------------------------------
@router.post("/{quotation_id}/items/{item_id}/cancel", response_model=QuotationMutationResponse)
async def cancel_item(quotation_id: str, item_id: str, body: CancelItemRequest) -> QuotationMutationResponse:
    command = CancelQuotationItem(
        quotation_id=quotation_id,
        item_id=item_id,
        cancel_quantity=body.cancel_quantity,
        reason=body.reason,
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


@router.post("/{quotation_id}/items/{item_id}/split", response_model=QuotationMutationResponse)
async def split_item(quotation_id: str, item_id: str, body: SplitItemRequest) -> QuotationMutationResponse:
    command = SplitQuotationItem(
        quotation_id=quotation_id,
        item_id=item_id,
        new_item_quantity=body.new_item_quantity,
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


@router.post("/{quotation_id}/items/move", response_model=QuotationMutationResponse)
async def move_items(quotation_id: str, body: MoveItemsRequest) -> QuotationMutationResponse:
    command = MoveQuotationItems(
        quotation_id=quotation_id,
        item_ids=json.dumps(body.item_ids),
        from_group_id=body.from_group_id,
        to_group_id=body.to_group_id,
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


# ---------------------------------------------------------------------------
# Fulfillment groups
# ---------------------------------------------------------------------------
@router.post("/{quotation_id}/fulfillment-groups", status_code=201, response_model=QuotationMutationResponse)
async def add_fulfillment_group(quotation_id: str, body: AddFulfillmentGroupRequest) -> QuotationMutationResponse:
    command = AddQuotationFulfillmentGroup(
        quotation_id=quotation_id,
        fulfillment_group=json.dumps(body.fulfillment_group.model_dump()),
        move_item_ids=json.dumps(body.move_item_ids),
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


@router.put("/{quotation_id}/fulfillment-groups/{group_id}", response_model=QuotationMutationResponse)
async def update_fulfillment_group(
    quotation_id: str, group_id: str, body: UpdateFulfillmentGroupRequest
) -> QuotationMutationResponse:
    command = UpdateQuotationFulfillmentGroup(
        quotation_id=quotation_id,
        group_id=group_id,
        tracking=body.tracking,
        tracking_url=body.tracking_url,
        status=body.status,
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


@router.put("/{quotation_id}", response_model=QuotationMutationResponse)
async def update_quotation(quotation_id: str, body: UpdateQuotationRequest) -> QuotationMutationResponse:
    command = UpdateQuotation(
        quotation_id=quotation_id,
        email=body.email,
        custom_fields=json.dumps(body.custom_fields) if body.custom_fields is not None else None,
        status=body.status,
        acting_account_id=body.acting_account_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return _mutation_response(result)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@router.get("", response_model=QuotationListResponse)
async def get_quotations(
    shop_id: list[str] = Query(...),
    status: str | None = None,
    fulfillment_status: list[str] = Query(default=[]),
    payment_status: list[str] = Query(default=[]),
    search: str | None = None,
    created_at_from: datetime | None = None,
    created_at_to: datetime | None = None,
) -> QuotationListResponse:
    filters = QuotationFilters(
        created_at_from=created_at_from,
        created_at_to=created_at_to,
        status=status,
        fulfillment_status=tuple(fulfillment_status),
        payment_status=tuple(payment_status),
        search=search,
    )
    results = list_quotations(shop_id, filters)
    return QuotationListResponse(quotations=[_quotation_response(q) for q in results], total=len(results))


@router.get("/accounts/{account_id}", response_model=QuotationListResponse)
async def get_account_quotations(
    account_id: str,
    shop_id: list[str] = Query(...),
    status: list[str] = Query(default=[]),
) -> QuotationListResponse:
    results = quotations_by_account_id(account_id, shop_id, statuses=status or None)
    return QuotationListResponse(quotations=[_quotation_response(q) for q in results], total=len(results))


@router.get("/by-reference/{reference_id}", response_model=QuotationResponse)
async def get_quotation_by_reference(reference_id: str, shop_id: str, token: str | None = None) -> QuotationResponse:
    return _quotation_response(quotation_by_reference_id(reference_id, shop_id, token))


@router.get("/{quotation_id}", response_model=QuotationResponse)
async def get_quotation(quotation_id: str, shop_id: str, token: str | None = None) -> QuotationResponse:
    return _quotation_response(quotation_by_id(quotation_id, shop_id, token))


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
def _error_body(exc: Exception, default_code: str) -> dict:
    messages = getattr(exc, "messages", None) or {"error": [str(exc)]}
    return {"code": getattr(exc, "code", default_code), "messages": messages}


def register_exception_handlers(app: FastAPI) -> None:
    """Map quotation error kinds onto HTTP status codes."""

    @app.exception_handler(PaymentFailedError)
    async def payment_failed(request: Request, exc: PaymentFailedError):
        return JSONResponse(status_code=402, content=_error_body(exc, "payment-failed"))

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=_error_body(exc, "invalid-param"))

    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError):
        return JSONResponse(status_code=404, content=_error_body(exc, "not-found"))

    @app.exception_handler(AccessDeniedError)
    async def access_denied(request: Request, exc: AccessDeniedError):
        return JSONResponse(status_code=403, content=_error_body(exc, "access-denied"))

    @app.exception_handler(ServerError)
    async def server_error(request: Request, exc: ServerError):
        return JSONResponse(status_code=500, content=_error_body(exc, "server-error"))
