"""Promo code API endpoints.

- POST /promo-codes/validate - validate a code against a cart
- GET /promo-codes/available - codes the caller can redeem
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from storefront.api.dependencies import get_current_customer, raise_for_error
from storefront.api.schemas import (
    AppliedPromoSchema,
    AvailablePromoSchema,
    AvailablePromosResponse,
    ErrorResponse,
    PromoValidateRequest,
    PromoValidateResponse,
)
from storefront.application.promo_service import PromoCartItem, PromoService, get_promo_service
from storefront.domain.value_objects import Customer

router = APIRouter(prefix="/promo-codes", tags=["Promo Codes"])


def get_service(request: Request) -> PromoService:
    request_id = getattr(request.state, "request_id", None)
    return get_promo_service(request_id=request_id)


@router.post(
    "/validate",
    response_model=PromoValidateResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Validate promo code",
)
async def validate_promo_code(
    body: PromoValidateRequest,
    service: Annotated[PromoService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> PromoValidateResponse:
    """Validate a promo code and compute its discount for the cart.

    The order endpoint evaluates the code again, so this result is only
    what the customer is shown.
    """
    result = await service.validate_code(
        customer,
        body.code,
        [PromoCartItem(product_id=i.product_id, quantity=i.quantity, price=i.price) for i in body.cart_items],
        body.cart_total,
    )
    if not result.success or result.application is None:
        raise_for_error(result.error_code, result.error, result.details)
    return PromoValidateResponse(promo_code=AppliedPromoSchema.from_application(result.application))


@router.get(
    "/available",
    response_model=AvailablePromosResponse,
    summary="List available promo codes",
)
async def list_available_promo_codes(
    service: Annotated[PromoService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> AvailablePromosResponse:
    promos = await service.list_available(customer)
    return AvailablePromosResponse(promo_codes=[AvailablePromoSchema.from_promo(p) for p in promos])
