"""Order API endpoints.

Provides endpoints for pricing and placing orders:
- POST /orders/cod-check - COD eligibility of a cart
- POST /orders/shipping-check - shipping quote for a cart
- POST /orders - place an order (idempotent)
- GET /orders - the caller's orders
- GET /orders/{id} - order details and status
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from storefront.api.dependencies import get_current_customer, raise_for_error
from storefront.api.schemas import (
    CartCheckRequest,
    CartItemSchema,
    CodCheckResponse,
    CreateOrderRequest,
    ErrorResponse,
    NonCodItemSchema,
    OrderResponse,
    OrdersListResponse,
    ShippingCheckResponse,
)
from storefront.application.order_service import (
    OrderLineRequest,
    OrderService,
    PricedCart,
    get_order_service,
)
from storefront.domain.value_objects import Customer, PaymentMethod

router = APIRouter(prefix="/orders", tags=["Orders"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_order_service(request_id=request_id)


def to_line_requests(items: list[CartItemSchema]) -> list[OrderLineRequest]:
    return [
        OrderLineRequest(
            product_id=item.product_id,
            quantity=item.quantity,
            size=item.size,
            colour=item.colour,
        )
        for item in items
    ]


async def _price(service: OrderService, items: list[CartItemSchema]) -> PricedCart:
    result = await service.price_cart(to_line_requests(items))
    if not result.success or result.cart is None:
        raise_for_error(result.error_code, result.error, result.details)
    return result.cart


# ============================================================================
# Cart Checks
# ============================================================================


@router.post(
    "/cod-check",
    response_model=CodCheckResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Check COD eligibility",
)
async def cod_check(
    body: CartCheckRequest,
    service: Annotated[OrderService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> CodCheckResponse:
    """Report whether a cart may be paid cash on delivery.

    codFee is the COD-tier fee for the cart when it is eligible and 0
    otherwise.
    """
    priced = await _price(service, body.items)
    return CodCheckResponse(
        cod_eligible=priced.eligibility.overall,
        cod_fee=priced.quote.fee.to_float() if priced.eligibility.overall else 0.0,
        non_cod_items=[NonCodItemSchema(**item) for item in priced.eligibility.non_cod_items()],
    )


@router.post(
    "/shipping-check",
    response_model=ShippingCheckResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Quote shipping",
)
async def shipping_check(
    body: CartCheckRequest,
    service: Annotated[OrderService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> ShippingCheckResponse:
    """Quote the shipping fee for a cart.

    This quote is authoritative; clients only fall back to their own
    calculation when this endpoint cannot be reached.
    """
    priced = await _price(service, body.items)
    return ShippingCheckResponse.from_quote(priced.quote)


# ============================================================================
# Orders
# ============================================================================


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Place order",
    description=(
        "Place an order. COD orders are created as pending; card orders as "
        "pending_payment until the gateway outcome is reconciled. Supports "
        "the Idempotency-Key header."
    ),
)
async def create_order(
    body: CreateOrderRequest,
    service: Annotated[OrderService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> OrderResponse:
    """Place an order for the authenticated customer.

    Raises:
        HTTPException: 400 on validation errors, 409 with ELIGIBILITY_CONFLICT
            when a COD order contains ineligible lines.
    """
    result = await service.create_order(
        customer=customer,
        requests=to_line_requests(body.items),
        shipping_address=body.shipping_address.model_dump(),
        payment_method=PaymentMethod(body.payment_method.value),
        promo_code_id=body.promo_code_id,
        promo_discount_amount=body.promo_discount_amount,
    )
    if not result.success or result.order is None:
        raise_for_error(result.error_code, result.error, result.details)
    return OrderResponse.from_order(result.order)


@router.get(
    "",
    response_model=OrdersListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List orders",
)
async def list_orders(
    service: Annotated[OrderService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> OrdersListResponse:
    orders = await service.list_orders(customer.id)
    return OrdersListResponse(
        items=[OrderResponse.from_order(order) for order in orders],
        total=len(orders),
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get order details",
)
async def get_order(
    order_id: str,
    service: Annotated[OrderService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> OrderResponse:
    """Get one of the caller's orders.

    Raises:
        HTTPException: 404 if the order does not exist or belongs to
            another customer.
    """
    result = await service.get_order(customer.id, order_id)
    if not result.success or result.order is None:
        raise_for_error(result.error_code or "ORDER_NOT_FOUND", result.error)
    return OrderResponse.from_order(result.order)
