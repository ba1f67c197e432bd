"""API schemas for the storefront checkout API.

Pydantic models for request/response validation and serialization.
Order amounts travel as minor units; the cart check endpoints keep the
storefront's decimal camelCase shape.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storefront.domain.entities import Order, PromoCode
from storefront.domain.fees import FeeQuote
from storefront.domain.promotions import PromoApplication
from storefront.domain.value_objects import Money


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in minor units (fils)")
    currency: str = Field(default="AED", description="Currency code")

    @classmethod
    def from_money(cls, money: Money) -> "PriceSchema":
        return cls(amount=money.amount_cents, currency=money.currency)


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class PaymentMethodEnum(str, Enum):
    """Payment methods accepted at checkout."""

    COD = "cod"
    CARD = "card"


class OrderStatusEnum(str, Enum):
    """Order status values."""

    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELLED = "payment_cancelled"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# ============================================================================
# Cart Schemas
# ============================================================================


class CartItemSchema(BaseModel):
    """Cart line summary sent by the client."""

    product_id: str = Field(..., min_length=1, description="Catalog product ID")
    quantity: int = Field(..., ge=1, description="Units")
    size: str | None = Field(default=None, description="Selected size")
    colour: str | None = Field(default=None, description="Selected colour")


class CartCheckRequest(BaseModel):
    """Cart summaries for an eligibility or shipping check."""

    items: list[CartItemSchema] = Field(default_factory=list)


class NonCodItemSchema(BaseModel):
    """A cart line that cannot be paid cash on delivery."""

    product_id: str
    name: str
    size: str
    colour: str
    quantity: int
    reason: str


class CodCheckResponse(BaseModel):
    """COD eligibility of a cart."""

    model_config = ConfigDict(populate_by_name=True)

    cod_eligible: bool = Field(..., alias="codEligible")
    cod_fee: float = Field(..., alias="codFee")
    non_cod_items: list[NonCodItemSchema] = Field(default_factory=list, alias="nonCodItems")


class ShippingCheckResponse(BaseModel):
    """Shipping quote for a cart, in major currency units."""

    model_config = ConfigDict(populate_by_name=True)

    subtotal: float
    shipping_fee: float = Field(..., alias="shippingFee")
    total: float
    message: str
    all_cod_eligible: bool = Field(..., alias="allCODEligible")

    @classmethod
    def from_quote(cls, quote: FeeQuote) -> "ShippingCheckResponse":
        return cls(
            subtotal=quote.subtotal.to_float(),
            shipping_fee=quote.fee.to_float(),
            total=quote.total.to_float(),
            message=quote.message,
            all_cod_eligible=quote.all_cod_eligible,
        )


# ============================================================================
# Order Schemas
# ============================================================================


class ShippingAddressSchema(BaseModel):
    """Shipping address as submitted.

    Required fields are checked by the domain so that every missing
    field is reported together.
    """

    full_name: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    country: str | None = None


class CreateOrderRequest(BaseModel):
    """Request to place an order."""

    items: list[CartItemSchema] = Field(default_factory=list)
    shipping_address: ShippingAddressSchema
    payment_method: PaymentMethodEnum
    promo_code_id: str | None = Field(default=None, description="Promo code to redeem")
    promo_discount_amount: float | None = Field(
        default=None, ge=0, description="Discount shown to the customer"
    )


class OrderItemSchema(BaseModel):
    """Item snapshot in an order."""

    product_id: str
    product_name: str
    quantity: int
    size: str
    colour: str
    unit_price: PriceSchema
    line_total: PriceSchema


class OrderStatusHistorySchema(BaseModel):
    """Status history entry."""

    from_status: str | None
    to_status: str
    reason: str | None
    at: datetime


class OrderResponse(BaseModel):
    """Order details."""

    id: str
    customer_id: str
    status: OrderStatusEnum
    payment_method: PaymentMethodEnum
    items: list[OrderItemSchema]
    shipping_address: dict[str, str | None]
    subtotal: PriceSchema
    shipping_fee: PriceSchema
    discount: PriceSchema
    total: PriceSchema
    promo_code_id: str | None = None
    payment_intent_id: str | None = None
    payment_failure_reason: str | None = None
    status_history: list[OrderStatusHistorySchema] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    paid_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            customer_id=order.customer_id,
            status=OrderStatusEnum(order.status.value),
            payment_method=PaymentMethodEnum(order.payment_method.value),
            items=[
                OrderItemSchema(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    size=item.size,
                    colour=item.colour,
                    unit_price=PriceSchema.from_money(item.unit_price),
                    line_total=PriceSchema.from_money(item.line_total),
                )
                for item in order.items
            ],
            shipping_address=order.shipping_address.to_dict(),
            subtotal=PriceSchema.from_money(order.subtotal),
            shipping_fee=PriceSchema.from_money(order.shipping_fee),
            discount=PriceSchema.from_money(order.discount),
            total=PriceSchema.from_money(order.total),
            promo_code_id=order.promo_code_id,
            payment_intent_id=order.payment_intent_id,
            payment_failure_reason=order.payment_failure_reason,
            status_history=[OrderStatusHistorySchema(**entry) for entry in order.status_history],
            created_at=order.created_at,
            updated_at=order.updated_at,
            paid_at=order.paid_at,
        )


class OrdersListResponse(BaseModel):
    """A customer's orders, newest first."""

    items: list[OrderResponse]
    total: int


# ============================================================================
# Payment Schemas
# ============================================================================


class PaymentStatusRequest(BaseModel):
    """Failed or cancelled gateway attempt reported by the client."""

    model_config = ConfigDict(populate_by_name=True)

    payment_status: str = Field(..., alias="paymentStatus", description="failed or cancelled")
    reason: str | None = Field(default=None, max_length=500)


class PaymentStatusResponse(BaseModel):
    """Order status after recording a payment outcome."""

    order_id: str
    status: OrderStatusEnum
    changed: bool


class PaymentIntentCreateRequest(BaseModel):
    """Request to start a gateway payment for an order."""

    order_id: str = Field(..., min_length=1)


class PaymentIntentResponse(BaseModel):
    """Created gateway payment intent."""

    payment_intent_id: str
    order_id: str
    redirect_url: str | None
    amount: PriceSchema
    status: str


class PaymentVerifyResponse(BaseModel):
    """Result of checking an intent with the gateway."""

    payment_intent_id: str
    order_id: str
    gateway_status: str
    order_status: OrderStatusEnum
    paid: bool


# ============================================================================
# Promo Code Schemas
# ============================================================================


class PromoCartItemSchema(BaseModel):
    """Cart item sent with a promo validation."""

    product_id: str
    quantity: int = Field(default=1, ge=1)
    price: float | None = Field(default=None, ge=0)


class PromoValidateRequest(BaseModel):
    """Request to validate a promo code against a cart."""

    code: str = Field(..., min_length=1, max_length=64)
    cart_items: list[PromoCartItemSchema] = Field(default_factory=list)
    cart_total: float = Field(..., ge=0, description="Cart subtotal before shipping")


class AppliedPromoSchema(BaseModel):
    """A promo code as applied to the submitted cart."""

    id: str
    code: str
    description: str
    discount_amount: float
    cart_total: float
    final_total: float

    @classmethod
    def from_application(cls, application: PromoApplication) -> "AppliedPromoSchema":
        return cls(
            id=application.promo_id,
            code=application.code,
            description=application.description,
            discount_amount=application.discount.to_float(),
            cart_total=application.subtotal.to_float(),
            final_total=application.subtotal.subtract_floor_zero(application.discount).to_float(),
        )


class PromoValidateResponse(BaseModel):
    """Successful promo validation."""

    promo_code: AppliedPromoSchema


class AvailablePromoSchema(BaseModel):
    """A promo code the customer can redeem."""

    id: str
    code: str
    description: str
    percent_off: float | None = None
    flat_off: float | None = None
    max_off: float | None = None
    min_purchase: float | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_promo(cls, promo: PromoCode) -> "AvailablePromoSchema":
        def amount(money: Money | None) -> float | None:
            return money.to_float() if money is not None else None

        return cls(
            id=promo.id,
            code=promo.code,
            description=promo.description,
            percent_off=float(promo.percent_off) if promo.percent_off is not None else None,
            flat_off=amount(promo.flat_off),
            max_off=amount(promo.max_off),
            min_purchase=amount(promo.min_purchase),
            expires_at=promo.expires_at,
        )


class AvailablePromosResponse(BaseModel):
    """Promo codes available to the caller."""

    promo_codes: list[AvailablePromoSchema]
