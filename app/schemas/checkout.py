# app/schemas/checkout.py
from __future__ import annotations

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class CartItemIn(BaseModel):
    product_id: int
    category: str | None = None
    tags: List[str] = Field(default_factory=list)  # flavour names
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1, le=1000)


class CheckoutIn(BaseModel):
    cart_items: List[CartItemIn] = Field(min_length=1)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    promo_code: str | None = None
    customer_email: str | None = None


class DiscountLineOut(BaseModel):
    source: str  # "promo_code" | "pricing_rule"
    source_id: int | None
    label: str
    amount: Decimal
    target: str  # "items" | "delivery"


class CheckoutQuoteOut(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    item_discount: Decimal
    delivery_discount: Decimal
    discount_total: Decimal
    total: Decimal
    breakdown: List[DiscountLineOut] = Field(default_factory=list)

    promo_applied: bool = False
    promo_error: str | None = None
    promo_message: str | None = None


class CheckoutConfirmOut(CheckoutQuoteOut):
    order_id: int
    status: str
    # set when the code validated but could not be recorded at confirmation time
    notice: str | None = None
