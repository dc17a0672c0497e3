# app/schemas/promo_codes.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.checkout import CartItemIn
from app.schemas.enums import DiscountType, EnhancedType


class _PromoCodeRules(BaseModel):
    """Cross-field invariants shared by create and update payloads."""

    class Config:
        use_enum_values = True

    @model_validator(mode="after")
    def _check_invariants(self):
        discount_type = getattr(self, "discount_type", None)
        discount_value = getattr(self, "discount_value", None)
        if discount_type == DiscountType.percentage and discount_value is not None and discount_value > 100:
            raise ValueError("percentage discount_value must be between 0 and 100")

        usage_limit = getattr(self, "usage_limit", None)
        per_customer = getattr(self, "usage_per_customer", None)
        if usage_limit is not None and per_customer is not None and per_customer > usage_limit:
            raise ValueError("usage_per_customer cannot exceed usage_limit")

        min_qty = getattr(self, "minimum_quantity", None)
        max_qty = getattr(self, "maximum_quantity", None)
        if min_qty is not None and max_qty is not None and min_qty > max_qty:
            raise ValueError("minimum_quantity cannot exceed maximum_quantity")

        if getattr(self, "enhanced_type", None) == EnhancedType.buy_x_get_y:
            if not getattr(self, "buy_x_quantity", None) or not getattr(self, "get_y_quantity", None):
                raise ValueError("buy_x_get_y requires buy_x_quantity and get_y_quantity")
        return self


class PromoCodeCreateIn(_PromoCodeRules):
    code: str = Field(min_length=2, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None

    discount_type: DiscountType
    enhanced_type: EnhancedType = EnhancedType.basic
    discount_value: Decimal = Field(ge=0)

    minimum_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)

    usage_limit: int | None = Field(default=None, ge=1)
    usage_per_customer: int | None = Field(default=None, ge=1)

    valid_until: datetime | None = None
    is_active: bool = True

    category_restrictions: List[str] = Field(default_factory=list)
    product_restrictions: List[str] = Field(default_factory=list)
    customer_group_restrictions: List[str] = Field(default_factory=list)

    first_time_only: bool = False
    minimum_quantity: int | None = Field(default=None, ge=0)
    maximum_quantity: int | None = Field(default=None, ge=1)

    combination_allowed: bool = True
    stack_with_pricing_rules: bool = True

    buy_x_quantity: int | None = Field(default=None, ge=1)
    get_y_quantity: int | None = Field(default=None, ge=1)
    get_y_discount_percentage: Decimal | None = Field(default=None, ge=0, le=100)


class PromoCodeUpdateIn(_PromoCodeRules):
    # code is immutable once issued
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None

    discount_type: DiscountType | None = None
    enhanced_type: EnhancedType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0)

    minimum_order_amount: Decimal | None = Field(default=None, ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)

    usage_limit: int | None = Field(default=None, ge=1)
    usage_per_customer: int | None = Field(default=None, ge=1)

    valid_until: datetime | None = None
    is_active: bool | None = None

    category_restrictions: List[str] | None = None
    product_restrictions: List[str] | None = None
    customer_group_restrictions: List[str] | None = None

    first_time_only: bool | None = None
    minimum_quantity: int | None = Field(default=None, ge=0)
    maximum_quantity: int | None = Field(default=None, ge=1)

    combination_allowed: bool | None = None
    stack_with_pricing_rules: bool | None = None

    buy_x_quantity: int | None = Field(default=None, ge=1)
    get_y_quantity: int | None = Field(default=None, ge=1)
    get_y_discount_percentage: Decimal | None = Field(default=None, ge=0, le=100)


class PromoCodeOut(BaseModel):
    id: int
    code: str
    name: str
    description: str | None

    discount_type: str
    enhanced_type: str
    discount_value: Decimal

    minimum_order_amount: Decimal
    maximum_discount: Decimal | None

    usage_limit: int | None
    usage_per_customer: int | None
    used_count: int

    valid_until: datetime | None
    is_active: bool

    category_restrictions: List[str]
    product_restrictions: List[str]
    customer_group_restrictions: List[str]

    first_time_only: bool
    minimum_quantity: int | None
    maximum_quantity: int | None

    combination_allowed: bool
    stack_with_pricing_rules: bool

    buy_x_quantity: int | None
    get_y_quantity: int | None
    get_y_discount_percentage: Decimal | None

    created_by_admin_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class PromoCodeUsageOut(BaseModel):
    id: int
    promo_code_id: int
    order_id: int
    customer_id: int | None
    customer_email: str | None
    discount_amount: Decimal
    order_amount: Decimal
    used_at: datetime

    class Config:
        from_attributes = True


class PromoCodeSummaryOut(BaseModel):
    """What the storefront is told about a code that validated."""

    id: int
    code: str
    name: str
    description: str | None
    discount_type: str
    enhanced_type: str
    discount_value: Decimal
    minimum_order_amount: Decimal
    combination_allowed: bool
    stack_with_pricing_rules: bool
    buy_x_quantity: int | None
    get_y_quantity: int | None
    get_y_discount_percentage: Decimal | None

    class Config:
        from_attributes = True


class PromoValidateIn(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    cart_items: List[CartItemIn] = Field(default_factory=list)
    subtotal: Decimal | None = Field(default=None, ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    customer_email: str | None = None
    applied_codes: List[str] = Field(default_factory=list)


class PromoValidateOut(BaseModel):
    valid: bool
    promo_code: Optional[PromoCodeSummaryOut] = None
    discount_amount: Decimal | None = None
    free_delivery: bool = False
    error: str | None = None
    message: str | None = None

