from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from app.schemas.enums import DiscountType, RuleType


class PricingRuleCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None

    rule_type: RuleType
    target_id: int | None = None
    target_value: str | None = Field(default=None, max_length=255)

    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    minimum_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)

    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    priority: int = 0

    class Config:
        use_enum_values = True

    @model_validator(mode="after")
    def _check_target(self):
        if self.rule_type == RuleType.product and self.target_id is None:
            raise ValueError("product rules require target_id")
        if self.rule_type == RuleType.category and not (self.target_value or "").strip():
            raise ValueError("category rules require target_value")
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError("percentage discount_value must be between 0 and 100")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class PricingRuleUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None

    target_id: int | None = None
    target_value: str | None = Field(default=None, max_length=255)

    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0)
    minimum_order_amount: Decimal | None = Field(default=None, ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)

    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    priority: int | None = None

    class Config:
        use_enum_values = True


class PricingRuleOut(BaseModel):
    id: int
    name: str
    description: str | None

    rule_type: str
    target_id: int | None
    target_value: str | None

    discount_type: str
    discount_value: Decimal
    minimum_order_amount: Decimal
    maximum_discount: Decimal | None

    start_date: datetime | None
    end_date: datetime | None
    is_active: bool
    priority: int

    created_by_admin_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True
