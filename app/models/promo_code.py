# app/models/promo_code.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    false,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base, BigIntPK, JSONType, Money


class PromoCode(Base):
    __tablename__ = "promo_codes"
    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage','fixed_amount')",
            name="promo_codes_discount_type_check",
        ),
        CheckConstraint(
            "enhanced_type IN ('basic','free_delivery','buy_one_get_one','buy_x_get_y',"
            "'category_specific','first_time_customer','loyalty_reward')",
            name="promo_codes_enhanced_type_check",
        ),
        CheckConstraint("discount_value >= 0", name="promo_codes_discount_value_check"),
        CheckConstraint(
            "usage_limit IS NULL OR used_count <= usage_limit",
            name="promo_codes_used_count_check",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    # stored upper-case; lookups compare upper(trim(input))
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    enhanced_type: Mapped[str] = mapped_column(String(32), nullable=False, default="basic")
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)

    minimum_order_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    maximum_discount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_per_customer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    # JSON arrays of identifiers
    category_restrictions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    product_restrictions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    customer_group_restrictions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    first_time_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    minimum_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    maximum_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    combination_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    stack_with_pricing_rules: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    buy_x_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    get_y_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    get_y_discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    created_by_admin_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
