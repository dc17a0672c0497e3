from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, String, Text, func, true
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base, BigIntPK, Money


class PricingRule(Base):
    __tablename__ = "pricing_rules"
    __table_args__ = (
        CheckConstraint("rule_type IN ('product','category','global')", name="pricing_rules_rule_type_check"),
        CheckConstraint(
            "discount_type IN ('percentage','fixed_amount')",
            name="pricing_rules_discount_type_check",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # product -> target_id is a product id; category -> target_value is a category tag
    rule_type: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    target_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    minimum_order_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    maximum_discount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_by_admin_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
