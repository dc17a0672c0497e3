from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base, BigIntPK, Money


class PromoCodeUsage(Base):
    """Append-only audit row: one per order a promo code was applied to."""

    __tablename__ = "promo_code_usage"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    promo_code_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("promo_codes.id"),
        nullable=False,
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("orders.id"),
        nullable=False,
        unique=True,
    )

    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )
    # guests are tracked by lower-cased e-mail
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    order_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


Index("ix_promo_code_usage_code_customer", PromoCodeUsage.promo_code_id, PromoCodeUsage.customer_id)
Index("ix_promo_code_usage_code_email", PromoCodeUsage.promo_code_id, PromoCodeUsage.customer_email)
