from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promo_code import PromoCode
from app.models.promo_code_usage import PromoCodeUsage
from app.schemas.enums import PromoErrorCode
from app.services.discounts import round_money
from app.services.promo_eligibility import CustomerContext, count_usage

logger = logging.getLogger(__name__)


class PromoUsageError(Exception):
    def __init__(self, error: PromoErrorCode, message: str):
        super().__init__(message)
        self.error = error
        self.message = message


class UsageLimitReached(PromoUsageError):
    pass


@dataclass
class UsageResult:
    success: bool
    usage: Optional[PromoCodeUsage] = None
    error: Optional[PromoErrorCode] = None
    message: Optional[str] = None


async def _claim_slot(db: AsyncSession, promo_code_id: int) -> None:
    """
    Atomic increment-if-below-limit on promo_codes.used_count.
    The UPDATE row lock is held until commit, serializing concurrent claims on the same code.
    """
    res = await db.execute(
        update(PromoCode)
        .where(
            PromoCode.id == promo_code_id,
            PromoCode.is_active.is_(True),
            or_(PromoCode.usage_limit.is_(None), PromoCode.used_count < PromoCode.usage_limit),
        )
        .values(used_count=PromoCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        return

    # explain the miss
    row = await db.execute(
        select(PromoCode.is_active, PromoCode.usage_limit).where(PromoCode.id == promo_code_id)
    )
    found = row.first()
    if found is None:
        raise PromoUsageError(PromoErrorCode.CODE_NOT_FOUND, "Promo code no longer exists")
    if not found.is_active:
        raise PromoUsageError(PromoErrorCode.CODE_INACTIVE, "Promo code is no longer active")
    raise UsageLimitReached(PromoErrorCode.USAGE_LIMIT_REACHED, "Promo code usage limit reached")


async def _check_customer_slot(db: AsyncSession, promo_code_id: int, customer: CustomerContext) -> None:
    if not customer.is_identified:
        return

    res = await db.execute(select(PromoCode.usage_per_customer).where(PromoCode.id == promo_code_id))
    per_customer = res.scalar_one_or_none()
    if per_customer is None:
        return

    # runs under the promo row lock taken by _claim_slot
    used = await count_usage(db, promo_code_id, customer)
    if used >= per_customer:
        raise UsageLimitReached(
            PromoErrorCode.USAGE_LIMIT_REACHED,
            "You have reached the usage limit for this promo code",
        )


async def record_usage(
    db: AsyncSession,
    *,
    promo_code_id: int,
    order_id: int,
    customer_id: Optional[int],
    discount_amount: Decimal,
    order_amount: Decimal,
    customer_email: Optional[str] = None,
) -> UsageResult:
    """
    Write the usage record for a confirmed order.

    Atomic: limit checks + counter increment + usage insert happen in one
    transaction. Limit violations roll back and come back as a failed result.
    """
    customer = CustomerContext(customer_id=customer_id, email=customer_email)

    try:
        await _claim_slot(db, promo_code_id)
        await _check_customer_slot(db, promo_code_id, customer)

        usage = PromoCodeUsage(
            promo_code_id=promo_code_id,
            order_id=order_id,
            customer_id=customer_id,
            customer_email=customer.normalized_email,
            discount_amount=round_money(discount_amount),
            order_amount=round_money(order_amount),
        )
        db.add(usage)

        await db.commit()
        await db.refresh(usage)

    except PromoUsageError as e:
        await db.rollback()
        logger.warning(
            "Usage rejected for promo_code_id=%s order_id=%s: %s",
            promo_code_id,
            order_id,
            e.error.value,
        )
        return UsageResult(success=False, error=e.error, message=e.message)

    except Exception:
        await db.rollback()
        raise

    logger.info("Recorded usage of promo_code_id=%s on order_id=%s", promo_code_id, order_id)
    return UsageResult(success=True, usage=usage)


async def list_usage(db: AsyncSession, promo_code_id: int, *, limit: int = 200) -> list[PromoCodeUsage]:
    res = await db.execute(
        select(PromoCodeUsage)
        .where(PromoCodeUsage.promo_code_id == promo_code_id)
        .order_by(PromoCodeUsage.used_at.desc(), PromoCodeUsage.id.desc())
        .limit(limit)
    )
    return list(res.scalars().all())
