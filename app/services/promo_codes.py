# app/services/promo_codes.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promo_code import PromoCode
from app.schemas.enums import DiscountType, EnhancedType, PromoErrorCode
from app.services.cart import CartSnapshot
from app.services.discounts import DiscountResult, compute_discount, to_decimal
from app.services.promo_eligibility import (
    CustomerContext,
    PromoIneligible,
    as_utc,
    check_eligibility,
    normalize_code,
)

logger = logging.getLogger(__name__)


@dataclass
class PromoValidation:
    valid: bool
    promo_code: Optional[PromoCode] = None
    discount: Optional[DiscountResult] = None
    error: Optional[PromoErrorCode] = None
    message: Optional[str] = None

    @property
    def discount_amount(self) -> Optional[Decimal]:
        return self.discount.amount if self.discount is not None else None

    @property
    def free_delivery(self) -> bool:
        return self.promo_code is not None and self.promo_code.enhanced_type == EnhancedType.free_delivery.value


async def validate_promo_code(
    db: AsyncSession,
    *,
    code: str,
    cart: CartSnapshot,
    customer: CustomerContext,
    subtotal: Optional[Decimal] = None,
    delivery_fee: Decimal = Decimal("0"),
    applied_codes: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> PromoValidation:
    """
    Check a customer-entered code against the cart and price it.

    Never records usage: a customer may validate the same code any number of
    times before checking out.

    When cart lines are sent the subtotal is always derived from them; the
    caller's `subtotal` is only used for an item-less check.
    """
    if cart.lines or subtotal is None:
        subtotal = cart.subtotal
    subtotal = to_decimal(subtotal)

    try:
        promo = await check_eligibility(
            db,
            code=code,
            cart=cart,
            subtotal=subtotal,
            customer=customer,
            applied_codes=applied_codes,
            now=now,
        )
    except PromoIneligible as e:
        logger.info("Promo code %r rejected: %s", normalize_code(code), e.error.value)
        return PromoValidation(valid=False, error=e.error, message=e.message)

    discount = compute_discount(promo, cart, subtotal, delivery_fee)
    return PromoValidation(
        valid=True,
        promo_code=promo,
        discount=discount,
        message="Promo code applied successfully",
    )


# -------------------------
# Admin
# -------------------------

async def get_promo_code_or_404(db: AsyncSession, promo_code_id: int) -> PromoCode:
    promo = await db.get(PromoCode, promo_code_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return promo


async def admin_list_promo_codes(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    enhanced_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[PromoCode]:
    stmt = select(PromoCode)

    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                PromoCode.code.ilike(like),
                PromoCode.name.ilike(like),
                PromoCode.description.ilike(like),
            )
        )
    if enhanced_type:
        stmt = stmt.where(PromoCode.enhanced_type == enhanced_type)
    if is_active is not None:
        stmt = stmt.where(PromoCode.is_active.is_(is_active))

    stmt = stmt.order_by(PromoCode.created_at.desc(), PromoCode.id.desc()).limit(limit).offset(offset)
    res = await db.execute(stmt)
    return list(res.scalars().all())


def _check_promo_consistency(promo: PromoCode) -> None:
    if promo.discount_type == DiscountType.percentage.value and to_decimal(promo.discount_value) > 100:
        raise HTTPException(status_code=400, detail="percentage discount_value must be between 0 and 100")
    if (
        promo.usage_limit is not None
        and promo.usage_per_customer is not None
        and promo.usage_per_customer > promo.usage_limit
    ):
        raise HTTPException(status_code=400, detail="usage_per_customer cannot exceed usage_limit")
    if promo.usage_limit is not None and (promo.used_count or 0) > promo.usage_limit:
        raise HTTPException(status_code=400, detail="usage_limit is below the number of recorded uses")
    if promo.enhanced_type == EnhancedType.buy_x_get_y.value and not (promo.buy_x_quantity and promo.get_y_quantity):
        raise HTTPException(status_code=400, detail="buy_x_get_y requires buy_x_quantity and get_y_quantity")


async def admin_create_promo_code(db: AsyncSession, *, admin_id: int, data: dict) -> PromoCode:
    data = dict(data)
    data["code"] = normalize_code(data["code"])
    if data.get("valid_until") is not None:
        data["valid_until"] = as_utc(data["valid_until"])

    exists = await db.execute(select(PromoCode.id).where(func.upper(PromoCode.code) == data["code"]))
    if exists.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Promo code already exists")

    promo = PromoCode(**data, used_count=0, created_by_admin_id=admin_id)
    db.add(promo)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Promo code already exists")

    await db.refresh(promo)
    logger.info("Promo code %s created by admin %s", promo.code, admin_id)
    return promo


async def admin_update_promo_code(db: AsyncSession, *, promo_code_id: int, changes: dict) -> PromoCode:
    promo = await get_promo_code_or_404(db, promo_code_id)

    for key, value in changes.items():
        if key == "valid_until" and value is not None:
            value = as_utc(value)
        setattr(promo, key, value)

    try:
        _check_promo_consistency(promo)
    except HTTPException:
        await db.rollback()
        raise

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="DB constraint failed for promo code")

    await db.refresh(promo)
    return promo
