from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.pricing_rule import PricingRule
from app.schemas.enums import DiscountType, RuleType
from app.services.promo_eligibility import as_utc

logger = logging.getLogger(__name__)


async def list_active_pricing_rules(db: AsyncSession, as_of: Optional[datetime] = None) -> List[PricingRule]:
    """
    Rules that are switched on and whose window contains `as_of`,
    in evaluation order (priority, then first created).
    """
    as_of = as_utc(as_of) or datetime.now(timezone.utc)

    res = await db.execute(
        select(PricingRule)
        .where(
            and_(
                PricingRule.is_active.is_(True),
                or_(PricingRule.start_date.is_(None), PricingRule.start_date <= as_of),
                or_(PricingRule.end_date.is_(None), PricingRule.end_date >= as_of),
            )
        )
        .order_by(PricingRule.priority.asc(), PricingRule.created_at.asc(), PricingRule.id.asc())
    )
    return list(res.scalars().all())


# -------------------------
# Admin
# -------------------------

async def get_pricing_rule_or_404(db: AsyncSession, rule_id: int) -> PricingRule:
    rule = await db.get(PricingRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Pricing rule not found")
    return rule


async def admin_list_pricing_rules(
    db: AsyncSession,
    *,
    rule_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[PricingRule]:
    stmt = select(PricingRule)
    if rule_type:
        stmt = stmt.where(PricingRule.rule_type == rule_type)
    if is_active is not None:
        stmt = stmt.where(PricingRule.is_active.is_(is_active))
    stmt = stmt.order_by(PricingRule.priority.asc(), PricingRule.created_at.desc()).limit(limit).offset(offset)
    res = await db.execute(stmt)
    return list(res.scalars().all())


def _utc_dates(data: dict) -> dict:
    out = dict(data)
    for key in ("start_date", "end_date"):
        if out.get(key) is not None:
            out[key] = as_utc(out[key])
    return out


async def admin_create_pricing_rule(db: AsyncSession, *, admin_id: int, data: dict) -> PricingRule:
    rule = PricingRule(**_utc_dates(data), created_by_admin_id=admin_id)
    db.add(rule)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="DB constraint failed for pricing rule")

    await db.refresh(rule)
    logger.info("Pricing rule %s created by admin %s", rule.id, admin_id)
    return rule


def _check_rule_consistency(rule: PricingRule) -> None:
    if rule.rule_type == RuleType.product.value and rule.target_id is None:
        raise HTTPException(status_code=400, detail="product rules require target_id")
    if rule.rule_type == RuleType.category.value and not (rule.target_value or "").strip():
        raise HTTPException(status_code=400, detail="category rules require target_value")
    if rule.discount_type == DiscountType.percentage.value and rule.discount_value > 100:
        raise HTTPException(status_code=400, detail="percentage discount_value must be between 0 and 100")
    start, end = as_utc(rule.start_date), as_utc(rule.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")


async def admin_update_pricing_rule(db: AsyncSession, *, rule_id: int, changes: dict) -> PricingRule:
    rule = await get_pricing_rule_or_404(db, rule_id)

    for key, value in _utc_dates(changes).items():
        setattr(rule, key, value)

    try:
        _check_rule_consistency(rule)
    except HTTPException:
        await db.rollback()
        raise

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="DB constraint failed for pricing rule")

    await db.refresh(rule)
    return rule
