from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import Principal, require_admin
from app.schemas.pricing_rules import PricingRuleCreateIn, PricingRuleOut, PricingRuleUpdateIn
from app.services.pricing_rules import (
    admin_create_pricing_rule,
    admin_list_pricing_rules,
    admin_update_pricing_rule,
    get_pricing_rule_or_404,
    list_active_pricing_rules,
)

router = APIRouter(prefix="/admin/pricing-rules", tags=["Admin - Pricing Rules"])


@router.post("", response_model=PricingRuleOut, status_code=201)
async def create_pricing_rule(
    body: PricingRuleCreateIn,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return await admin_create_pricing_rule(db, admin_id=admin.id, data=body.model_dump())


@router.get("", response_model=list[PricingRuleOut], dependencies=[Depends(require_admin)])
async def list_pricing_rules(
    rule_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await admin_list_pricing_rules(
        db,
        rule_type=rule_type,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )


@router.get("/active", response_model=list[PricingRuleOut], dependencies=[Depends(require_admin)])
async def active_pricing_rules(
    as_of: datetime | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await list_active_pricing_rules(db, as_of)


@router.get("/{rule_id}", response_model=PricingRuleOut, dependencies=[Depends(require_admin)])
async def get_pricing_rule(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_pricing_rule_or_404(db, rule_id)


@router.patch("/{rule_id}", response_model=PricingRuleOut, dependencies=[Depends(require_admin)])
async def update_pricing_rule(
    rule_id: int,
    body: PricingRuleUpdateIn,
    db: AsyncSession = Depends(get_db),
):
    return await admin_update_pricing_rule(db, rule_id=rule_id, changes=body.model_dump(exclude_unset=True))
