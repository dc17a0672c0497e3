# app/routers/admin_promo_codes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import Principal, require_admin
from app.schemas.promo_codes import (
    PromoCodeCreateIn,
    PromoCodeOut,
    PromoCodeUpdateIn,
    PromoCodeUsageOut,
)
from app.services.promo_codes import (
    admin_create_promo_code,
    admin_list_promo_codes,
    admin_update_promo_code,
    get_promo_code_or_404,
)
from app.services.promo_usage import list_usage

router = APIRouter(prefix="/admin/promo-codes", tags=["Admin - Promo Codes"])


@router.post("", response_model=PromoCodeOut, status_code=201)
async def create_promo_code(
    body: PromoCodeCreateIn,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return await admin_create_promo_code(db, admin_id=admin.id, data=body.model_dump())


@router.get("", response_model=list[PromoCodeOut])
async def list_promo_codes(
    search: str | None = Query(default=None),
    enhanced_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return await admin_list_promo_codes(
        db,
        search=search,
        enhanced_type=enhanced_type,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )


@router.get("/{promo_code_id}", response_model=PromoCodeOut)
async def get_promo_code(
    promo_code_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return await get_promo_code_or_404(db, promo_code_id)


@router.patch("/{promo_code_id}", response_model=PromoCodeOut)
async def update_promo_code(
    promo_code_id: int,
    body: PromoCodeUpdateIn,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    # codes are deactivated, never deleted: usage rows keep pointing at them
    return await admin_update_promo_code(
        db,
        promo_code_id=promo_code_id,
        changes=body.model_dump(exclude_unset=True),
    )


@router.get("/{promo_code_id}/usage", response_model=list[PromoCodeUsageOut])
async def promo_code_usage(
    promo_code_id: int,
    limit: int = Query(default=200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    await get_promo_code_or_404(db, promo_code_id)
    return await list_usage(db, promo_code_id, limit=limit)
