from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import Principal, get_optional_principal
from app.core.security import ROLE_CUSTOMER
from app.schemas.promo_codes import PromoCodeSummaryOut, PromoValidateIn, PromoValidateOut
from app.services.cart import CartSnapshot
from app.services.promo_codes import validate_promo_code
from app.services.promo_eligibility import resolve_customer

router = APIRouter(prefix="/promo-codes", tags=["Promo Codes"])


@router.post("/validate", response_model=PromoValidateOut)
async def validate_code(
    payload: PromoValidateIn,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
) -> PromoValidateOut:
    # validation failures are a normal answer (200 + valid=false), not an HTTP error
    customer_id = principal.id if principal is not None and principal.role == ROLE_CUSTOMER else None
    customer = await resolve_customer(db, customer_id=customer_id, email=payload.customer_email)

    result = await validate_promo_code(
        db,
        code=payload.code,
        cart=CartSnapshot.from_items(payload.cart_items),
        customer=customer,
        subtotal=payload.subtotal,
        delivery_fee=payload.delivery_fee,
        applied_codes=payload.applied_codes,
    )

    if not result.valid:
        return PromoValidateOut(valid=False, error=result.error.value, message=result.message)

    return PromoValidateOut(
        valid=True,
        promo_code=PromoCodeSummaryOut.model_validate(result.promo_code),
        discount_amount=result.discount_amount,
        free_delivery=result.free_delivery,
        message=result.message,
    )
