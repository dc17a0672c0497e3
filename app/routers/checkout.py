from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import Principal, get_optional_principal
from app.core.security import ROLE_CUSTOMER
from app.schemas.checkout import CheckoutConfirmOut, CheckoutIn, CheckoutQuoteOut, DiscountLineOut
from app.services.cart import CartSnapshot
from app.services.checkout import CheckoutQuote, confirm_checkout, quote_checkout
from app.services.promo_eligibility import CustomerContext, resolve_customer

router = APIRouter(prefix="/checkout", tags=["Checkout"])


async def _customer_for(db: AsyncSession, principal: Principal | None, email: str | None) -> CustomerContext:
    customer_id = principal.id if principal is not None and principal.role == ROLE_CUSTOMER else None
    return await resolve_customer(db, customer_id=customer_id, email=email)


def _quote_fields(quote: CheckoutQuote) -> dict:
    validation = quote.validation
    return {
        "subtotal": quote.subtotal,
        "delivery_fee": quote.delivery_fee,
        "item_discount": quote.summary.item_discount,
        "delivery_discount": quote.summary.delivery_discount,
        "discount_total": quote.summary.total,
        "total": quote.total,
        "breakdown": [
            DiscountLineOut(
                source=ln.source,
                source_id=ln.source_id,
                label=ln.label,
                amount=ln.amount,
                target=ln.target,
            )
            for ln in quote.summary.breakdown
        ],
        "promo_applied": quote.summary.promo_applied,
        "promo_error": validation.error.value if validation is not None and validation.error else None,
        "promo_message": validation.message if validation is not None else None,
    }


@router.post("/quote", response_model=CheckoutQuoteOut)
async def quote(
    payload: CheckoutIn,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
) -> CheckoutQuoteOut:
    customer = await _customer_for(db, principal, payload.customer_email)
    result = await quote_checkout(
        db,
        cart=CartSnapshot.from_items(payload.cart_items),
        customer=customer,
        delivery_fee=payload.delivery_fee,
        promo_code=payload.promo_code,
    )
    return CheckoutQuoteOut(**_quote_fields(result))


@router.post("/confirm", response_model=CheckoutConfirmOut)
async def confirm(
    payload: CheckoutIn,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
) -> CheckoutConfirmOut:
    customer = await _customer_for(db, principal, payload.customer_email)
    result = await confirm_checkout(
        db,
        cart=CartSnapshot.from_items(payload.cart_items),
        customer=customer,
        delivery_fee=payload.delivery_fee,
        promo_code=payload.promo_code,
    )
    return CheckoutConfirmOut(
        **_quote_fields(result.quote),
        order_id=result.order.id,
        status=result.order.status,
        notice=result.notice,
    )
