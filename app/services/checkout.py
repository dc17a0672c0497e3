from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.enums import OrderStatus
from app.services.cart import CartSnapshot
from app.services.discount_stacking import DiscountSummary, resolve_discounts
from app.services.discounts import SOURCE_PROMO, ZERO, round_money, to_decimal
from app.services.pricing_rules import list_active_pricing_rules
from app.services.promo_codes import PromoValidation, validate_promo_code
from app.services.promo_eligibility import CustomerContext
from app.services.promo_usage import record_usage

logger = logging.getLogger(__name__)


@dataclass
class CheckoutQuote:
    subtotal: Decimal
    delivery_fee: Decimal
    summary: DiscountSummary
    validation: Optional[PromoValidation] = None

    @property
    def promo_code(self):
        if self.validation is not None and self.validation.valid:
            return self.validation.promo_code
        return None

    @property
    def promo_discount(self) -> Decimal:
        return sum((ln.amount for ln in self.summary.breakdown if ln.source == SOURCE_PROMO), ZERO)

    @property
    def total(self) -> Decimal:
        return round_money(max(self.subtotal + self.delivery_fee - self.summary.total, ZERO))


@dataclass
class CheckoutConfirmation:
    order: Order
    quote: CheckoutQuote
    notice: Optional[str] = None


async def quote_checkout(
    db: AsyncSession,
    *,
    cart: CartSnapshot,
    customer: CustomerContext,
    delivery_fee: Decimal = ZERO,
    promo_code: Optional[str] = None,
    applied_codes: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> CheckoutQuote:
    subtotal = cart.subtotal
    delivery_fee = to_decimal(delivery_fee)

    validation = None
    if promo_code:
        validation = await validate_promo_code(
            db,
            code=promo_code,
            cart=cart,
            customer=customer,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            applied_codes=applied_codes,
            now=now,
        )

    rules = await list_active_pricing_rules(db, now)
    promo = validation.promo_code if validation is not None and validation.valid else None
    summary = resolve_discounts(cart, promo=promo, pricing_rules=rules, delivery_fee=delivery_fee)

    return CheckoutQuote(subtotal=subtotal, delivery_fee=delivery_fee, summary=summary, validation=validation)


def _apply_quote(order: Order, quote: CheckoutQuote) -> None:
    order.subtotal = round_money(quote.subtotal)
    order.delivery_fee = round_money(quote.delivery_fee)
    order.discount_amount = round_money(quote.summary.item_discount)
    order.delivery_discount = round_money(quote.summary.delivery_discount)
    order.total = quote.total


async def _cancel_order(db: AsyncSession, order_id: int) -> None:
    await db.rollback()
    order = await db.get(Order, order_id, populate_existing=True)
    order.status = OrderStatus.cancelled.value
    await db.commit()


async def confirm_checkout(
    db: AsyncSession,
    *,
    cart: CartSnapshot,
    customer: CustomerContext,
    delivery_fee: Decimal = ZERO,
    promo_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckoutConfirmation:
    """
    Price the cart, write the order, then record promo usage atomically.

    If the code validated but its usage can no longer be recorded (limit reached
    by a concurrent checkout, code switched off), the order goes through without
    the code and the caller gets a notice instead of an error.
    """
    quote = await quote_checkout(
        db,
        cart=cart,
        customer=customer,
        delivery_fee=delivery_fee,
        promo_code=promo_code,
        now=now,
    )

    promo = quote.promo_code
    promo_id = promo.id if promo is not None else None
    promo_label = promo.code if promo is not None else None

    try:
        order = Order(
            customer_id=customer.customer_id,
            customer_email=customer.normalized_email,
            status=OrderStatus.pending.value,
        )
        _apply_quote(order, quote)
        order.items = [
            OrderItem(
                product_id=line.product_id,
                category=line.category,
                tags=list(line.tags),
                unit_price=line.unit_price,
                quantity=line.quantity,
            )
            for line in cart.lines
        ]
        db.add(order)
        await db.commit()
        order_id = order.id
    except Exception:
        await db.rollback()
        raise

    if promo_id is not None and quote.promo_discount <= ZERO:
        # a code that saves nothing on this order does not use up a slot
        logger.info("Promo code %s gives no discount on order %s; not recorded", promo_label, order_id)
        promo_id = None

    notice = None
    if promo_id is not None:
        try:
            usage = await record_usage(
                db,
                promo_code_id=promo_id,
                order_id=order_id,
                customer_id=customer.customer_id,
                customer_email=customer.normalized_email,
                discount_amount=quote.promo_discount,
                order_amount=quote.subtotal,
            )
        except Exception:
            logger.exception("Recording promo usage failed, cancelling order %s", order_id)
            await _cancel_order(db, order_id)
            raise

        if not usage.success:
            logger.warning(
                "Re-pricing order %s without promo code %s (%s)",
                order_id,
                promo_label,
                usage.error.value if usage.error else "unknown",
            )
            rules = await list_active_pricing_rules(db, now)
            quote = CheckoutQuote(
                subtotal=quote.subtotal,
                delivery_fee=quote.delivery_fee,
                summary=resolve_discounts(cart, pricing_rules=rules, delivery_fee=quote.delivery_fee),
                validation=PromoValidation(valid=False, error=usage.error, message=usage.message),
            )
            promo_id = None
            notice = f"Promo code {promo_label} could no longer be applied: {usage.message}"

    try:
        # record_usage commits or rolls back; reload the order either way
        order = await db.get(Order, order_id, populate_existing=True)
        _apply_quote(order, quote)
        order.promo_code_id = promo_id
        order.status = OrderStatus.confirmed.value
        await db.commit()
        await db.refresh(order)
    except Exception:
        await db.rollback()
        raise

    logger.info("Order %s confirmed, total=%s, discount=%s", order.id, order.total, quote.summary.total)
    return CheckoutConfirmation(order=order, quote=quote, notice=notice)
