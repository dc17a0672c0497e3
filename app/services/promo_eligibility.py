from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.order import Order
from app.models.promo_code import PromoCode
from app.models.promo_code_usage import PromoCodeUsage
from app.schemas.enums import EnhancedType, OrderStatus, PromoErrorCode
from app.services.cart import CartSnapshot, restriction_set
from app.services.discounts import buy_x_get_y_terms, eligible_lines_for, promo_restrictions, to_decimal

logger = logging.getLogger(__name__)


class PromoIneligible(Exception):
    def __init__(self, error: PromoErrorCode, message: str):
        super().__init__(message)
        self.error = error
        self.message = message


@dataclass(frozen=True)
class CustomerContext:
    customer_id: Optional[int] = None
    email: Optional[str] = None
    customer_group: Optional[str] = None
    is_registered: bool = False

    @property
    def normalized_email(self) -> Optional[str]:
        if not self.email or not self.email.strip():
            return None
        return self.email.strip().lower()

    @property
    def is_identified(self) -> bool:
        return self.customer_id is not None or self.normalized_email is not None


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def resolve_customer(
    db: AsyncSession,
    *,
    customer_id: Optional[int],
    email: Optional[str],
) -> CustomerContext:
    """Registered customers are looked up; guests are identified by e-mail only."""
    if customer_id is None:
        return CustomerContext(email=email)

    customer = await db.get(Customer, customer_id)
    if customer is None:
        return CustomerContext(customer_id=customer_id, email=email)

    return CustomerContext(
        customer_id=customer.id,
        email=email or customer.email,
        customer_group=customer.customer_group,
        is_registered=bool(customer.is_active),
    )


async def find_promo_code(db: AsyncSession, code: str) -> Optional[PromoCode]:
    normalized = normalize_code(code)
    if not normalized:
        return None
    res = await db.execute(select(PromoCode).where(func.upper(PromoCode.code) == normalized))
    return res.scalar_one_or_none()


def _usage_customer_filter(customer: CustomerContext):
    if customer.customer_id is not None:
        return PromoCodeUsage.customer_id == customer.customer_id
    return func.lower(PromoCodeUsage.customer_email) == customer.normalized_email


async def count_usage(
    db: AsyncSession,
    promo_code_id: int,
    customer: Optional[CustomerContext] = None,
) -> int:
    stmt = select(func.count(PromoCodeUsage.id)).where(PromoCodeUsage.promo_code_id == promo_code_id)
    if customer is not None:
        stmt = stmt.where(_usage_customer_filter(customer))
    res = await db.execute(stmt)
    return int(res.scalar_one())


async def count_prior_orders(db: AsyncSession, customer: CustomerContext) -> int:
    filters = []
    if customer.customer_id is not None:
        filters.append(Order.customer_id == customer.customer_id)
    if customer.normalized_email is not None:
        filters.append(func.lower(Order.customer_email) == customer.normalized_email)

    res = await db.execute(
        select(func.count(Order.id)).where(
            Order.status == OrderStatus.confirmed.value,
            or_(*filters),
        )
    )
    return int(res.scalar_one())


# -------------------------
# Individual checks
# -------------------------

def check_not_expired(promo: PromoCode, now: datetime) -> None:
    valid_until = as_utc(promo.valid_until)
    if valid_until is not None and valid_until < now:
        raise PromoIneligible(PromoErrorCode.CODE_EXPIRED, "Promo code has expired")


def check_minimum(promo: PromoCode, subtotal: Decimal) -> None:
    minimum = to_decimal(promo.minimum_order_amount)
    if subtotal < minimum:
        raise PromoIneligible(
            PromoErrorCode.MINIMUM_NOT_MET,
            f"Minimum order amount of {minimum} required",
        )


def check_quantity(promo: PromoCode, cart: CartSnapshot) -> None:
    count = cart.item_count
    if promo.minimum_quantity is not None and count < promo.minimum_quantity:
        raise PromoIneligible(
            PromoErrorCode.QUANTITY_OUT_OF_RANGE,
            f"Add {promo.minimum_quantity - count} more items to use this promo code",
        )
    if promo.maximum_quantity is not None and count > promo.maximum_quantity:
        raise PromoIneligible(
            PromoErrorCode.QUANTITY_OUT_OF_RANGE,
            f"This promo code applies to at most {promo.maximum_quantity} items",
        )

    if promo.enhanced_type in (EnhancedType.buy_x_get_y.value, EnhancedType.buy_one_get_one.value):
        categories, products = promo_restrictions(promo)
        lines = eligible_lines_for(promo, cart)
        if (categories or products) and not lines:
            # nothing matches at all: check_restrictions reports it
            return

        buy_x, _, _ = buy_x_get_y_terms(promo)
        units = sum(line.quantity for line in lines)
        if units < buy_x:
            raise PromoIneligible(
                PromoErrorCode.QUANTITY_OUT_OF_RANGE,
                f"Add {buy_x - units} more items to qualify for this promotion",
            )


async def check_first_time(db: AsyncSession, promo: PromoCode, customer: CustomerContext) -> None:
    if not (promo.first_time_only or promo.enhanced_type == EnhancedType.first_time_customer.value):
        return
    if not customer.is_identified:
        raise PromoIneligible(
            PromoErrorCode.NOT_FIRST_TIME,
            "Customer information required for first-time customer promo",
        )
    if await count_prior_orders(db, customer) > 0:
        raise PromoIneligible(
            PromoErrorCode.NOT_FIRST_TIME,
            "This promo code is only for first-time customers",
        )


def check_customer(promo: PromoCode, customer: CustomerContext) -> None:
    if promo.enhanced_type == EnhancedType.loyalty_reward.value and not customer.is_registered:
        raise PromoIneligible(
            PromoErrorCode.CUSTOMER_NOT_ELIGIBLE,
            "Customer login required for loyalty rewards",
        )

    groups = restriction_set(promo.customer_group_restrictions)
    if groups:
        group = (customer.customer_group or "").strip().lower()
        if group not in groups:
            raise PromoIneligible(
                PromoErrorCode.CUSTOMER_NOT_ELIGIBLE,
                "This promo code is not available for your account",
            )


def check_restrictions(promo: PromoCode, cart: CartSnapshot) -> None:
    categories, products = restriction_set(promo.category_restrictions), restriction_set(promo.product_restrictions)
    if not categories and not products:
        return
    if not cart.eligible_lines(categories, products):
        raise PromoIneligible(
            PromoErrorCode.NO_ELIGIBLE_ITEMS,
            "No eligible items in cart for this promotion",
        )


async def check_usage_limits(db: AsyncSession, promo: PromoCode, customer: CustomerContext) -> None:
    if promo.usage_limit is not None:
        used = await count_usage(db, promo.id)
        if used >= promo.usage_limit:
            raise PromoIneligible(
                PromoErrorCode.USAGE_LIMIT_REACHED,
                "Promo code usage limit reached",
            )

    if promo.usage_per_customer is not None and customer.is_identified:
        used = await count_usage(db, promo.id, customer)
        if used >= promo.usage_per_customer:
            raise PromoIneligible(
                PromoErrorCode.USAGE_LIMIT_REACHED,
                "You have reached the usage limit for this promo code",
            )


async def check_eligibility(
    db: AsyncSession,
    *,
    code: str,
    cart: CartSnapshot,
    subtotal: Decimal,
    customer: CustomerContext,
    applied_codes: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> PromoCode:
    """
    Run the eligibility checks in order and return the promo code, or raise
    PromoIneligible for the first one that fails. Read-only.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    normalized = normalize_code(code)

    if normalized in {normalize_code(c) for c in applied_codes}:
        raise PromoIneligible(PromoErrorCode.ALREADY_APPLIED, "Promo code is already applied to this cart")

    promo = await find_promo_code(db, normalized)
    if promo is None:
        raise PromoIneligible(PromoErrorCode.CODE_NOT_FOUND, "Invalid promo code")

    # an expired code reports CODE_EXPIRED whatever its other fields say
    check_not_expired(promo, now)
    if not promo.is_active:
        raise PromoIneligible(PromoErrorCode.CODE_NOT_FOUND, "Invalid promo code")

    check_minimum(promo, subtotal)
    check_quantity(promo, cart)
    await check_first_time(db, promo, customer)
    check_customer(promo, customer)
    check_restrictions(promo, cart)
    await check_usage_limits(db, promo, customer)

    return promo
