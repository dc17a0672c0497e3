from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from app.schemas.enums import DiscountType, EnhancedType
from app.services.cart import CartLine, CartSnapshot, restriction_set

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

SOURCE_PROMO = "promo_code"
SOURCE_RULE = "pricing_rule"

TARGET_ITEMS = "items"
TARGET_DELIVERY = "delivery"


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class DiscountLine:
    source: str  # "promo_code" | "pricing_rule"
    source_id: Optional[int]
    label: str
    amount: Decimal
    target: str = TARGET_ITEMS  # "items" | "delivery"


@dataclass
class DiscountResult:
    amount: Decimal
    breakdown: list[DiscountLine] = field(default_factory=list)


def apply_rate(
    base: Decimal,
    discount_type: str,
    discount_value: Any,
    maximum_discount: Any = None,
) -> Decimal:
    """Percentage or fixed discount over `base`, capped at `base` and `maximum_discount`."""
    base = to_decimal(base)
    if base <= ZERO:
        return ZERO

    value = to_decimal(discount_value)
    if discount_type == DiscountType.percentage.value:
        amount = base * value / HUNDRED
    else:
        amount = value

    amount = min(amount, base)
    if maximum_discount is not None:
        amount = min(amount, to_decimal(maximum_discount))
    return max(amount, ZERO)


def promo_restrictions(promo: Any) -> tuple[frozenset[str], frozenset[str]]:
    return restriction_set(promo.category_restrictions), restriction_set(promo.product_restrictions)


def eligible_lines_for(promo: Any, cart: CartSnapshot) -> list[CartLine]:
    categories, products = promo_restrictions(promo)
    return cart.eligible_lines(categories, products)


def _has_restrictions(promo: Any) -> bool:
    categories, products = promo_restrictions(promo)
    return bool(categories or products)


def buy_x_get_y_terms(promo: Any) -> tuple[int, int, Decimal]:
    buy_x = int(promo.buy_x_quantity or 1)
    get_y = int(promo.get_y_quantity or 1)
    pct = promo.get_y_discount_percentage
    return buy_x, get_y, HUNDRED if pct is None else to_decimal(pct)


def discounted_unit_count(promo: Any, units: int) -> int:
    buy_x, get_y, _ = buy_x_get_y_terms(promo)
    if promo.enhanced_type == EnhancedType.buy_one_get_one.value:
        # the cheaper unit of every (buy + get) group
        return (units // (buy_x + get_y)) * get_y
    # whole multiples of buy_x only; leftovers earn nothing
    return min((units // buy_x) * get_y, units)


def _buy_x_get_y_amount(promo: Any, lines: list[CartLine]) -> Decimal:
    units = sum(line.quantity for line in lines)
    free_units = discounted_unit_count(promo, units)
    if free_units <= 0:
        return ZERO

    _, _, pct = buy_x_get_y_terms(promo)

    # units are ranked by price descending; the cheapest ones are the discounted ones
    amount = ZERO
    remaining = free_units
    for line in sorted(lines, key=lambda ln: ln.unit_price):
        if remaining <= 0:
            break
        take = min(line.quantity, remaining)
        amount += line.unit_price * take * pct / HUNDRED
        remaining -= take
    return amount


def compute_discount(
    promo: Any,
    cart: CartSnapshot,
    subtotal: Any = None,
    delivery_fee: Any = ZERO,
) -> DiscountResult:
    """
    Discount a promo code earns on a cart. Eligibility is assumed to have been checked.

    Item discounts are computed over the eligible lines when the code carries
    category/product restrictions, otherwise over the cart subtotal; free delivery
    waives the delivery fee instead.
    """
    subtotal = to_decimal(cart.subtotal if subtotal is None else subtotal)
    delivery_fee = to_decimal(delivery_fee)
    enhanced = promo.enhanced_type or EnhancedType.basic.value

    target = TARGET_ITEMS
    if enhanced == EnhancedType.free_delivery.value:
        target = TARGET_DELIVERY
        amount = delivery_fee
        if promo.maximum_discount is not None:
            amount = min(amount, to_decimal(promo.maximum_discount))
        ceiling = delivery_fee
    elif enhanced in (EnhancedType.buy_x_get_y.value, EnhancedType.buy_one_get_one.value):
        amount = _buy_x_get_y_amount(promo, eligible_lines_for(promo, cart))
        if promo.maximum_discount is not None:
            amount = min(amount, to_decimal(promo.maximum_discount))
        ceiling = subtotal
    else:
        # basic, category_specific, first_time_customer, loyalty_reward share the arithmetic
        if enhanced == EnhancedType.category_specific.value or _has_restrictions(promo):
            base = sum((ln.line_total for ln in eligible_lines_for(promo, cart)), ZERO)
        else:
            base = subtotal
        amount = apply_rate(base, promo.discount_type, promo.discount_value, promo.maximum_discount)
        ceiling = subtotal

    amount = round_money(min(max(amount, ZERO), max(ceiling, ZERO)))

    line = DiscountLine(
        source=SOURCE_PROMO,
        source_id=getattr(promo, "id", None),
        label=f"Promo code {promo.code}",
        amount=amount,
        target=target,
    )
    return DiscountResult(amount=amount, breakdown=[line] if amount > ZERO else [])
