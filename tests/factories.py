"""
Builders for test data.

`build_*` return unsaved instances with every column default filled in, so the
pure discount functions can be exercised without a database. `create_*` persist.
"""
from datetime import datetime, timezone
from decimal import Decimal
from itertools import count

from app.models.customer import Customer
from app.models.order import Order
from app.models.pricing_rule import PricingRule
from app.models.promo_code import PromoCode
from app.services.cart import CartLine, CartSnapshot

_ids = count(1)

PROMO_DEFAULTS = dict(
    name="Test promo",
    description=None,
    discount_type="percentage",
    enhanced_type="basic",
    discount_value=Decimal("10"),
    minimum_order_amount=Decimal("0"),
    maximum_discount=None,
    usage_limit=None,
    usage_per_customer=None,
    used_count=0,
    valid_until=None,
    is_active=True,
    category_restrictions=[],
    product_restrictions=[],
    customer_group_restrictions=[],
    first_time_only=False,
    minimum_quantity=None,
    maximum_quantity=None,
    combination_allowed=True,
    stack_with_pricing_rules=True,
    buy_x_quantity=None,
    get_y_quantity=None,
    get_y_discount_percentage=None,
)

RULE_DEFAULTS = dict(
    description=None,
    rule_type="global",
    target_id=None,
    target_value=None,
    discount_type="percentage",
    discount_value=Decimal("10"),
    minimum_order_amount=Decimal("0"),
    maximum_discount=None,
    start_date=None,
    end_date=None,
    is_active=True,
    priority=0,
)


def build_promo(code="SAVE10", **overrides) -> PromoCode:
    fields = {**PROMO_DEFAULTS, **overrides}
    return PromoCode(code=code, **fields)


def build_rule(name="Rule", **overrides) -> PricingRule:
    fields = {**RULE_DEFAULTS, **overrides}
    return PricingRule(name=name, **fields)


def line(product_id, price, qty=1, category=None, tags=()) -> CartLine:
    return CartLine(
        product_id=product_id,
        unit_price=Decimal(str(price)),
        quantity=qty,
        category=category,
        tags=tuple(tags),
    )


def cart(*lines: CartLine) -> CartSnapshot:
    return CartSnapshot(lines=tuple(lines))


async def create_promo(db, code="SAVE10", **overrides) -> PromoCode:
    promo = build_promo(code, **overrides)
    db.add(promo)
    await db.commit()
    await db.refresh(promo)
    return promo


async def create_rule(db, name="Rule", **overrides) -> PricingRule:
    rule = build_rule(name, **overrides)
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def create_customer(db, email=None, **overrides) -> Customer:
    customer = Customer(email=email or f"customer{next(_ids)}@example.com", **overrides)
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


async def create_order(db, *, customer_id=None, customer_email=None, status="confirmed", total="100.00") -> Order:
    order = Order(
        customer_id=customer_id,
        customer_email=customer_email,
        status=status,
        subtotal=Decimal(total),
        total=Decimal(total),
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    return order


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
