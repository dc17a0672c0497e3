from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from app.schemas.enums import RuleType
from app.services.cart import CartLine, CartSnapshot, normalize_tag
from app.services.discounts import (
    SOURCE_RULE,
    TARGET_DELIVERY,
    TARGET_ITEMS,
    ZERO,
    DiscountLine,
    apply_rate,
    compute_discount,
    round_money,
    to_decimal,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class DiscountSummary:
    item_discount: Decimal = ZERO
    delivery_discount: Decimal = ZERO
    breakdown: list[DiscountLine] = field(default_factory=list)
    promo_applied: bool = False
    pricing_rule_ids: list[int] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return self.item_discount + self.delivery_discount


def _created_key(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def rule_sort_key(rule: Any) -> tuple:
    # lower priority first; equal priority -> first created wins
    return (rule.priority or 0, _created_key(rule.created_at), rule.id or 0)


def rule_matches_line(rule: Any, line: CartLine) -> bool:
    if rule.rule_type == RuleType.global_.value:
        return True
    if rule.rule_type == RuleType.product.value:
        return rule.target_id is not None and int(rule.target_id) == int(line.product_id)
    if rule.rule_type == RuleType.category.value:
        if not rule.target_value:
            return False
        target = normalize_tag(rule.target_value)
        if line.category is not None and normalize_tag(line.category) == target:
            return True
        return any(normalize_tag(t) == target for t in line.tags)
    return False


def apply_pricing_rules(rules: Iterable[Any], cart: CartSnapshot) -> list[DiscountLine]:
    """
    Each cart line is claimed by at most one rule: the first matching rule in
    priority order. A rule whose order minimum is not met claims nothing.
    """
    subtotal = cart.subtotal
    claimed: set[int] = set()
    out: list[DiscountLine] = []

    for rule in sorted(rules, key=rule_sort_key):
        if subtotal < to_decimal(rule.minimum_order_amount):
            continue

        base = ZERO
        for idx, line in enumerate(cart.lines):
            if idx in claimed or not rule_matches_line(rule, line):
                continue
            claimed.add(idx)
            base += line.line_total

        if base <= ZERO:
            continue

        amount = round_money(apply_rate(base, rule.discount_type, rule.discount_value, rule.maximum_discount))
        if amount > ZERO:
            out.append(
                DiscountLine(
                    source=SOURCE_RULE,
                    source_id=rule.id,
                    label=rule.name,
                    amount=amount,
                    target=TARGET_ITEMS,
                )
            )

    return out


def resolve_discounts(
    cart: CartSnapshot,
    *,
    promo: Any = None,
    pricing_rules: Iterable[Any] = (),
    delivery_fee: Any = ZERO,
    subtotal: Any = None,
) -> DiscountSummary:
    """
    Combine a (validated) promo code with the active pricing rules.

    combination_allowed=False or stack_with_pricing_rules=False -> the code is applied alone.
    No code -> pricing rules only.
    """
    subtotal = to_decimal(cart.subtotal if subtotal is None else subtotal)
    lines: list[DiscountLine] = []

    use_rules = promo is None or (promo.combination_allowed and promo.stack_with_pricing_rules)
    if use_rules:
        lines.extend(apply_pricing_rules(pricing_rules, cart))

    if promo is not None:
        lines.extend(compute_discount(promo, cart, subtotal, delivery_fee).breakdown)

    summary = DiscountSummary(promo_applied=promo is not None)

    # item discounts can never take the order below zero
    remaining_items = max(subtotal, ZERO)
    remaining_delivery = max(to_decimal(delivery_fee), ZERO)

    for line in lines:
        if line.target == TARGET_DELIVERY:
            line.amount = min(line.amount, remaining_delivery)
            remaining_delivery -= line.amount
            summary.delivery_discount += line.amount
        else:
            line.amount = min(line.amount, remaining_items)
            remaining_items -= line.amount
            summary.item_discount += line.amount

        if line.amount > ZERO:
            summary.breakdown.append(line)
            if line.source == SOURCE_RULE:
                summary.pricing_rule_ids.append(line.source_id)

    return summary
