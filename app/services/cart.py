from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional


def normalize_tag(value: Any) -> str:
    return str(value).strip().lower()


def _field(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def restriction_set(values: Optional[Iterable[Any]]) -> frozenset[str]:
    """Restriction columns are JSON arrays; None / empty mean "no restriction"."""
    if not values:
        return frozenset()
    return frozenset(normalize_tag(v) for v in values if v is not None and str(v).strip())


@dataclass(frozen=True)
class CartLine:
    product_id: int
    unit_price: Decimal
    quantity: int
    category: Optional[str] = None
    tags: tuple[str, ...] = ()

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def matches(self, categories: frozenset[str], products: frozenset[str]) -> bool:
        # category restrictions match the category or any flavour tag, case-insensitive exact
        if categories:
            if self.category is not None and normalize_tag(self.category) in categories:
                return True
            if any(normalize_tag(t) in categories for t in self.tags):
                return True
        if products and normalize_tag(self.product_id) in products:
            return True
        return False


@dataclass(frozen=True)
class CartSnapshot:
    lines: tuple[CartLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_items(cls, items: Iterable[Any]) -> "CartSnapshot":
        """Build from request items (pydantic models, ORM rows or plain dicts)."""
        lines = []
        for item in items:
            lines.append(
                CartLine(
                    product_id=int(_field(item, "product_id")),
                    unit_price=Decimal(str(_field(item, "unit_price"))),
                    quantity=int(_field(item, "quantity")),
                    category=_field(item, "category"),
                    tags=tuple(_field(item, "tags") or ()),
                )
            )
        return cls(lines=tuple(lines))

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def eligible_lines(self, categories: frozenset[str], products: frozenset[str]) -> list[CartLine]:
        if not categories and not products:
            return list(self.lines)
        return [line for line in self.lines if line.matches(categories, products)]
