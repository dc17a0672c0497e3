"""
Discount arithmetic: percentage/fixed amounts, caps, restricted bases,
buy-X-get-Y unit selection and free delivery.
"""
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from app.services.discounts import (
    TARGET_DELIVERY,
    apply_rate,
    compute_discount,
    discounted_unit_count,
    round_money,
)
from tests.factories import build_promo, cart, line

money = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2)
percent = st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)


class TestAmountProperties:
    @given(subtotal=money, pct=percent)
    @settings(max_examples=200, deadline=None)
    def test_percentage_never_exceeds_subtotal(self, subtotal, pct):
        promo = build_promo(discount_type="percentage", discount_value=pct)
        result = compute_discount(promo, cart(line(1, subtotal)))

        assert Decimal("0") <= result.amount <= subtotal
        assert result.amount == round_money(subtotal * pct / 100)

    @given(subtotal=money, value=money)
    @settings(max_examples=200, deadline=None)
    def test_fixed_amount_is_value_capped_at_subtotal(self, subtotal, value):
        promo = build_promo(discount_type="fixed_amount", discount_value=value)
        result = compute_discount(promo, cart(line(1, subtotal)))

        assert result.amount == min(value, subtotal)

    @given(subtotal=money, pct=percent, cap=money)
    @settings(max_examples=100, deadline=None)
    def test_maximum_discount_caps_percentage(self, subtotal, pct, cap):
        promo = build_promo(discount_type="percentage", discount_value=pct, maximum_discount=cap)
        result = compute_discount(promo, cart(line(1, subtotal)))

        assert result.amount <= cap

    def test_zero_base_gives_zero(self):
        assert apply_rate(Decimal("0"), "percentage", Decimal("50")) == Decimal("0")


class TestExamples:
    def test_save20_on_150(self):
        promo = build_promo("SAVE20", discount_value=Decimal("20"))
        result = compute_discount(promo, cart(line(1, "150.00")))

        assert result.amount == Decimal("30.00")
        assert result.breakdown[0].label == "Promo code SAVE20"

    def test_rounds_half_up_to_cents(self):
        promo = build_promo(discount_value=Decimal("12.5"))
        # 12.5% of 0.99 = 0.12375
        assert compute_discount(promo, cart(line(1, "0.99"))).amount == Decimal("0.12")
        # 12.5% of 1.00 = 0.125
        assert compute_discount(promo, cart(line(1, "1.00"))).amount == Decimal("0.13")

    def test_free_delivery_waives_fee(self):
        promo = build_promo("FREESHIP", enhanced_type="free_delivery", discount_value=Decimal("0"))
        result = compute_discount(promo, cart(line(1, "120")), delivery_fee=Decimal("50"))

        assert result.amount == Decimal("50.00")
        assert result.breakdown[0].target == TARGET_DELIVERY

    def test_free_delivery_respects_maximum_discount(self):
        promo = build_promo(
            "FREESHIP",
            enhanced_type="free_delivery",
            discount_value=Decimal("0"),
            maximum_discount=Decimal("30"),
        )
        result = compute_discount(promo, cart(line(1, "120")), delivery_fee=Decimal("50"))

        assert result.amount == Decimal("30.00")

    def test_free_delivery_without_fee_has_no_breakdown(self):
        promo = build_promo("FREESHIP", enhanced_type="free_delivery", discount_value=Decimal("0"))
        result = compute_discount(promo, cart(line(1, "120")))

        assert result.amount == Decimal("0.00")
        assert result.breakdown == []


class TestRestrictedBase:
    def test_category_specific_uses_matching_lines_only(self):
        promo = build_promo(
            enhanced_type="category_specific",
            discount_value=Decimal("10"),
            category_restrictions=["cakes"],
        )
        c = cart(
            line(1, "50", category="Cakes"),
            line(2, "50", category="cookies"),
        )

        assert compute_discount(promo, c).amount == Decimal("5.00")

    def test_basic_code_with_product_restriction(self):
        promo = build_promo(discount_type="fixed_amount", discount_value=Decimal("80"), product_restrictions=["2"])
        c = cart(line(1, "100"), line(2, "30"))

        # fixed amount capped at the eligible base, not the whole cart
        assert compute_discount(promo, c).amount == Decimal("30.00")

    def test_flavour_tag_matches_category_restriction(self):
        promo = build_promo(discount_value=Decimal("50"), category_restrictions=["chocolate"])
        c = cart(line(1, "40", category="cakes", tags=["Chocolate"]), line(2, "60", category="cakes"))

        assert compute_discount(promo, c).amount == Decimal("20.00")


class TestBuyXGetY:
    def test_buy_two_get_one_on_five_units(self):
        promo = build_promo(
            enhanced_type="buy_x_get_y",
            buy_x_quantity=2,
            get_y_quantity=1,
            get_y_discount_percentage=Decimal("100"),
        )
        c = cart(line(1, "10", qty=5))

        assert discounted_unit_count(promo, 5) == 2
        assert compute_discount(promo, c).amount == Decimal("20.00")

    def test_cheapest_units_are_discounted(self):
        promo = build_promo(
            enhanced_type="buy_x_get_y",
            buy_x_quantity=2,
            get_y_quantity=1,
            get_y_discount_percentage=Decimal("50"),
        )
        c = cart(line(1, "30", qty=1), line(2, "10", qty=1))

        # one discounted unit: the 10.00 item at 50%
        assert compute_discount(promo, c).amount == Decimal("5.00")

    def test_bogo_discounts_one_of_each_pair(self):
        promo = build_promo(enhanced_type="buy_one_get_one")

        assert discounted_unit_count(promo, 1) == 0
        assert discounted_unit_count(promo, 4) == 2
        assert discounted_unit_count(promo, 5) == 2

        c = cart(line(1, "12", qty=2), line(2, "8", qty=2))
        assert compute_discount(promo, c).amount == Decimal("16.00")

    @given(units=st.integers(min_value=0, max_value=500), x=st.integers(1, 10), y=st.integers(1, 10))
    @settings(max_examples=200, deadline=None)
    def test_discounted_units_never_exceed_cart_units(self, units, x, y):
        promo = build_promo(enhanced_type="buy_x_get_y", buy_x_quantity=x, get_y_quantity=y)
        assert 0 <= discounted_unit_count(promo, units) <= units
