"""
Promo code validation against a cart: each rejection reason, the order the
checks run in, and the fact that validating never consumes a use.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.models.promo_code_usage import PromoCodeUsage
from app.schemas.enums import PromoErrorCode
from app.services.promo_codes import validate_promo_code
from app.services.promo_eligibility import CustomerContext, count_usage
from tests.factories import cart, create_customer, create_order, create_promo, line, utcnow

GUEST = CustomerContext()


async def _validate(db, code, c, customer=GUEST, **kwargs):
    return await validate_promo_code(db, code=code, cart=c, customer=customer, **kwargs)


async def _add_usage(db, promo, *, customer_id=None, customer_email=None):
    order = await create_order(db, customer_id=customer_id, customer_email=customer_email)
    db.add(
        PromoCodeUsage(
            promo_code_id=promo.id,
            order_id=order.id,
            customer_id=customer_id,
            customer_email=customer_email,
            discount_amount=Decimal("10.00"),
            order_amount=Decimal("100.00"),
        )
    )
    await db.commit()


async def test_unknown_code(db):
    result = await _validate(db, "NOPE", cart(line(1, "100")))

    assert result.valid is False
    assert result.error == PromoErrorCode.CODE_NOT_FOUND


async def test_lookup_is_case_insensitive_and_trimmed(db):
    await create_promo(db, "SAVE20", discount_value=Decimal("20"))

    result = await _validate(db, "  save20 ", cart(line(1, "150")))

    assert result.valid is True
    assert result.discount_amount == Decimal("30.00")


async def test_inactive_code_reads_as_not_found(db):
    await create_promo(db, "OFF", is_active=False)

    result = await _validate(db, "OFF", cart(line(1, "100")))

    assert result.error == PromoErrorCode.CODE_NOT_FOUND


@pytest.mark.parametrize("is_active", [True, False])
@pytest.mark.parametrize("minimum", [Decimal("0"), Decimal("1000")])
async def test_expired_code_always_reports_expired(db, is_active, minimum):
    await create_promo(
        db,
        "OLD",
        valid_until=utcnow() - timedelta(minutes=1),
        is_active=is_active,
        minimum_order_amount=minimum,
        usage_limit=1,
        used_count=0,
    )

    result = await _validate(db, "OLD", cart(line(1, "10")))

    assert result.error == PromoErrorCode.CODE_EXPIRED


async def test_minimum_not_met(db):
    await create_promo(db, "MIN100", minimum_order_amount=Decimal("100"))

    result = await _validate(db, "MIN100", cart(line(1, "80")))

    assert result.error == PromoErrorCode.MINIMUM_NOT_MET
    assert "100" in result.message


async def test_subtotal_comes_from_cart_lines_when_sent(db):
    await create_promo(db, "SAVE20", discount_value=Decimal("20"), minimum_order_amount=Decimal("100"))

    result = await _validate(db, "SAVE20", cart(line(1, "10")), subtotal=Decimal("1000"))

    assert result.valid is False
    assert result.error == PromoErrorCode.MINIMUM_NOT_MET


async def test_explicit_subtotal_used_without_cart_lines(db):
    await create_promo(db, "MIN100", minimum_order_amount=Decimal("100"))

    result = await _validate(db, "MIN100", cart(), subtotal=Decimal("120"))

    assert result.valid is True
    assert result.discount_amount == Decimal("12.00")


async def test_quantity_bounds(db):
    await create_promo(db, "BULK", minimum_quantity=3, maximum_quantity=5)

    too_few = await _validate(db, "BULK", cart(line(1, "10", qty=2)))
    too_many = await _validate(db, "BULK", cart(line(1, "10", qty=6)))
    just_right = await _validate(db, "BULK", cart(line(1, "10", qty=4)))

    assert too_few.error == PromoErrorCode.QUANTITY_OUT_OF_RANGE
    assert too_many.error == PromoErrorCode.QUANTITY_OUT_OF_RANGE
    assert just_right.valid is True


async def test_buy_x_get_y_needs_x_eligible_units(db):
    await create_promo(db, "B3G1", enhanced_type="buy_x_get_y", buy_x_quantity=3, get_y_quantity=1)

    result = await _validate(db, "B3G1", cart(line(1, "10", qty=2)))

    assert result.error == PromoErrorCode.QUANTITY_OUT_OF_RANGE


async def test_first_time_requires_identity(db):
    await create_promo(db, "WELCOME", first_time_only=True)

    result = await _validate(db, "WELCOME", cart(line(1, "100")))

    assert result.error == PromoErrorCode.NOT_FIRST_TIME


async def test_first_time_rejects_returning_customer(db):
    await create_promo(db, "WELCOME", enhanced_type="first_time_customer")
    customer = await create_customer(db, "regular@example.com")
    await create_order(db, customer_id=customer.id, status="confirmed")

    returning = CustomerContext(customer_id=customer.id, email=customer.email, is_registered=True)
    result = await _validate(db, "WELCOME", cart(line(1, "100")), customer=returning)

    assert result.error == PromoErrorCode.NOT_FIRST_TIME


async def test_first_time_ignores_unconfirmed_orders_and_matches_guest_email(db):
    await create_promo(db, "WELCOME", first_time_only=True)
    await create_order(db, customer_email="guest@example.com", status="pending")

    guest = CustomerContext(email="Guest@Example.com")
    assert (await _validate(db, "WELCOME", cart(line(1, "100")), customer=guest)).valid is True

    await create_order(db, customer_email="guest@example.com", status="confirmed")
    result = await _validate(db, "WELCOME", cart(line(1, "100")), customer=guest)
    assert result.error == PromoErrorCode.NOT_FIRST_TIME


async def test_loyalty_reward_requires_registered_customer(db):
    await create_promo(db, "LOYAL", enhanced_type="loyalty_reward")

    guest = await _validate(db, "LOYAL", cart(line(1, "100")), customer=CustomerContext(email="a@b.com"))
    member = await _validate(
        db, "LOYAL", cart(line(1, "100")), customer=CustomerContext(customer_id=1, is_registered=True)
    )

    assert guest.error == PromoErrorCode.CUSTOMER_NOT_ELIGIBLE
    assert member.valid is True


async def test_customer_group_restriction(db):
    await create_promo(db, "VIP", customer_group_restrictions=["vip"])

    other = CustomerContext(customer_id=1, customer_group="regular", is_registered=True)
    vip = CustomerContext(customer_id=2, customer_group="VIP", is_registered=True)

    assert (await _validate(db, "VIP", cart(line(1, "100")), customer=other)).error == (
        PromoErrorCode.CUSTOMER_NOT_ELIGIBLE
    )
    assert (await _validate(db, "VIP", cart(line(1, "100")), customer=vip)).valid is True


async def test_no_eligible_items(db):
    await create_promo(db, "CAKES", category_restrictions=["cakes"])

    result = await _validate(db, "CAKES", cart(line(1, "100", category="bread")))

    assert result.error == PromoErrorCode.NO_ELIGIBLE_ITEMS


@pytest.mark.parametrize("enhanced_type", ["buy_x_get_y", "buy_one_get_one"])
async def test_restricted_buy_x_offer_without_matching_lines(db, enhanced_type):
    await create_promo(
        db,
        "B2G1",
        enhanced_type=enhanced_type,
        buy_x_quantity=2,
        get_y_quantity=1,
        category_restrictions=["cakes"],
    )

    result = await _validate(db, "B2G1", cart(line(1, "10", qty=5, category="bread")))

    assert result.error == PromoErrorCode.NO_ELIGIBLE_ITEMS


async def test_restricted_buy_x_offer_with_too_few_matching_units(db):
    await create_promo(
        db,
        "B2G1",
        enhanced_type="buy_x_get_y",
        buy_x_quantity=2,
        get_y_quantity=1,
        category_restrictions=["cakes"],
    )

    c = cart(line(1, "30", qty=1, category="cakes"), line(2, "10", qty=5, category="bread"))
    result = await _validate(db, "B2G1", c)

    assert result.error == PromoErrorCode.QUANTITY_OUT_OF_RANGE


async def test_global_usage_limit(db):
    promo = await create_promo(db, "ONCE", usage_limit=1)
    await _add_usage(db, promo, customer_email="first@example.com")

    result = await _validate(db, "ONCE", cart(line(1, "100")))

    assert result.error == PromoErrorCode.USAGE_LIMIT_REACHED


async def test_per_customer_limit_only_counts_that_customer(db):
    promo = await create_promo(db, "TWICE", usage_per_customer=1)
    await _add_usage(db, promo, customer_email="used@example.com")

    used = await _validate(db, "TWICE", cart(line(1, "100")), customer=CustomerContext(email="USED@example.com"))
    fresh = await _validate(db, "TWICE", cart(line(1, "100")), customer=CustomerContext(email="new@example.com"))

    assert used.error == PromoErrorCode.USAGE_LIMIT_REACHED
    assert fresh.valid is True


async def test_already_applied_is_checked_first(db):
    result = await _validate(db, "save10", cart(line(1, "100")), applied_codes=["SAVE10"])

    assert result.error == PromoErrorCode.ALREADY_APPLIED


async def test_validation_is_idempotent_and_records_nothing(db):
    promo = await create_promo(db, "SAVE20", discount_value=Decimal("20"), usage_limit=1)
    c = cart(line(1, "150"))

    first = await _validate(db, "SAVE20", c)
    second = await _validate(db, "SAVE20", c)

    assert first.valid and second.valid
    assert first.discount_amount == second.discount_amount == Decimal("30.00")
    assert await count_usage(db, promo.id) == 0
