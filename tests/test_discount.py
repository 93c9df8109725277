from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront import discount as D

from tests.factories import discount_code, err, ok

NOW = datetime(2024, 6, 1, 12, 0)


def test_unknown_code() -> None:
    problem = err(D.check_discount(None, Decimal("50"), NOW))

    assert problem.message == "Invalid discount code"
    assert problem.field == "discount_code"
    assert problem.reason is D.DiscountRejection.NOT_FOUND


def test_inactive_is_reported_before_expiry() -> None:
    record = discount_code(is_active=False, expiry_date=NOW - timedelta(days=1))

    problem = err(D.check_discount(record, Decimal("50"), NOW))

    assert problem.reason is D.DiscountRejection.INACTIVE
    assert problem.message == "Invalid discount code"


@pytest.mark.parametrize("expiry", [NOW, NOW - timedelta(seconds=1)])
def test_expired_when_expiry_is_not_in_the_future(expiry: datetime) -> None:
    problem = err(D.check_discount(discount_code(expiry_date=expiry), Decimal("50"), NOW))

    assert problem.message == "This discount code has expired"


def test_usage_cap_is_checked_before_minimum_purchase() -> None:
    record = discount_code(max_uses=3, current_uses=3, min_purchase="500")

    problem = err(D.check_discount(record, Decimal("50"), NOW))

    assert problem.reason is D.DiscountRejection.EXHAUSTED
    assert problem.message == "This discount code has reached its usage limit"


def test_minimum_purchase() -> None:
    record = discount_code(min_purchase="50")

    problem = err(D.check_discount(record, Decimal("49.99"), NOW))

    assert problem.message == "Minimum purchase of $50.00 required"
    assert ok(D.check_discount(record, Decimal("50"), NOW)).code == "SAVE20"


def test_success_quotes_the_amount() -> None:
    record = discount_code("20", expiry_date=NOW + timedelta(days=1), max_uses=5, current_uses=4)

    applied = ok(D.check_discount(record, Decimal("549.97"), NOW))

    assert applied.discount_id == record.id
    assert applied.percentage == Decimal("20")
    assert applied.quoted_amount == Decimal("109.994")


def test_validation_is_repeatable_and_consumes_nothing() -> None:
    record = discount_code("15", max_uses=1)

    first = ok(D.check_discount(record, Decimal("80"), NOW))
    second = ok(D.check_discount(record, Decimal("80"), NOW))

    assert first == second
    assert record.current_uses == 0
    assert record.uses_left == 1


def test_new_code_replaces_the_old_one() -> None:
    old = ok(D.check_discount(discount_code("10", code="TEN"), Decimal("80"), NOW))
    new = ok(D.check_discount(discount_code("20", code="TWENTY"), Decimal("80"), NOW))

    assert D.apply_discount(old, new) == new
    assert D.apply_discount(None, new) == new


def test_amount_is_capped_and_never_negative() -> None:
    assert D.discount_amount(Decimal("120"), Decimal("40")) == Decimal("40")
    assert D.discount_amount(Decimal("20"), Decimal("0")) == 0


def test_codes_match_case_insensitively() -> None:
    assert D.normalize_code("  save20 ") == "SAVE20"


@pytest.mark.parametrize(
    ("draft", "field"),
    [
        (D.DiscountDraft(code=" ", percentage=Decimal("10")), "code"),
        (D.DiscountDraft(code="X", percentage=Decimal("0")), "percentage"),
        (D.DiscountDraft(code="X", percentage=Decimal("101")), "percentage"),
        (D.DiscountDraft(code="X", percentage=Decimal("10"), min_purchase=Decimal("-1")), "min_purchase"),
        (D.DiscountDraft(code="X", percentage=Decimal("10"), max_uses=0), "max_uses"),
    ],
)
def test_discount_draft_rejections(draft: D.DiscountDraft, field: str) -> None:
    assert err(D.validate_discount_draft(draft)).field == field


def test_uses_left() -> None:
    assert discount_code(max_uses=None).uses_left is None
    assert discount_code(max_uses=2, current_uses=5).uses_left == 0
