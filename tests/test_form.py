import pytest

from storefront.checkout import validate_form
from storefront.orders import CustomerDetails

from tests.factories import checkout_form, err, ok


def test_valid_form_is_trimmed() -> None:
    form = ok(validate_form(checkout_form(name="  Ada Lovelace ", notes="   ", discount_code=" save20 ")))

    assert form.name == "Ada Lovelace"
    assert form.notes is None
    assert form.discount_code == "save20"


@pytest.mark.parametrize(
    ("field", "message"),
    [
        ("name", "Full name is required"),
        ("email", "Email is required"),
        ("phone", "Phone number is required"),
        ("address", "Address is required"),
        ("city", "City is required"),
        ("postal_code", "Postal code is required"),
    ],
)
def test_required_fields(field: str, message: str) -> None:
    problem = err(validate_form(checkout_form(**{field: "  "})))

    assert (problem.field, problem.message) == (field, message)


def test_first_missing_field_wins() -> None:
    assert err(validate_form(checkout_form(phone="", city=""))).field == "phone"


@pytest.mark.parametrize("email", ["ada", "ada@example", "@example.com"])
def test_invalid_email(email: str) -> None:
    assert err(validate_form(checkout_form(email=email))).message == "Email is invalid"


@pytest.mark.parametrize("phone", ["12", "call me maybe", "+1 555 0100 200 300 400 500"])
def test_invalid_phone(phone: str) -> None:
    assert err(validate_form(checkout_form(phone=phone))).message == "Phone number is invalid"


def test_only_cash_on_delivery() -> None:
    problem = err(validate_form(checkout_form(payment_method="card")))

    assert problem.field == "payment_method"
    assert problem.message == "Only cash on delivery is available"


def test_customer_snapshot() -> None:
    form = checkout_form(city="", postal_code="")

    assert form.customer() == CustomerDetails(
        name="Ada Lovelace",
        phone="+1 555 0100 200",
        address="12 Analytical Row",
        email="ada@example.com",
        city=None,
        postal_code=None,
    )
