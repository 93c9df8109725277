"""
Checkout form — what the shopper submits to place an order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from kungfu import Result, Ok, Error

from storefront.errors import ValidationError
from storefront.orders import CustomerDetails, PaymentMethod

_EMAIL = re.compile(r"\S+@\S+\.\S+")
_PHONE = re.compile(r"^\+?[\d\s().-]{7,20}$")

_REQUIRED = (
    ("name", "Full name is required"),
    ("email", "Email is required"),
    ("phone", "Phone number is required"),
    ("address", "Address is required"),
    ("city", "City is required"),
    ("postal_code", "Postal code is required"),
)


@dataclass(frozen=True, slots=True)
class CheckoutForm:
    name: str
    phone: str
    address: str
    email: str = ""
    city: str = ""
    postal_code: str = ""
    notes: str | None = None
    payment_method: str = PaymentMethod.COD.value
    discount_code: str | None = None

    def customer(self) -> CustomerDetails:
        return CustomerDetails(
            name=self.name,
            phone=self.phone,
            address=self.address,
            email=self.email or None,
            city=self.city or None,
            postal_code=self.postal_code or None,
        )


def validate_form(form: CheckoutForm) -> Result[CheckoutForm, ValidationError]:
    """Trim every text field, then check the first problem in field order."""
    form = replace(
        form,
        name=form.name.strip(),
        phone=form.phone.strip(),
        address=form.address.strip(),
        email=form.email.strip(),
        city=form.city.strip(),
        postal_code=form.postal_code.strip(),
        notes=(form.notes or "").strip() or None,
        discount_code=(form.discount_code or "").strip() or None,
    )

    for field, message in _REQUIRED:
        if not getattr(form, field):
            return Error(ValidationError(message, field=field))

    if not _EMAIL.search(form.email):
        return Error(ValidationError("Email is invalid", field="email"))
    if not _PHONE.match(form.phone):
        return Error(ValidationError("Phone number is invalid", field="phone"))

    try:
        PaymentMethod(form.payment_method)
    except ValueError:
        return Error(ValidationError("Only cash on delivery is available", field="payment_method"))

    return Ok(form)


__all__ = ("CheckoutForm", "validate_form")
