"""
Checkout — validate the form, then turn the cart into an order through a
compensated saga.

    from storefront import checkout as CO

    match await CO.place_order(storage, owner, form):
        case Ok(order): ...
        case Error(ConflictError() as e): ...   # stock or code gone meanwhile
"""

from storefront.checkout._saga import (
    Compensator,
    SagaStep,
    SagaResult,
    SagaFailure,
    step,
    from_async,
    run_compensators,
    run_saga,
)
from storefront.checkout._form import CheckoutForm, validate_form
from storefront.checkout._place import build_order, place_order

__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaFailure",
    "step",
    "from_async",
    "run_compensators",
    "run_saga",
    "CheckoutForm",
    "validate_form",
    "build_order",
    "place_order",
)
