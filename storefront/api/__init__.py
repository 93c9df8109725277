"""
HTTP surface — FastAPI over the Storefront service.

    from storefront.api import create_app

    app = create_app(settings, identity=MemoryIdentity({"tok": "u1"}))
"""

from storefront.api._schemas import (
    CategoryOut,
    ProductOut,
    PageOut,
    ProductDetailOut,
    ProductIn,
    CategoryIn,
    CartOut,
    CheckoutIn,
    OrderOut,
    DiscountIn,
    DiscountOut,
    ErrorOut,
)
from storefront.api._errors import status_for, StorefrontHTTPError, unwrap
from storefront.api._app import (
    get_shop,
    current_session,
    current_owner,
    require_user,
    require_admin,
    create_app,
)

__all__ = (
    "CategoryOut",
    "ProductOut",
    "PageOut",
    "ProductDetailOut",
    "ProductIn",
    "CategoryIn",
    "CartOut",
    "CheckoutIn",
    "OrderOut",
    "DiscountIn",
    "DiscountOut",
    "ErrorOut",
    "status_for",
    "StorefrontHTTPError",
    "unwrap",
    "get_shop",
    "current_session",
    "current_owner",
    "require_user",
    "require_admin",
    "create_app",
)
