"""
FastAPI application.

    app = create_app(Settings(database_url="sqlite+aiosqlite:///shop.db"))
    # uvicorn --factory storefront.api:create_app

Owner of a cart: the user behind `Authorization: Bearer <token>` when the
token resolves, else the anonymous `X-Session-Id`.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from storefront import catalog as K
from storefront.api._errors import StorefrontHTTPError, handle_storefront_error, unwrap
from storefront.api._schemas import (
    AddToCartIn,
    CartOut,
    CategoryIn,
    CategoryOut,
    CheckoutIn,
    DeletedOut,
    DiscountCodeIn,
    DiscountIn,
    DiscountOut,
    NotesIn,
    OrderOut,
    PageOut,
    ProductDetailOut,
    ProductIn,
    ProductOut,
    QuantityIn,
    StatusIn,
    UploadOut,
)
from storefront.cart import OwnerKey
from storefront.config import Settings, get_settings
from storefront.idempotency import SQLAlchemyStore
from storefront.orders import OrderStatus
from storefront.service import Storefront
from storefront.storage import Identity, MemoryIdentity, Role, Session, SQLAlchemyStorage, create_database

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════════════════════


def get_shop(request: Request) -> Storefront:
    return request.app.state.storefront


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_session(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> Session | None:
    identity: Identity = request.app.state.identity
    return await identity.get_session(_bearer(authorization))


async def current_owner(
    session: Annotated[Session | None, Depends(current_session)],
    x_session_id: Annotated[str | None, Header()] = None,
) -> OwnerKey:
    if session is not None:
        return OwnerKey.for_user(session.user_id)
    if x_session_id and x_session_id.strip():
        return OwnerKey.for_session(x_session_id.strip())
    raise HTTPException(status.HTTP_400_BAD_REQUEST, "Send a bearer token or an X-Session-Id header")


async def require_user(session: Annotated[Session | None, Depends(current_session)]) -> Session:
    if session is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Sign in required")
    return session


async def require_admin(request: Request, session: Annotated[Session, Depends(require_user)]) -> Session:
    identity: Identity = request.app.state.identity
    if await identity.get_role(session.user_id) is not Role.ADMIN:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    return session


Shop = Annotated[Storefront, Depends(get_shop)]
Owner = Annotated[OwnerKey, Depends(current_owner)]


def _product_out(shop: Storefront, product: K.Product) -> ProductOut:
    return ProductOut.from_domain(
        product,
        selectors=shop.selectors(product),
        placeholder=shop.settings.placeholder_image,
        low_threshold=shop.settings.low_stock_threshold,
        fragrance_slug=shop.settings.fragrance_category_slug,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════

catalog = APIRouter(tags=["catalog"])


@catalog.get("/products", response_model=PageOut)
async def list_products(
    shop: Shop,
    category: Annotated[list[str], Query()] = [],
    price_min: Annotated[Decimal | None, Query(ge=0)] = None,
    price_max: Annotated[Decimal | None, Query(ge=0)] = None,
    size: Annotated[list[str], Query()] = [],
    color: Annotated[list[str], Query()] = [],
    in_stock: bool = False,
    search: str | None = None,
    featured: bool = False,
    page: Annotated[int, Query(ge=1)] = 1,
) -> PageOut:
    selections = K.FilterSelections(
        categories=tuple(category),
        price_min=price_min,
        price_max=price_max,
        sizes=tuple(size),
        colors=tuple(color),
        in_stock=in_stock,
        search=search,
        featured=featured,
        page=page,
        page_size=shop.settings.page_size,
    )
    result = unwrap(await shop.list_products(selections))
    return PageOut(
        items=[_product_out(shop, p) for p in result.items],
        page=result.page,
        page_size=result.page_size,
        has_next=result.has_next,
        has_previous=result.has_previous,
        category_scope_widened=result.category_scope_widened,
    )


@catalog.get("/products/{slug}", response_model=ProductDetailOut)
async def product_detail(shop: Shop, slug: str) -> ProductDetailOut:
    product = unwrap(await shop.get_product(slug))
    related = unwrap(await shop.related_products(product))
    return ProductDetailOut(
        product=_product_out(shop, product),
        related=[_product_out(shop, p) for p in related],
    )


@catalog.get("/categories", response_model=list[CategoryOut])
async def list_categories(shop: Shop, parent_id: str | None = None) -> list[CategoryOut]:
    return [CategoryOut.from_domain(c) for c in unwrap(await shop.list_categories(parent_id))]


@catalog.get("/categories/{slug}", response_model=CategoryOut)
async def category_detail(shop: Shop, slug: str) -> CategoryOut:
    return CategoryOut.from_domain(unwrap(await shop.get_category(slug)))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart & Checkout
# ═══════════════════════════════════════════════════════════════════════════════

cart = APIRouter(prefix="/cart", tags=["cart"])


@cart.get("", response_model=CartOut)
async def view_cart(shop: Shop, owner: Owner) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.get_cart(owner)))


@cart.post("/items", response_model=CartOut)
async def add_item(shop: Shop, owner: Owner, body: AddToCartIn) -> CartOut:
    return CartOut.from_domain(unwrap(
        await shop.add_to_cart(owner, body.slug, body.size, body.color, body.quantity)
    ))


@cart.patch("/items/{line_id}", response_model=CartOut)
async def change_item(shop: Shop, owner: Owner, line_id: str, body: QuantityIn) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.update_quantity(owner, line_id, body.quantity)))


@cart.delete("/items/{line_id}", response_model=CartOut)
async def remove_item(shop: Shop, owner: Owner, line_id: str) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.remove_line(owner, line_id)))


@cart.post("/discount", response_model=CartOut)
async def apply_code(shop: Shop, owner: Owner, body: DiscountCodeIn) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.apply_discount(owner, body.code)))


@cart.delete("/discount", response_model=CartOut)
async def remove_code(shop: Shop, owner: Owner) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.clear_discount(owner)))


@cart.post("/merge", response_model=CartOut)
async def merge_guest_cart(
    shop: Shop,
    session: Annotated[Session, Depends(require_user)],
    x_session_id: Annotated[str, Header()],
) -> CartOut:
    return CartOut.from_domain(unwrap(await shop.merge_carts(x_session_id, session.user_id)))


checkout = APIRouter(tags=["checkout"])


@checkout.post("/checkout", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def place_order(
    shop: Shop,
    owner: Owner,
    body: CheckoutIn,
    response: Response,
    idempotency_key: Annotated[str, Header()],
) -> OrderOut:
    outcome = unwrap(await shop.place_order(owner, body.to_domain(), idempotency_key))
    if outcome.replayed:
        response.status_code = status.HTTP_200_OK
        response.headers["Idempotent-Replayed"] = "true"
    return OrderOut.from_domain(outcome.value)


@checkout.get("/orders", response_model=list[OrderOut])
async def my_orders(shop: Shop, session: Annotated[Session, Depends(require_user)]) -> list[OrderOut]:
    return [OrderOut.from_domain(o) for o in unwrap(await shop.list_orders(session.user_id))]


@checkout.get("/orders/{order_number}", response_model=OrderOut)
async def track_order(shop: Shop, order_number: str) -> OrderOut:
    return OrderOut.from_domain(unwrap(await shop.get_order_by_number(order_number)))


# ═══════════════════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════════════════

admin = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@admin.get("/orders", response_model=list[OrderOut])
async def admin_orders(
    shop: Shop,
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[OrderOut]:
    return [OrderOut.from_domain(o) for o in unwrap(await shop.admin_list_orders(status_filter, start, end))]


@admin.get("/orders/{order_id}", response_model=OrderOut)
async def admin_order(shop: Shop, order_id: str) -> OrderOut:
    return OrderOut.from_domain(unwrap(await shop.get_order(order_id)))


@admin.patch("/orders/{order_id}/status", response_model=OrderOut)
async def admin_order_status(shop: Shop, order_id: str, body: StatusIn) -> OrderOut:
    return OrderOut.from_domain(unwrap(await shop.update_order_status(order_id, body.status)))


@admin.patch("/orders/{order_id}/notes", response_model=OrderOut)
async def admin_order_notes(shop: Shop, order_id: str, body: NotesIn) -> OrderOut:
    return OrderOut.from_domain(unwrap(await shop.update_order_notes(order_id, body.notes)))


@admin.get("/products/{slug}", response_model=ProductOut)
async def admin_product(shop: Shop, slug: str) -> ProductOut:
    return _product_out(shop, unwrap(await shop.get_product_for_edit(slug)))


@admin.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def admin_create_product(shop: Shop, body: ProductIn) -> ProductOut:
    return _product_out(shop, unwrap(await shop.create_product(body.to_domain())))


@admin.put("/products/{product_id}", response_model=ProductOut)
async def admin_update_product(shop: Shop, product_id: str, body: ProductIn) -> ProductOut:
    return _product_out(shop, unwrap(await shop.update_product(product_id, body.to_domain())))


@admin.delete("/products/{product_id}", response_model=DeletedOut)
async def admin_delete_product(shop: Shop, product_id: str) -> DeletedOut:
    return DeletedOut(deleted=unwrap(await shop.delete_product(product_id)))


@admin.get("/categories", response_model=list[CategoryOut])
async def admin_categories(shop: Shop) -> list[CategoryOut]:
    return [CategoryOut.from_domain(c) for c in unwrap(await shop.list_all_categories())]


@admin.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def admin_create_category(shop: Shop, body: CategoryIn) -> CategoryOut:
    return CategoryOut.from_domain(unwrap(await shop.create_category(body.to_domain())))


@admin.put("/categories/{category_id}", response_model=CategoryOut)
async def admin_update_category(shop: Shop, category_id: str, body: CategoryIn) -> CategoryOut:
    return CategoryOut.from_domain(unwrap(await shop.update_category(category_id, body.to_domain())))


@admin.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_category(shop: Shop, category_id: str) -> Response:
    unwrap(await shop.delete_category(category_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin.get("/discounts", response_model=list[DiscountOut])
async def admin_discounts(shop: Shop) -> list[DiscountOut]:
    return [DiscountOut.from_domain(d) for d in unwrap(await shop.list_discounts())]


@admin.post("/discounts", response_model=DiscountOut, status_code=status.HTTP_201_CREATED)
async def admin_create_discount(shop: Shop, body: DiscountIn) -> DiscountOut:
    return DiscountOut.from_domain(unwrap(await shop.create_discount(body.to_domain())))


@admin.post("/uploads", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def admin_upload(shop: Shop, request: Request, filename: str, folder: str = "products") -> UploadOut:
    """Raw request body is the image; filename and folder come from the query."""
    return UploadOut(url=unwrap(await shop.upload_image(filename, await request.body(), folder)))


@admin.delete("/uploads", response_model=DeletedOut)
async def admin_delete_upload(shop: Shop, url: str) -> DeletedOut:
    return DeletedOut(deleted=unwrap(await shop.delete_image(url)))


async def serve_image(shop: Shop, path: str) -> Response:
    url = f"{shop.settings.image_base_url.rstrip('/')}/{path}"
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(unwrap(await shop.read_image(url)), media_type=media_type)


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(
    settings: Settings | None = None,
    storefront: Storefront | None = None,
    identity: Identity | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if storefront is not None:
            app.state.storefront = storefront
            yield
            return

        session_factory, engine = await create_database(settings.database_url)
        app.state.storefront = Storefront(
            SQLAlchemyStorage(session_factory),
            settings,
            replay_store=SQLAlchemyStore(session_factory),
        )
        logger.info("storefront ready on %s", settings.database_url)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.identity = identity if identity is not None else MemoryIdentity()
    if storefront is not None:
        app.state.storefront = storefront

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StorefrontHTTPError, handle_storefront_error)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(catalog)
    app.include_router(cart)
    app.include_router(checkout)
    app.include_router(admin)
    app.add_api_route(
        f"{settings.image_base_url.rstrip('/')}/{{path:path}}",
        serve_image,
        methods=["GET"],
        tags=["images"],
    )
    return app


__all__ = (
    "get_shop",
    "current_session",
    "current_owner",
    "require_user",
    "require_admin",
    "create_app",
)
