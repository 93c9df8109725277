"""
Storage collaborators — what the service needs from persistence, images and
identity. Every method returns Result; nothing raises for expected failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from kungfu import Result

from storefront.cart import CartEntry, CartLineItem, OwnerKey
from storefront.catalog import (
    Category,
    CategoryDraft,
    Product,
    ProductDraft,
    QueryDescriptor,
    VariantDraft,
)
from storefront.discount import DiscountCode, DiscountDraft
from storefront.errors import StorefrontError
from storefront.orders import Order, OrderQuery, OrderStatus

type Outcome[T] = Result[T, StorefrontError]


class CatalogRepository(Protocol):
    async def fetch_products(self, query: QueryDescriptor) -> Outcome[list[Product]]: ...
    async def fetch_product_by_slug(self, slug: str, include_inactive: bool = False) -> Outcome[Product]: ...
    async def fetch_product(self, product_id: str) -> Outcome[Product]: ...
    async def fetch_related(self, product: Product, limit: int = 4) -> Outcome[list[Product]]: ...
    async def fetch_categories(self, parent_id: str | None = None) -> Outcome[list[Category]]: ...
    async def fetch_all_categories(self) -> Outcome[list[Category]]: ...
    async def fetch_category_by_slug(self, slug: str) -> Outcome[Category]: ...
    async def create_category(self, draft: CategoryDraft) -> Outcome[Category]: ...
    async def update_category(self, category_id: str, draft: CategoryDraft) -> Outcome[Category]: ...
    async def delete_category(self, category_id: str) -> Outcome[None]: ...
    async def create_product(self, draft: ProductDraft) -> Outcome[Product]: ...
    async def update_product(self, product_id: str, draft: ProductDraft) -> Outcome[Product]: ...
    async def delete_product(self, product_id: str) -> Outcome[bool]: ...
    async def replace_variants(self, product_id: str, variants: tuple[VariantDraft, ...]) -> Outcome[Product]: ...
    async def add_images(self, product_id: str, urls: tuple[str, ...]) -> Outcome[Product]: ...
    async def decrement_stock(self, variant_id: str, quantity: int) -> Outcome[None]: ...
    async def restock(self, variant_id: str, quantity: int) -> Outcome[None]: ...


class CartRepository(Protocol):
    async def fetch_cart(self, owner: OwnerKey) -> Outcome[list[CartEntry]]: ...
    async def upsert_cart_line(
        self, owner: OwnerKey, product_id: str, variant_id: str, quantity: int
    ) -> Outcome[CartLineItem]: ...
    async def set_line_quantity(self, owner: OwnerKey, line_id: str, quantity: int) -> Outcome[CartLineItem]: ...
    async def delete_cart_line(self, owner: OwnerKey, line_id: str) -> Outcome[None]: ...
    async def clear_cart(self, owner: OwnerKey) -> Outcome[int]: ...
    async def merge_cart(self, session_id: str, user_id: str) -> Outcome[list[CartLineItem]]: ...
    async def get_cart_discount(self, owner: OwnerKey) -> Outcome[DiscountCode | None]: ...
    async def set_cart_discount(self, owner: OwnerKey, discount_id: str) -> Outcome[None]: ...
    async def clear_cart_discount(self, owner: OwnerKey) -> Outcome[None]: ...


class DiscountRepository(Protocol):
    async def fetch_discount(self, code: str) -> Outcome[DiscountCode | None]: ...
    async def list_discounts(self) -> Outcome[list[DiscountCode]]: ...
    async def create_discount(self, draft: DiscountDraft) -> Outcome[DiscountCode]: ...
    async def redeem_discount(self, discount_id: str) -> Outcome[None]: ...
    async def release_discount(self, discount_id: str) -> Outcome[None]: ...


class OrderRepository(Protocol):
    async def create_order(self, order: Order) -> Outcome[Order]: ...
    async def fetch_order(self, order_id: str) -> Outcome[Order]: ...
    async def fetch_order_by_number(self, order_number: str) -> Outcome[Order]: ...
    async def list_orders(self, query: OrderQuery) -> Outcome[list[Order]]: ...
    async def update_order_status(
        self, order_id: str, status: OrderStatus, expected: OrderStatus
    ) -> Outcome[Order]: ...
    async def update_order_notes(self, order_id: str, notes: str | None) -> Outcome[Order]: ...
    async def delete_order(self, order_id: str) -> Outcome[None]: ...


class Storage(CatalogRepository, CartRepository, DiscountRepository, OrderRepository, Protocol):
    """Everything the storefront service reads and writes."""


class ImageStore(Protocol):
    async def upload_image(self, filename: str, content: bytes, folder: str) -> Outcome[str]:
        """Store bytes, return the public URL."""
        ...

    async def read_image(self, url: str) -> Outcome[bytes]:
        """NotFoundError for URLs this store did not hand out."""
        ...

    async def delete_image(self, url: str) -> Outcome[bool]:
        """Ok(False) when nothing was stored under url."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class Session:
    user_id: str


class Identity(Protocol):
    async def get_session(self, token: str | None) -> Session | None: ...
    async def get_role(self, user_id: str) -> Role: ...


__all__ = (
    "Outcome",
    "CatalogRepository",
    "CartRepository",
    "DiscountRepository",
    "OrderRepository",
    "Storage",
    "ImageStore",
    "Role",
    "Session",
    "Identity",
)
