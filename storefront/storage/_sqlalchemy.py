"""
SQLAlchemy storage — catalog, carts, discounts and orders over one async
session factory.

Driver failures map to TransientError, constraint violations and
zero-row conditional updates to ConflictError.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, cast
from uuid import uuid4

from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from storefront.cart import (
    CartEntry,
    CartLineItem,
    OwnerKey,
    add_line,
    change_quantity,
    merge_lines,
)
from storefront.catalog import (
    Category,
    CategoryDraft,
    Product,
    ProductDraft,
    ProductImage,
    ProductVariant,
    QueryDescriptor,
    VariantDraft,
)
from storefront.discount import DiscountCode, DiscountDraft, normalize_code
from storefront.errors import (
    ConflictError,
    NotFoundError,
    StorefrontError,
    TransientError,
    out_of_stock,
)
from storefront.money import round_money
from storefront.orders import (
    CustomerDetails,
    Order,
    OrderItem,
    OrderQuery,
    OrderStatus,
    PaymentMethod,
)
from storefront.storage._tables import (
    CartDiscountRow,
    CartLineRow,
    CategoryRow,
    DiscountRow,
    ImageRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
    VariantRow,
)

logger = logging.getLogger(__name__)

type Outcome[T] = Result[T, StorefrontError]


def _new_id() -> str:
    return uuid4().hex


# ═══════════════════════════════════════════════════════════════════════════════
# Boundary: exceptions to error values
# ═══════════════════════════════════════════════════════════════════════════════


def boundary[**P, T](
    action: str,
) -> Callable[[Callable[P, Awaitable[Outcome[T]]]], Callable[P, Awaitable[Outcome[T]]]]:
    def wrap(fn: Callable[P, Awaitable[Outcome[T]]]) -> Callable[P, Awaitable[Outcome[T]]]:
        @functools.wraps(fn)
        async def guarded(*args: P.args, **kwargs: P.kwargs) -> Outcome[T]:
            try:
                return await fn(*args, **kwargs)
            except IntegrityError as e:
                logger.warning("%s rejected by a constraint: %s", action, e.orig)
                return Error(ConflictError(f"Cannot {action}: conflicts with existing data"))
            except SQLAlchemyError as e:
                logger.warning("%s failed: %s", action, e)
                return Error(TransientError(f"Storage unavailable while trying to {action}", e))

        return guarded

    return wrap


def _rowcount(result: Any) -> int:
    return cast(CursorResult[Any], result).rowcount


# ═══════════════════════════════════════════════════════════════════════════════
# Row → Domain
# ═══════════════════════════════════════════════════════════════════════════════


def _category(row: CategoryRow) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        slug=row.slug,
        parent_id=row.parent_id,
        image_url=row.image_url,
        description=row.description,
        display_order=row.display_order,
        is_active=row.is_active,
    )


def _variant(row: VariantRow) -> ProductVariant:
    return ProductVariant(
        id=row.id,
        product_id=row.product_id,
        sku=row.sku,
        size=row.size,
        color=row.color,
        stock_quantity=row.stock_quantity,
    )


def _product(row: ProductRow) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        base_price=row.base_price,
        category=_category(row.category) if row.category is not None else None,
        discount_price=row.discount_price,
        image_url=row.image_url,
        is_featured=row.is_featured,
        is_active=row.is_active,
        rating=row.rating,
        reviews_count=row.reviews_count,
        created_at=row.created_at,
        images=tuple(
            ProductImage(id=i.id, product_id=i.product_id, image_url=i.image_url, display_order=i.display_order)
            for i in row.images
        ),
        variants=tuple(_variant(v) for v in row.variants),
    )


def _owner(row: CartLineRow) -> OwnerKey:
    if row.user_id is not None:
        return OwnerKey.for_user(row.user_id)
    return OwnerKey.for_session(cast(str, row.session_id))


def _line(row: CartLineRow) -> CartLineItem:
    return CartLineItem(
        id=row.id,
        owner=_owner(row),
        product_id=row.product_id,
        variant_id=row.variant_id,
        quantity=row.quantity,
        created_at=row.created_at,
    )


def _discount(row: DiscountRow) -> DiscountCode:
    return DiscountCode(
        id=row.id,
        code=row.code,
        percentage=row.percentage,
        min_purchase=row.min_purchase,
        max_uses=row.max_uses,
        current_uses=row.current_uses,
        expiry_date=row.expiry_date,
        is_active=row.is_active,
    )


def _order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        customer=CustomerDetails(
            name=row.customer_name,
            phone=row.customer_phone,
            address=row.customer_address,
            email=row.customer_email,
            city=row.city,
            postal_code=row.postal_code,
        ),
        subtotal=row.subtotal,
        discount_amount=row.discount_amount,
        shipping=row.shipping_amount,
        total_amount=row.total_amount,
        items=tuple(
            OrderItem(
                id=i.id,
                product_id=i.product_id,
                variant_id=i.variant_id,
                product_name=i.product_name,
                price_at_purchase=i.price_at_purchase,
                quantity=i.quantity,
                size=i.size,
                color=i.color,
            )
            for i in row.items
        ),
        status=OrderStatus(row.status),
        payment_method=PaymentMethod(row.payment_method),
        user_id=row.user_id,
        discount_code=row.discount_code,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _owner_clause(owner: OwnerKey) -> ColumnElement[bool]:
    if owner.user_id is not None:
        return CartLineRow.user_id == owner.user_id
    return CartLineRow.session_id == owner.session_id


# ═══════════════════════════════════════════════════════════════════════════════
# Storage
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ───────────────────────────────────────────────────────────────────────────
    # Catalog reads
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("load products")
    async def fetch_products(self, query: QueryDescriptor) -> Outcome[list[Product]]:
        stmt = select(ProductRow)

        if query.active_only:
            stmt = stmt.where(ProductRow.is_active.is_(True))
        if query.category_slugs:
            stmt = stmt.where(ProductRow.category.has(CategoryRow.slug.in_(query.category_slugs)))
        if query.price_min is not None:
            stmt = stmt.where(ProductRow.base_price >= query.price_min)
        if query.price_max is not None:
            stmt = stmt.where(ProductRow.base_price <= query.price_max)
        if query.colors:
            stmt = stmt.where(ProductRow.variants.any(or_(*(
                func.lower(VariantRow.color).contains(c, autoescape=True) for c in query.colors
            ))))
        if query.in_stock:
            stmt = stmt.where(ProductRow.variants.any(VariantRow.stock_quantity > 0))
        if query.search:
            stmt = stmt.where(or_(
                ProductRow.name.icontains(query.search, autoescape=True),
                ProductRow.description.icontains(query.search, autoescape=True),
            ))
        if query.featured:
            stmt = stmt.where(ProductRow.is_featured.is_(True))

        stmt = (
            stmt.order_by(ProductRow.created_at.desc(), ProductRow.id)
            .limit(query.limit)
            .offset(query.offset)
        )

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return Ok([_product(r) for r in rows])

    @boundary("load product")
    async def fetch_product_by_slug(self, slug: str, include_inactive: bool = False) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = (
                await session.execute(select(ProductRow).where(ProductRow.slug == slug))
            ).scalar_one_or_none()
            if row is None or not (row.is_active or include_inactive):
                return Error(NotFoundError("product", slug))
            return Ok(_product(row))

    @boundary("load product")
    async def fetch_product(self, product_id: str) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = await session.get(ProductRow, product_id)
            if row is None:
                return Error(NotFoundError("product", product_id))
            return Ok(_product(row))

    @boundary("load related products")
    async def fetch_related(self, product: Product, limit: int = 4) -> Outcome[list[Product]]:
        if product.category is None:
            return Ok([])
        stmt = (
            select(ProductRow)
            .where(
                ProductRow.category_id == product.category.id,
                ProductRow.id != product.id,
                ProductRow.is_active.is_(True),
            )
            .order_by(ProductRow.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            return Ok([_product(r) for r in (await session.execute(stmt)).scalars().all()])

    @boundary("load categories")
    async def fetch_categories(self, parent_id: str | None = None) -> Outcome[list[Category]]:
        """Top-level active categories, or the children of parent_id."""
        parent = CategoryRow.parent_id.is_(None) if parent_id is None else CategoryRow.parent_id == parent_id
        stmt = (
            select(CategoryRow)
            .where(parent, CategoryRow.is_active.is_(True))
            .order_by(CategoryRow.display_order, CategoryRow.name)
        )
        async with self._session_factory() as session:
            return Ok([_category(r) for r in (await session.execute(stmt)).scalars().all()])

    @boundary("load categories")
    async def fetch_all_categories(self) -> Outcome[list[Category]]:
        stmt = select(CategoryRow).order_by(CategoryRow.display_order, CategoryRow.name)
        async with self._session_factory() as session:
            return Ok([_category(r) for r in (await session.execute(stmt)).scalars().all()])

    @boundary("load category")
    async def fetch_category_by_slug(self, slug: str) -> Outcome[Category]:
        async with self._session_factory() as session:
            row = (
                await session.execute(select(CategoryRow).where(CategoryRow.slug == slug))
            ).scalar_one_or_none()
            if row is None:
                return Error(NotFoundError("category", slug))
            return Ok(_category(row))

    # ───────────────────────────────────────────────────────────────────────────
    # Catalog writes (admin)
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("create category")
    async def create_category(self, draft: CategoryDraft) -> Outcome[Category]:
        async with self._session_factory() as session:
            row = CategoryRow(id=_new_id(), created_at=datetime.now())
            self._apply_category(row, draft)
            session.add(row)
            await session.commit()
            logger.info("category created: %s", row.slug)
            return Ok(_category(row))

    @boundary("update category")
    async def update_category(self, category_id: str, draft: CategoryDraft) -> Outcome[Category]:
        if draft.parent_id == category_id:
            return Error(ConflictError("A category cannot be its own parent", entity="category", key=category_id))
        async with self._session_factory() as session:
            row = await session.get(CategoryRow, category_id)
            if row is None:
                return Error(NotFoundError("category", category_id))
            self._apply_category(row, draft)
            await session.commit()
            logger.info("category updated: %s", row.slug)
            return Ok(_category(row))

    @boundary("delete category")
    async def delete_category(self, category_id: str) -> Outcome[None]:
        async with self._session_factory() as session:
            row = await session.get(CategoryRow, category_id)
            if row is None:
                return Error(NotFoundError("category", category_id))

            in_use = await session.scalar(
                select(func.count()).select_from(ProductRow).where(ProductRow.category_id == category_id)
            )
            children = await session.scalar(
                select(func.count()).select_from(CategoryRow).where(CategoryRow.parent_id == category_id)
            )
            if in_use or children:
                return Error(ConflictError(
                    f"Category {row.slug!r} still has products or subcategories",
                    entity="category",
                    key=category_id,
                ))

            await session.delete(row)
            await session.commit()
            logger.info("category deleted: %s", row.slug)
            return Ok(None)

    @boundary("create product")
    async def create_product(self, draft: ProductDraft) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = ProductRow(id=_new_id(), created_at=datetime.now(), variants=[], images=[])
            self._apply_product(row, draft)
            session.add(row)
            self._sync_variants(row, draft.variants)
            self._sync_images(row, draft.image_urls)
            await session.commit()
            logger.info("product created: %s", row.slug)
            return Ok(await self._reload_product(session, row.id))

    @boundary("update product")
    async def update_product(self, product_id: str, draft: ProductDraft) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = await session.get(ProductRow, product_id)
            if row is None:
                return Error(NotFoundError("product", product_id))
            self._apply_product(row, draft)
            row.updated_at = datetime.now()
            await self._drop_cart_lines_for_removed(session, row, draft.variants)
            self._sync_variants(row, draft.variants)
            self._sync_images(row, draft.image_urls)
            await session.commit()
            logger.info("product updated: %s", row.slug)
            return Ok(await self._reload_product(session, row.id))

    @boundary("replace variants")
    async def replace_variants(self, product_id: str, variants: tuple[VariantDraft, ...]) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = await session.get(ProductRow, product_id)
            if row is None:
                return Error(NotFoundError("product", product_id))
            await self._drop_cart_lines_for_removed(session, row, variants)
            self._sync_variants(row, variants)
            await session.commit()
            return Ok(await self._reload_product(session, row.id))

    @boundary("add images")
    async def add_images(self, product_id: str, urls: tuple[str, ...]) -> Outcome[Product]:
        async with self._session_factory() as session:
            row = await session.get(ProductRow, product_id)
            if row is None:
                return Error(NotFoundError("product", product_id))
            start = max((i.display_order for i in row.images), default=-1) + 1
            for offset, url in enumerate(urls):
                row.images.append(ImageRow(id=_new_id(), image_url=url, display_order=start + offset))
            await session.commit()
            return Ok(await self._reload_product(session, row.id))

    @boundary("delete product")
    async def delete_product(self, product_id: str) -> Outcome[bool]:
        """
        Ok(True) when the row was removed, Ok(False) when orders reference the
        product and it was only deactivated.
        """
        async with self._session_factory() as session:
            row = await session.get(ProductRow, product_id)
            if row is None:
                return Error(NotFoundError("product", product_id))

            await session.execute(delete(CartLineRow).where(CartLineRow.product_id == product_id))

            ordered = await session.scalar(
                select(func.count()).select_from(OrderItemRow).where(OrderItemRow.product_id == product_id)
            )
            if ordered:
                row.is_active = False
                row.updated_at = datetime.now()
                await session.commit()
                logger.info("product %s referenced by orders; deactivated", row.slug)
                return Ok(False)

            await session.delete(row)
            await session.commit()
            logger.info("product deleted: %s", row.slug)
            return Ok(True)

    # ───────────────────────────────────────────────────────────────────────────
    # Stock
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("reserve stock")
    async def decrement_stock(self, variant_id: str, quantity: int) -> Outcome[None]:
        """Conditional decrement: applies only while stock >= quantity."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(VariantRow)
                .where(VariantRow.id == variant_id, VariantRow.stock_quantity >= quantity)
                .values(stock_quantity=VariantRow.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) == 0:
                await session.rollback()
                available = await session.scalar(
                    select(VariantRow.stock_quantity).where(VariantRow.id == variant_id)
                )
                if available is None:
                    return Error(NotFoundError("variant", variant_id))
                logger.warning("stock conflict on %s: wanted %d, have %d", variant_id, quantity, available)
                return Error(out_of_stock(variant_id, quantity, available))
            await session.commit()
            return Ok(None)

    @boundary("restock")
    async def restock(self, variant_id: str, quantity: int) -> Outcome[None]:
        async with self._session_factory() as session:
            result = await session.execute(
                update(VariantRow)
                .where(VariantRow.id == variant_id)
                .values(stock_quantity=VariantRow.stock_quantity + quantity)
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) == 0:
                return Error(NotFoundError("variant", variant_id))
            await session.commit()
            return Ok(None)

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("load cart")
    async def fetch_cart(self, owner: OwnerKey) -> Outcome[list[CartEntry]]:
        stmt = (
            select(CartLineRow, ProductRow)
            .join(ProductRow, ProductRow.id == CartLineRow.product_id)
            .where(_owner_clause(owner))
            .order_by(CartLineRow.created_at, CartLineRow.id)
        )
        async with self._session_factory() as session:
            entries: list[CartEntry] = []
            for line_row, product_row in (await session.execute(stmt)).all():
                product = _product(product_row)
                variant = product.variant(line_row.variant_id)
                if variant is None:
                    continue
                entries.append(CartEntry(line=_line(line_row), product=product, variant=variant))
            return Ok(entries)

    @boundary("add to cart")
    async def upsert_cart_line(
        self,
        owner: OwnerKey,
        product_id: str,
        variant_id: str,
        quantity: int,
    ) -> Outcome[CartLineItem]:
        """Adding a variant already in the cart grows its line."""
        async with self._session_factory() as session:
            variant = await session.get(VariantRow, variant_id)
            if variant is None or variant.product_id != product_id:
                return Error(NotFoundError("variant", variant_id))

            rows = await self._owner_rows(session, owner)
            lines = tuple(_line(r) for r in rows)
            now = datetime.now()

            match add_line(lines, owner, product_id, variant_id, quantity, stock=variant.stock_quantity, now=now):
                case Error(e):
                    return Error(e)
                case Ok(updated):
                    line = next(item for item in updated if item.variant_id == variant_id)

            existing = next((r for r in rows if r.variant_id == variant_id), None)
            if existing is not None:
                existing.quantity = line.quantity
            else:
                session.add(CartLineRow(
                    id=line.id,
                    user_id=owner.user_id,
                    session_id=owner.session_id,
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=line.quantity,
                    created_at=now,
                ))
            await session.commit()
            logger.info("cart %s: variant %s now x%d", owner, variant_id, line.quantity)
            return Ok(line)

    @boundary("update cart")
    async def set_line_quantity(self, owner: OwnerKey, line_id: str, quantity: int) -> Outcome[CartLineItem]:
        async with self._session_factory() as session:
            rows = await self._owner_rows(session, owner)
            row = next((r for r in rows if r.id == line_id), None)
            if row is None:
                return Error(NotFoundError("cart line", line_id))
            variant = await session.get(VariantRow, row.variant_id)
            stock = variant.stock_quantity if variant is not None else None

            match change_quantity(tuple(_line(r) for r in rows), line_id, quantity, stock=stock):
                case Error(e):
                    return Error(e)
                case Ok(_):
                    row.quantity = quantity
            await session.commit()
            return Ok(_line(row))

    @boundary("remove from cart")
    async def delete_cart_line(self, owner: OwnerKey, line_id: str) -> Outcome[None]:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(CartLineRow).where(CartLineRow.id == line_id, _owner_clause(owner))
            )
            if _rowcount(result) == 0:
                return Error(NotFoundError("cart line", line_id))
            await session.commit()
            return Ok(None)

    @boundary("clear cart")
    async def clear_cart(self, owner: OwnerKey) -> Outcome[int]:
        async with self._session_factory() as session:
            result = await session.execute(delete(CartLineRow).where(_owner_clause(owner)))
            await session.execute(delete(CartDiscountRow).where(CartDiscountRow.owner_key == str(owner)))
            await session.commit()
            return Ok(_rowcount(result))

    @boundary("merge carts")
    async def merge_cart(self, session_id: str, user_id: str) -> Outcome[list[CartLineItem]]:
        guest = OwnerKey.for_session(session_id)
        user = OwnerKey.for_user(user_id)

        async with self._session_factory() as session:
            guest_rows = await self._owner_rows(session, guest)
            user_rows = await self._owner_rows(session, user)
            merged = merge_lines(
                tuple(_line(r) for r in guest_rows),
                tuple(_line(r) for r in user_rows),
                user,
            )

            by_variant = {r.variant_id: r for r in user_rows}
            for r in guest_rows:
                await session.delete(r)
            await session.flush()

            kept: list[CartLineRow] = []
            for line in merged:
                row = by_variant.get(line.variant_id)
                if row is not None:
                    row.quantity = line.quantity
                else:
                    row = CartLineRow(
                        id=_new_id(),
                        user_id=user_id,
                        session_id=None,
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        created_at=line.created_at or datetime.now(),
                    )
                    session.add(row)
                kept.append(row)

            # The guest's code follows them unless the user already has one
            guest_code = await session.get(CartDiscountRow, str(guest))
            if guest_code is not None:
                if await session.get(CartDiscountRow, str(user)) is None:
                    session.add(CartDiscountRow(
                        owner_key=str(user),
                        discount_id=guest_code.discount_id,
                        applied_at=guest_code.applied_at,
                    ))
                await session.delete(guest_code)

            await session.commit()
            logger.info("merged cart %s into %s (%d lines)", guest, user, len(kept))
            return Ok([_line(r) for r in kept])

    @boundary("load cart discount")
    async def get_cart_discount(self, owner: OwnerKey) -> Outcome[DiscountCode | None]:
        async with self._session_factory() as session:
            applied = await session.get(CartDiscountRow, str(owner))
            if applied is None:
                return Ok(None)
            row = await session.get(DiscountRow, applied.discount_id)
            return Ok(_discount(row) if row is not None else None)

    @boundary("apply discount")
    async def set_cart_discount(self, owner: OwnerKey, discount_id: str) -> Outcome[None]:
        async with self._session_factory() as session:
            applied = await session.get(CartDiscountRow, str(owner))
            if applied is None:
                session.add(CartDiscountRow(owner_key=str(owner), discount_id=discount_id, applied_at=datetime.now()))
            else:
                applied.discount_id = discount_id
                applied.applied_at = datetime.now()
            await session.commit()
            return Ok(None)

    @boundary("remove discount")
    async def clear_cart_discount(self, owner: OwnerKey) -> Outcome[None]:
        async with self._session_factory() as session:
            await session.execute(delete(CartDiscountRow).where(CartDiscountRow.owner_key == str(owner)))
            await session.commit()
            return Ok(None)

    # ───────────────────────────────────────────────────────────────────────────
    # Discounts
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("look up discount")
    async def fetch_discount(self, code: str) -> Outcome[DiscountCode | None]:
        """Ok(None) for unknown codes; the validator reports them."""
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(DiscountRow).where(func.upper(DiscountRow.code) == normalize_code(code))
                )
            ).scalar_one_or_none()
            return Ok(_discount(row) if row is not None else None)

    @boundary("load discounts")
    async def list_discounts(self) -> Outcome[list[DiscountCode]]:
        async with self._session_factory() as session:
            rows = (await session.execute(select(DiscountRow).order_by(DiscountRow.created_at.desc()))).scalars()
            return Ok([_discount(r) for r in rows])

    @boundary("create discount")
    async def create_discount(self, draft: DiscountDraft) -> Outcome[DiscountCode]:
        async with self._session_factory() as session:
            row = DiscountRow(
                id=_new_id(),
                code=normalize_code(draft.code),
                percentage=draft.percentage,
                min_purchase=draft.min_purchase,
                max_uses=draft.max_uses,
                current_uses=0,
                expiry_date=draft.expiry_date,
                is_active=draft.is_active,
                created_at=datetime.now(),
            )
            session.add(row)
            await session.commit()
            logger.info("discount created: %s", row.code)
            return Ok(_discount(row))

    @boundary("redeem discount")
    async def redeem_discount(self, discount_id: str) -> Outcome[None]:
        """Conditional increment: fails once max_uses is reached."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(DiscountRow)
                .where(
                    DiscountRow.id == discount_id,
                    DiscountRow.is_active.is_(True),
                    or_(DiscountRow.max_uses.is_(None), DiscountRow.current_uses < DiscountRow.max_uses),
                )
                .values(current_uses=DiscountRow.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) == 0:
                logger.warning("discount %s could not be redeemed", discount_id)
                return Error(ConflictError(
                    "This discount code is no longer available",
                    entity="discount",
                    key=discount_id,
                ))
            await session.commit()
            return Ok(None)

    @boundary("release discount")
    async def release_discount(self, discount_id: str) -> Outcome[None]:
        async with self._session_factory() as session:
            await session.execute(
                update(DiscountRow)
                .where(DiscountRow.id == discount_id, DiscountRow.current_uses > 0)
                .values(current_uses=DiscountRow.current_uses - 1)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return Ok(None)

    # ───────────────────────────────────────────────────────────────────────────
    # Orders
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("create order")
    async def create_order(self, order: Order) -> Outcome[Order]:
        now = order.created_at or datetime.now()
        async with self._session_factory() as session:
            row = OrderRow(
                id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                customer_name=order.customer.name,
                customer_phone=order.customer.phone,
                customer_address=order.customer.address,
                customer_email=order.customer.email,
                city=order.customer.city,
                postal_code=order.customer.postal_code,
                subtotal=round_money(order.subtotal),
                discount_amount=round_money(order.discount_amount),
                shipping_amount=round_money(order.shipping),
                total_amount=round_money(order.total_amount),
                status=order.status.value,
                payment_method=order.payment_method.value,
                discount_code=order.discount_code,
                notes=order.notes,
                created_at=now,
                updated_at=now,
                items=[
                    OrderItemRow(
                        id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        product_name=item.product_name,
                        size=item.size,
                        color=item.color,
                        price_at_purchase=round_money(item.price_at_purchase),
                        quantity=item.quantity,
                        position=position,
                    )
                    for position, item in enumerate(order.items)
                ],
            )
            session.add(row)
            await session.commit()
            logger.info("order created: %s (%s)", row.order_number, row.total_amount)
            return Ok(await self._reload_order(session, row.id))

    @boundary("load order")
    async def fetch_order(self, order_id: str) -> Outcome[Order]:
        async with self._session_factory() as session:
            row = await session.get(OrderRow, order_id)
            if row is None:
                return Error(NotFoundError("order", order_id))
            return Ok(_order(row))

    @boundary("load order")
    async def fetch_order_by_number(self, order_number: str) -> Outcome[Order]:
        async with self._session_factory() as session:
            row = (
                await session.execute(select(OrderRow).where(OrderRow.order_number == order_number))
            ).scalar_one_or_none()
            if row is None:
                return Error(NotFoundError("order", order_number))
            return Ok(_order(row))

    @boundary("load orders")
    async def list_orders(self, query: OrderQuery) -> Outcome[list[Order]]:
        stmt = select(OrderRow)
        if query.user_id is not None:
            stmt = stmt.where(OrderRow.user_id == query.user_id)
        if query.status is not None:
            stmt = stmt.where(OrderRow.status == query.status.value)
        if query.start is not None:
            stmt = stmt.where(OrderRow.created_at >= query.start)
        if query.end is not None:
            stmt = stmt.where(OrderRow.created_at <= query.end)
        stmt = stmt.order_by(OrderRow.created_at.desc(), OrderRow.id)

        async with self._session_factory() as session:
            return Ok([_order(r) for r in (await session.execute(stmt)).scalars().all()])

    @boundary("update order status")
    async def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        expected: OrderStatus,
    ) -> Outcome[Order]:
        """Compare-and-set: applies only while the stored status is `expected`."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(OrderRow)
                .where(OrderRow.id == order_id, OrderRow.status == expected.value)
                .values(status=status.value, updated_at=datetime.now())
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) == 0:
                await session.rollback()
                current = await session.scalar(select(OrderRow.status).where(OrderRow.id == order_id))
                if current is None:
                    return Error(NotFoundError("order", order_id))
                return Error(ConflictError(
                    f"Order status changed to {current} in the meantime",
                    entity="order",
                    key=order_id,
                ))
            await session.commit()
            logger.info("order %s: %s -> %s", order_id, expected.value, status.value)
            return Ok(await self._reload_order(session, order_id))

    @boundary("update order notes")
    async def update_order_notes(self, order_id: str, notes: str | None) -> Outcome[Order]:
        async with self._session_factory() as session:
            row = await session.get(OrderRow, order_id)
            if row is None:
                return Error(NotFoundError("order", order_id))
            row.notes = notes
            row.updated_at = datetime.now()
            await session.commit()
            return Ok(await self._reload_order(session, order_id))

    @boundary("delete order")
    async def delete_order(self, order_id: str) -> Outcome[None]:
        async with self._session_factory() as session:
            row = await session.get(OrderRow, order_id)
            if row is None:
                return Error(NotFoundError("order", order_id))
            await session.delete(row)
            await session.commit()
            logger.info("order deleted: %s", row.order_number)
            return Ok(None)

    # ───────────────────────────────────────────────────────────────────────────
    # Helpers
    # ───────────────────────────────────────────────────────────────────────────

    @staticmethod
    async def _owner_rows(session: AsyncSession, owner: OwnerKey) -> list[CartLineRow]:
        stmt = select(CartLineRow).where(_owner_clause(owner)).order_by(CartLineRow.created_at, CartLineRow.id)
        return list((await session.execute(stmt)).scalars().all())

    @staticmethod
    async def _reload_product(session: AsyncSession, product_id: str) -> Product:
        row = (
            await session.execute(
                select(ProductRow)
                .where(ProductRow.id == product_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        return _product(row)

    @staticmethod
    async def _reload_order(session: AsyncSession, order_id: str) -> Order:
        row = (
            await session.execute(
                select(OrderRow)
                .where(OrderRow.id == order_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        return _order(row)

    @staticmethod
    def _apply_category(row: CategoryRow, draft: CategoryDraft) -> None:
        row.name = draft.name.strip()
        row.slug = draft.slug
        row.parent_id = draft.parent_id
        row.image_url = draft.image_url
        row.description = draft.description
        row.display_order = draft.display_order
        row.is_active = draft.is_active

    @staticmethod
    def _apply_product(row: ProductRow, draft: ProductDraft) -> None:
        row.name = draft.name.strip()
        row.slug = draft.slug
        row.description = draft.description
        row.category_id = draft.category_id
        row.base_price = draft.base_price
        row.discount_price = draft.discount_price
        row.image_url = draft.image_url
        row.is_featured = draft.is_featured
        row.is_active = draft.is_active

    @staticmethod
    async def _drop_cart_lines_for_removed(
        session: AsyncSession,
        row: ProductRow,
        variants: tuple[VariantDraft, ...],
    ) -> None:
        kept = {v.sku for v in variants}
        removed = [v.id for v in row.variants if v.sku not in kept]
        if removed:
            await session.execute(delete(CartLineRow).where(CartLineRow.variant_id.in_(removed)))

    @staticmethod
    def _sync_variants(row: ProductRow, variants: tuple[VariantDraft, ...]) -> None:
        """Match by SKU so variant ids held by carts survive an edit."""
        by_sku = {v.sku: v for v in row.variants}
        synced: list[VariantRow] = []
        for position, draft in enumerate(variants):
            existing = by_sku.get(draft.sku)
            if existing is None:
                existing = VariantRow(id=_new_id(), sku=draft.sku)
            existing.size = draft.size or None
            existing.color = draft.color or None
            existing.stock_quantity = draft.stock_quantity
            existing.position = position
            synced.append(existing)
        row.variants = synced

    @staticmethod
    def _sync_images(row: ProductRow, urls: tuple[str, ...]) -> None:
        by_url = {i.image_url: i for i in row.images}
        synced: list[ImageRow] = []
        for order, url in enumerate(urls):
            image = by_url.get(url) or ImageRow(id=_new_id(), image_url=url)
            image.display_order = order
            synced.append(image)
        row.images = synced


__all__ = ("boundary", "SQLAlchemyStorage")
