"""
Storefront — the service facade the HTTP layer talks to.

Composes the pure core (catalog, cart, discount, orders) with storage, the
listing cache, bounded read retries and idempotent checkout.

    session_factory, _ = await create_database(settings.database_url)
    shop = Storefront(SQLAlchemyStorage(session_factory), settings,
                      replay_store=SQLAlchemyStore(session_factory))

    match await shop.add_to_cart(owner, "eau-de-parfum", "50ml", quantity=2):
        case Ok(cart): ...
        case Error(ValidationError(message=msg)): ...
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from kungfu import LazyCoroResult, Result, Ok, Error

from storefront import catalog as K
from storefront._policy import Retry, retrying
from storefront.cache import LocalTier, cache
from storefront.cart import Cart, OwnerKey, ShippingRule, compute_totals
from storefront.checkout import CheckoutForm, place_order
from storefront.config import Settings, get_settings
from storefront.discount import (
    AppliedDiscount,
    DiscountCode,
    DiscountDraft,
    check_discount,
    validate_discount_draft,
)
from storefront.errors import StorefrontError, ValidationError
from storefront.idempotency import MemoryStore, Policy, Replayed, Store, idempotent
from storefront.orders import Order, OrderQuery, OrderStatus, check_transition
from storefront.storage import DirectoryImageStore, ImageStore, MemoryImageStore, Storage

logger = logging.getLogger(__name__)

type Outcome[T] = Result[T, StorefrontError]


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    owner: OwnerKey
    form: CheckoutForm
    idempotency_key: str

    @property
    def fingerprint(self) -> str:
        return hashlib.sha256(repr((str(self.owner), self.form)).encode()).hexdigest()


def _listing_key(selections: K.FilterSelections) -> str:
    return f"products:{selections!r}"


def _default_images(settings: Settings) -> ImageStore:
    if settings.upload_dir is not None:
        return DirectoryImageStore(settings.upload_dir, settings.image_base_url)
    return MemoryImageStore(settings.image_base_url)


class Storefront:
    def __init__(
        self,
        storage: Storage,
        settings: Settings | None = None,
        *,
        images: ImageStore | None = None,
        replay_store: Store[str] | None = None,
        category_policy: K.CategoryPolicy = K.CategoryPolicy.WIDEN,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or get_settings()
        self._storage = storage
        self._images = images if images is not None else _default_images(self.settings)
        self._category_policy = category_policy
        self._clock = clock
        self._rule = ShippingRule(
            threshold=self.settings.free_shipping_threshold,
            flat_fee=self.settings.flat_shipping_fee,
        )
        self._retry = Retry(
            times=self.settings.read_retry_attempts,
            delay_seconds=self.settings.read_retry_delay_seconds,
        )
        self._listing = (
            cache(_listing_key, self._fetch_listing)
            .tier(LocalTier(max_size=256, ttl_seconds=self.settings.catalog_refresh_seconds))
            .build()
        )
        self._checkout = (
            idempotent(self._checkout_once)
            .key(lambda req: f"checkout:{req.owner}:{req.idempotency_key}")
            .fingerprint(lambda req: req.fingerprint)
            .store(replay_store if replay_store is not None else MemoryStore[str]())
            .policy(Policy().with_ttl(seconds=self.settings.checkout_replay_ttl_seconds))
            .build()
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    async def _read[T](self, call: Callable[[], Awaitable[Outcome[T]]]) -> Outcome[T]:
        return await retrying(lambda: LazyCoroResult(call), self._retry)

    def _fetch_listing(self, selections: K.FilterSelections) -> LazyCoroResult[K.Page, StorefrontError]:
        query = K.build_query(selections, self._category_policy)

        async def execute() -> Outcome[K.Page]:
            match await self._read(lambda: self._storage.fetch_products(query)):
                case Error(e):
                    return Error(e)
                case Ok(rows):
                    page = K.paginate(rows, selections.page_size, selections.page, query.category_scope_widened)
            # Size filtering runs on the fetched page, so a page can come back short
            if selections.sizes:
                page = replace(page, items=K.apply_size_filter(page.items, selections.sizes))
            return Ok(page)

        return LazyCoroResult(execute)

    async def list_products(self, selections: K.FilterSelections | None = None) -> Outcome[K.Page]:
        selections = selections or K.FilterSelections(page_size=self.settings.page_size)
        match await self._listing.get(selections):
            case Ok(result):
                return Ok(result.value)
            case Error(e):
                return Error(e)

    async def get_product(self, slug: str) -> Outcome[K.Product]:
        return await self._read(lambda: self._storage.fetch_product_by_slug(slug))

    def selectors(self, product: K.Product) -> K.SelectorSet:
        return K.resolve_selectors(product, self.settings.fragrance_category_slug)

    async def related_products(self, product: K.Product, limit: int = 4) -> Outcome[list[K.Product]]:
        return await self._read(lambda: self._storage.fetch_related(product, limit))

    async def list_categories(self, parent_id: str | None = None) -> Outcome[list[K.Category]]:
        return await self._read(lambda: self._storage.fetch_categories(parent_id))

    async def get_category(self, slug: str) -> Outcome[K.Category]:
        return await self._read(lambda: self._storage.fetch_category_by_slug(slug))

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    async def get_cart(self, owner: OwnerKey) -> Outcome[Cart]:
        match await self._read(lambda: self._storage.fetch_cart(owner)):
            case Error(e):
                return Error(e)
            case Ok(entries):
                lines = tuple(e.priced(self.settings.placeholder_image) for e in entries)

        match await self._read(lambda: self._storage.get_cart_discount(owner)):
            case Error(e):
                return Error(e)
            case Ok(record):
                applied = self._still_valid(owner, record, compute_totals(lines, None, self._rule).subtotal)

        return Ok(Cart(owner=owner, lines=lines, totals=compute_totals(lines, applied, self._rule)))

    def _still_valid(self, owner: OwnerKey, record: DiscountCode | None, subtotal: Decimal) -> AppliedDiscount | None:
        """A stored code that no longer passes validation stays attached but stops counting."""
        if record is None:
            return None
        match check_discount(record, subtotal, self._clock()):
            case Ok(applied):
                return applied
            case Error(e):
                logger.info("cart %s: code %s not applied: %s", owner, record.code, e.message)
                return None

    async def add_to_cart(
        self,
        owner: OwnerKey,
        slug: str,
        size: str | None,
        color: str | None = None,
        quantity: int = 1,
    ) -> Outcome[Cart]:
        match await self.get_product(slug):
            case Error(e):
                return Error(e)
            case Ok(product):
                pass

        selection = K.select_variant(
            product,
            size,
            color,
            quantity,
            fragrance_slug=self.settings.fragrance_category_slug,
            low_threshold=self.settings.low_stock_threshold,
        )
        match selection:
            case Error(e):
                return Error(e)
            case Ok(chosen):
                pass

        match await self._storage.upsert_cart_line(owner, product.id, chosen.variant.id, chosen.quantity):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self.get_cart(owner)

    async def update_quantity(self, owner: OwnerKey, line_id: str, quantity: int) -> Outcome[Cart]:
        match await self._storage.set_line_quantity(owner, line_id, quantity):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self.get_cart(owner)

    async def remove_line(self, owner: OwnerKey, line_id: str) -> Outcome[Cart]:
        match await self._storage.delete_cart_line(owner, line_id):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self.get_cart(owner)

    async def apply_discount(self, owner: OwnerKey, code: str) -> Outcome[Cart]:
        """Validate against the current subtotal; a new code replaces the old one."""
        match await self.get_cart(owner):
            case Error(e):
                return Error(e)
            case Ok(cart):
                pass

        if cart.is_empty:
            return Error(ValidationError("Add items to your cart before applying a code", field="discount_code"))

        match await self._read(lambda: self._storage.fetch_discount(code)):
            case Error(e):
                return Error(e)
            case Ok(record):
                pass

        match check_discount(record, cart.totals.subtotal, self._clock()):
            case Error(e):
                return Error(e)
            case Ok(applied):
                pass

        match await self._storage.set_cart_discount(owner, applied.discount_id):
            case Error(e):
                return Error(e)
            case Ok(_):
                logger.info("cart %s: applied %s (%s%%)", owner, applied.code, applied.percentage)
                return await self.get_cart(owner)

    async def clear_discount(self, owner: OwnerKey) -> Outcome[Cart]:
        match await self._storage.clear_cart_discount(owner):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self.get_cart(owner)

    async def merge_carts(self, session_id: str, user_id: str) -> Outcome[Cart]:
        match await self._storage.merge_cart(session_id, user_id):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self.get_cart(OwnerKey.for_user(user_id))

    # ───────────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────────

    def _checkout_once(self, request: CheckoutRequest) -> LazyCoroResult[str, StorefrontError]:
        async def execute() -> Outcome[str]:
            match await place_order(
                self._storage,
                request.owner,
                request.form,
                rule=self._rule,
                now=self._clock(),
                placeholder=self.settings.placeholder_image,
            ):
                case Ok(order):
                    return Ok(order.id)
                case Error(e):
                    return Error(e)

        return LazyCoroResult(execute)

    async def place_order(
        self,
        owner: OwnerKey,
        form: CheckoutForm,
        idempotency_key: str,
    ) -> Outcome[Replayed[Order]]:
        """
        Place the cart as an order at most once per idempotency key.

        A repeated submission with the same key returns the order created by
        the first one (replayed=True) instead of charging stock again.
        """
        if not idempotency_key.strip():
            return Error(ValidationError("Idempotency key is required", field="idempotency_key"))

        request = CheckoutRequest(owner=owner, form=form, idempotency_key=idempotency_key.strip())
        match await self._checkout.run(request):
            case Error(e):
                return Error(e)
            case Ok(outcome):
                pass

        if outcome.replayed:
            logger.info("checkout %s replayed for %s", outcome.key, owner)
        else:
            await self._listing.invalidate_pattern("products:*")

        match await self._read(lambda: self._storage.fetch_order(outcome.value)):
            case Error(e):
                return Error(e)
            case Ok(order):
                return Ok(Replayed(value=order, replayed=outcome.replayed, key=outcome.key))

    # ───────────────────────────────────────────────────────────────────────────
    # Orders
    # ───────────────────────────────────────────────────────────────────────────

    async def get_order(self, order_id: str) -> Outcome[Order]:
        return await self._read(lambda: self._storage.fetch_order(order_id))

    async def get_order_by_number(self, order_number: str) -> Outcome[Order]:
        return await self._read(lambda: self._storage.fetch_order_by_number(order_number))

    async def list_orders(self, user_id: str) -> Outcome[list[Order]]:
        return await self._read(lambda: self._storage.list_orders(OrderQuery(user_id=user_id)))

    async def admin_list_orders(
        self,
        status: OrderStatus | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Outcome[list[Order]]:
        query = OrderQuery(status=status, start=start, end=end)
        return await self._read(lambda: self._storage.list_orders(query))

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Outcome[Order]:
        match await self.get_order(order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        match check_transition(order.status, status):
            case Error(e):
                return Error(e)
            case Ok(_):
                return await self._storage.update_order_status(order_id, status, expected=order.status)

    async def update_order_notes(self, order_id: str, notes: str | None) -> Outcome[Order]:
        return await self._storage.update_order_notes(order_id, (notes or "").strip() or None)

    # ───────────────────────────────────────────────────────────────────────────
    # Admin: catalog
    # ───────────────────────────────────────────────────────────────────────────

    async def _catalog_changed[T](self, outcome: Outcome[T]) -> Outcome[T]:
        match outcome:
            case Ok(_):
                dropped = await self._listing.invalidate_pattern("products:*")
                logger.debug("catalog changed; dropped %d cached listing pages", dropped)
        return outcome

    async def list_all_categories(self) -> Outcome[list[K.Category]]:
        return await self._read(self._storage.fetch_all_categories)

    async def get_product_for_edit(self, slug: str) -> Outcome[K.Product]:
        return await self._read(lambda: self._storage.fetch_product_by_slug(slug, include_inactive=True))

    async def create_product(self, draft: K.ProductDraft) -> Outcome[K.Product]:
        match K.validate_product_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(valid):
                return await self._catalog_changed(await self._storage.create_product(valid))

    async def update_product(self, product_id: str, draft: K.ProductDraft) -> Outcome[K.Product]:
        match K.validate_product_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(valid):
                return await self._catalog_changed(await self._storage.update_product(product_id, valid))

    async def delete_product(self, product_id: str) -> Outcome[bool]:
        """Ok(True) when deleted, Ok(False) when kept inactive for order history."""
        return await self._catalog_changed(await self._storage.delete_product(product_id))

    async def add_product_images(self, product_id: str, urls: tuple[str, ...]) -> Outcome[K.Product]:
        return await self._catalog_changed(await self._storage.add_images(product_id, urls))

    async def create_category(self, draft: K.CategoryDraft) -> Outcome[K.Category]:
        match K.validate_category_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(valid):
                return await self._catalog_changed(await self._storage.create_category(valid))

    async def update_category(self, category_id: str, draft: K.CategoryDraft) -> Outcome[K.Category]:
        match K.validate_category_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(valid):
                return await self._catalog_changed(await self._storage.update_category(category_id, valid))

    async def delete_category(self, category_id: str) -> Outcome[None]:
        return await self._catalog_changed(await self._storage.delete_category(category_id))

    # ───────────────────────────────────────────────────────────────────────────
    # Admin: discounts & images
    # ───────────────────────────────────────────────────────────────────────────

    async def create_discount(self, draft: DiscountDraft) -> Outcome[DiscountCode]:
        match validate_discount_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(valid):
                return await self._storage.create_discount(valid)

    async def list_discounts(self) -> Outcome[list[DiscountCode]]:
        return await self._read(self._storage.list_discounts)

    async def upload_image(self, filename: str, content: bytes, folder: str = "products") -> Outcome[str]:
        return await self._images.upload_image(filename, content, folder)

    async def read_image(self, url: str) -> Outcome[bytes]:
        return await self._images.read_image(url)

    async def delete_image(self, url: str) -> Outcome[bool]:
        match await self._images.delete_image(url):
            case Ok(True):
                logger.info("image removed: %s", url)
                return Ok(True)
            case other:
                return other


__all__ = ("CheckoutRequest", "Storefront")
