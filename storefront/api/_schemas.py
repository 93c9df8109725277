"""
HTTP schemas. Requests convert with to_domain(), responses build with
from_domain().
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from storefront import catalog as K
from storefront.cart import Cart, PricedLine
from storefront.checkout import CheckoutForm
from storefront.discount import DiscountCode, DiscountDraft
from storefront.money import round_money
from storefront.orders import Order, OrderItem, OrderStatus, PaymentMethod, TimelineStep, timeline

# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class CategoryOut(BaseModel):
    id: str
    name: str
    slug: str
    parent_id: str | None
    image_url: str | None
    description: str | None
    display_order: int
    is_active: bool

    @classmethod
    def from_domain(cls, dom: K.Category) -> CategoryOut:
        return cls(
            id=dom.id,
            name=dom.name,
            slug=dom.slug,
            parent_id=dom.parent_id,
            image_url=dom.image_url,
            description=dom.description,
            display_order=dom.display_order,
            is_active=dom.is_active,
        )


class VariantOut(BaseModel):
    id: str
    sku: str
    size: str | None
    color: str | None
    stock_quantity: int
    stock_level: str

    @classmethod
    def from_domain(cls, dom: K.ProductVariant, low_threshold: int) -> VariantOut:
        return cls(
            id=dom.id,
            sku=dom.sku,
            size=dom.size,
            color=dom.color,
            stock_quantity=dom.stock_quantity,
            stock_level=K.classify_stock(dom, low_threshold).name.lower(),
        )


class SizeOptionOut(BaseModel):
    label: str
    available: bool


class SelectorsOut(BaseModel):
    kind: str
    axes: list[str]
    sizes: list[SizeOptionOut]
    colors: list[str]
    volume_only: bool

    @classmethod
    def from_domain(cls, product: K.Product, selectors: K.SelectorSet, fragrance_slug: str) -> SelectorsOut:
        return cls(
            kind=selectors.kind.name.lower(),
            axes=[a.name.lower() for a in selectors.axes],
            sizes=[
                SizeOptionOut(label=o.label, available=K.is_option_available(product, o.label, fragrance_slug))
                for o in selectors.sizes
            ],
            colors=list(selectors.colors),
            volume_only=selectors.is_volume_only,
        )


class ProductOut(BaseModel):
    id: str
    name: str
    slug: str
    description: str
    price: Decimal
    base_price: Decimal
    discount_price: Decimal | None
    discount_percentage: int
    image_url: str
    images: list[str]
    category: CategoryOut | None
    is_featured: bool
    is_active: bool
    rating: float
    reviews_count: int
    variants: list[VariantOut]
    selectors: SelectorsOut

    @classmethod
    def from_domain(
        cls,
        dom: K.Product,
        *,
        selectors: K.SelectorSet,
        placeholder: str,
        low_threshold: int,
        fragrance_slug: str,
    ) -> ProductOut:
        return cls(
            id=dom.id,
            name=dom.name,
            slug=dom.slug,
            description=dom.description,
            price=round_money(K.effective_price(dom)),
            base_price=round_money(dom.base_price),
            discount_price=round_money(dom.discount_price) if dom.discount_price is not None else None,
            discount_percentage=K.discount_percentage(dom),
            image_url=K.primary_image(dom, placeholder),
            images=[i.image_url for i in dom.images],
            category=CategoryOut.from_domain(dom.category) if dom.category is not None else None,
            is_featured=dom.is_featured,
            is_active=dom.is_active,
            rating=dom.rating,
            reviews_count=dom.reviews_count,
            variants=[VariantOut.from_domain(v, low_threshold) for v in dom.variants],
            selectors=SelectorsOut.from_domain(dom, selectors, fragrance_slug),
        )


class PageOut(BaseModel):
    items: list[ProductOut]
    page: int
    page_size: int
    has_next: bool
    has_previous: bool
    category_scope_widened: bool


class ProductDetailOut(BaseModel):
    product: ProductOut
    related: list[ProductOut]


class VariantIn(BaseModel):
    sku: str
    size: str | None = None
    color: str | None = None
    stock_quantity: int = 0

    def to_domain(self) -> K.VariantDraft:
        return K.VariantDraft(
            sku=self.sku.strip(),
            size=self.size,
            color=self.color,
            stock_quantity=self.stock_quantity,
        )


class ProductIn(BaseModel):
    name: str
    slug: str = ""
    description: str = ""
    category_id: str | None = None
    base_price: Decimal
    discount_price: Decimal | None = None
    image_url: str | None = None
    is_featured: bool = False
    is_active: bool = True
    variants: list[VariantIn] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)

    def to_domain(self) -> K.ProductDraft:
        return K.ProductDraft(
            name=self.name,
            slug=self.slug.strip() or K.slugify(self.name),
            description=self.description,
            category_id=self.category_id,
            base_price=self.base_price,
            discount_price=self.discount_price,
            image_url=self.image_url,
            is_featured=self.is_featured,
            is_active=self.is_active,
            variants=tuple(v.to_domain() for v in self.variants),
            image_urls=tuple(self.image_urls),
        )


class CategoryIn(BaseModel):
    name: str
    slug: str = ""
    parent_id: str | None = None
    image_url: str | None = None
    description: str | None = None
    display_order: int = 0
    is_active: bool = True

    def to_domain(self) -> K.CategoryDraft:
        return K.CategoryDraft(
            name=self.name,
            slug=self.slug.strip() or K.slugify(self.name),
            parent_id=self.parent_id,
            image_url=self.image_url,
            description=self.description,
            display_order=self.display_order,
            is_active=self.is_active,
        )


class DeletedOut(BaseModel):
    deleted: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class AddToCartIn(BaseModel):
    slug: str
    size: str | None = None
    color: str | None = None
    quantity: int = 1


class QuantityIn(BaseModel):
    quantity: int


class DiscountCodeIn(BaseModel):
    code: str


class CartLineOut(BaseModel):
    line_id: str
    product_id: str
    variant_id: str
    product_name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    size: str | None
    color: str | None
    image_url: str | None
    stock_quantity: int | None

    @classmethod
    def from_domain(cls, dom: PricedLine) -> CartLineOut:
        return cls(
            line_id=dom.line_id,
            product_id=dom.product_id,
            variant_id=dom.variant_id,
            product_name=dom.product_name,
            unit_price=round_money(dom.unit_price),
            quantity=dom.quantity,
            line_total=round_money(dom.line_total),
            size=dom.size,
            color=dom.color,
            image_url=dom.image_url,
            stock_quantity=dom.stock_quantity,
        )


class CartOut(BaseModel):
    lines: list[CartLineOut]
    item_count: int
    subtotal: Decimal
    discount_amount: Decimal
    shipping: Decimal
    total: Decimal
    free_shipping: bool
    discount_code: str | None
    discount_percentage: Decimal | None

    @classmethod
    def from_domain(cls, dom: Cart) -> CartOut:
        totals = dom.totals.rounded()
        return cls(
            lines=[CartLineOut.from_domain(line) for line in dom.lines],
            item_count=dom.item_count,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            shipping=totals.shipping,
            total=totals.total,
            free_shipping=totals.free_shipping and not dom.is_empty,
            discount_code=totals.discount.code if totals.discount is not None else None,
            discount_percentage=totals.discount.percentage if totals.discount is not None else None,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout & Orders
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutIn(BaseModel):
    name: str
    phone: str
    address: str
    email: str = ""
    city: str = ""
    postal_code: str = ""
    notes: str | None = None
    payment_method: str = PaymentMethod.COD.value
    discount_code: str | None = None

    def to_domain(self) -> CheckoutForm:
        return CheckoutForm(
            name=self.name,
            phone=self.phone,
            address=self.address,
            email=self.email,
            city=self.city,
            postal_code=self.postal_code,
            notes=self.notes,
            payment_method=self.payment_method,
            discount_code=self.discount_code,
        )


class OrderItemOut(BaseModel):
    product_id: str | None
    variant_id: str | None
    product_name: str
    size: str | None
    color: str | None
    price_at_purchase: Decimal
    quantity: int
    line_total: Decimal

    @classmethod
    def from_domain(cls, dom: OrderItem) -> OrderItemOut:
        return cls(
            product_id=dom.product_id,
            variant_id=dom.variant_id,
            product_name=dom.product_name,
            size=dom.size,
            color=dom.color,
            price_at_purchase=dom.price_at_purchase,
            quantity=dom.quantity,
            line_total=round_money(dom.line_total),
        )


class TimelineStepOut(BaseModel):
    status: OrderStatus
    label: str
    done: bool
    current: bool

    @classmethod
    def from_domain(cls, dom: TimelineStep) -> TimelineStepOut:
        return cls(status=dom.status, label=dom.label, done=dom.done, current=dom.current)


class OrderOut(BaseModel):
    id: str
    order_number: str
    status: OrderStatus
    customer_name: str
    customer_phone: str
    customer_email: str | None
    customer_address: str
    city: str | None
    postal_code: str | None
    subtotal: Decimal
    discount_amount: Decimal
    shipping: Decimal
    total_amount: Decimal
    payment_method: str
    discount_code: str | None
    notes: str | None
    created_at: datetime | None
    items: list[OrderItemOut]
    timeline: list[TimelineStepOut]

    @classmethod
    def from_domain(cls, dom: Order) -> OrderOut:
        return cls(
            id=dom.id,
            order_number=dom.order_number,
            status=dom.status,
            customer_name=dom.customer.name,
            customer_phone=dom.customer.phone,
            customer_email=dom.customer.email,
            customer_address=dom.customer.address,
            city=dom.customer.city,
            postal_code=dom.customer.postal_code,
            subtotal=dom.subtotal,
            discount_amount=dom.discount_amount,
            shipping=dom.shipping,
            total_amount=dom.total_amount,
            payment_method=dom.payment_method.label,
            discount_code=dom.discount_code,
            notes=dom.notes,
            created_at=dom.created_at,
            items=[OrderItemOut.from_domain(i) for i in dom.items],
            timeline=[TimelineStepOut.from_domain(s) for s in timeline(dom.status)],
        )


class StatusIn(BaseModel):
    status: OrderStatus


class NotesIn(BaseModel):
    notes: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts & uploads
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountIn(BaseModel):
    code: str
    percentage: Decimal
    min_purchase: Decimal | None = None
    max_uses: int | None = None
    expiry_date: datetime | None = None
    is_active: bool = True

    def to_domain(self) -> DiscountDraft:
        return DiscountDraft(
            code=self.code,
            percentage=self.percentage,
            min_purchase=self.min_purchase,
            max_uses=self.max_uses,
            expiry_date=self.expiry_date,
            is_active=self.is_active,
        )


class DiscountOut(BaseModel):
    id: str
    code: str
    percentage: Decimal
    min_purchase: Decimal | None
    max_uses: int | None
    current_uses: int
    uses_left: int | None
    expiry_date: datetime | None
    is_active: bool

    @classmethod
    def from_domain(cls, dom: DiscountCode) -> DiscountOut:
        return cls(
            id=dom.id,
            code=dom.code,
            percentage=dom.percentage,
            min_purchase=dom.min_purchase,
            max_uses=dom.max_uses,
            current_uses=dom.current_uses,
            uses_left=dom.uses_left,
            expiry_date=dom.expiry_date,
            is_active=dom.is_active,
        )


class UploadOut(BaseModel):
    url: str


class ErrorOut(BaseModel):
    detail: str
    field: str | None = None


__all__ = (
    "CategoryOut",
    "VariantOut",
    "SizeOptionOut",
    "SelectorsOut",
    "ProductOut",
    "PageOut",
    "ProductDetailOut",
    "VariantIn",
    "ProductIn",
    "CategoryIn",
    "DeletedOut",
    "AddToCartIn",
    "QuantityIn",
    "DiscountCodeIn",
    "CartLineOut",
    "CartOut",
    "CheckoutIn",
    "OrderItemOut",
    "TimelineStepOut",
    "OrderOut",
    "StatusIn",
    "NotesIn",
    "DiscountIn",
    "DiscountOut",
    "UploadOut",
    "ErrorOut",
)
