from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.catalog import Category, Product, VariantDraft
from storefront.config import Settings
from storefront.discount import DiscountCode, DiscountDraft
from storefront.service import Storefront
from storefront.storage import SQLAlchemyStorage, create_database

from tests.factories import category_draft, ok, product_draft


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}",
        read_retry_attempts=2,
        read_retry_delay_seconds=0.0,
    )


@pytest.fixture
async def session_factory(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    factory, engine = await create_database(settings.database_url)
    yield factory
    await engine.dispose()


@pytest.fixture
def storage(session_factory: async_sessionmaker[AsyncSession]) -> SQLAlchemyStorage:
    return SQLAlchemyStorage(session_factory)


@pytest.fixture
def shop(storage: SQLAlchemyStorage, settings: Settings) -> Storefront:
    return Storefront(storage, settings)


@dataclass(frozen=True, slots=True)
class Seeded:
    clothing: Category
    perfumes: Category
    shirt: Product
    scarf: Product
    perfume: Product
    save20: DiscountCode
    single_use: DiscountCode

    def variant_id(self, product: Product, sku: str) -> str:
        for v in product.variants:
            if v.sku == sku:
                return v.id
        raise KeyError(sku)


@pytest.fixture
async def seeded(storage: SQLAlchemyStorage) -> Seeded:
    """
    clothing: Linen Shirt 249.99 (S/White x5, M/White x2, M/Navy x0)
              Silk Scarf 149.99 (One Size/Red x10)
    perfumes: Eau de Parfum 89.00 ("50 ml" x0, "50ml" x4, "100ml" x3)
    codes:    SAVE20 (20%), ONCE (10%, one use)
    """
    clothing = ok(await storage.create_category(category_draft("clothing")))
    perfumes = ok(await storage.create_category(category_draft("perfumes")))

    shirt = ok(await storage.create_product(product_draft(
        clothing.id,
        VariantDraft(sku="SHIRT-S-WHT", size="S", color="White", stock_quantity=5),
        VariantDraft(sku="SHIRT-M-WHT", size="M", color="White", stock_quantity=2),
        VariantDraft(sku="SHIRT-M-NVY", size="M", color="Navy", stock_quantity=0),
        name="Linen Shirt",
        slug="linen-shirt",
        base_price="249.99",
        image_urls=("/uploads/products/shirt-front.jpg", "/uploads/products/shirt-back.jpg"),
    )))
    scarf = ok(await storage.create_product(product_draft(
        clothing.id,
        VariantDraft(sku="SCARF-OS-RED", size="One Size", color="Red", stock_quantity=10),
        name="Silk Scarf",
        slug="silk-scarf",
        base_price="179.99",
        discount_price="149.99",
        is_featured=True,
    )))
    perfume = ok(await storage.create_product(product_draft(
        perfumes.id,
        VariantDraft(sku="EDP-50-A", size="50 ml", stock_quantity=0),
        VariantDraft(sku="EDP-50-B", size="50ml", stock_quantity=4),
        VariantDraft(sku="EDP-100", size="100ml", stock_quantity=3),
        name="Eau de Parfum",
        slug="eau-de-parfum",
        base_price="89.00",
    )))

    save20 = ok(await storage.create_discount(DiscountDraft(code="save20", percentage=Decimal("20"))))
    single_use = ok(await storage.create_discount(DiscountDraft(code="ONCE", percentage=Decimal("10"), max_uses=1)))

    return Seeded(
        clothing=clothing,
        perfumes=perfumes,
        shirt=shirt,
        scarf=scarf,
        perfume=perfume,
        save20=save20,
        single_use=single_use,
    )
