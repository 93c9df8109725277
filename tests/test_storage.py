from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from storefront import catalog as K
from storefront.cart import OwnerKey
from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.orders import CustomerDetails, Order, OrderItem, OrderQuery, OrderStatus
from storefront.storage import SQLAlchemyStorage

from tests.conftest import Seeded
from tests.factories import GUEST, SHOPPER, category_draft, err, ok, product_draft


def _query(**selections: object) -> K.QueryDescriptor:
    return K.build_query(K.FilterSelections(**selections))  # type: ignore[arg-type]


async def _slugs(storage: SQLAlchemyStorage, **selections: object) -> set[str]:
    return {p.slug for p in ok(await storage.fetch_products(_query(**selections)))}


def _order(seeded: Seeded, number: str = "ORD-20240601-AAAAAA", user_id: str | None = "user-1") -> Order:
    variant_id = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")
    now = datetime(2024, 6, 1, 10, 0)
    return Order(
        id=f"o-{number[-6:].lower()}",
        order_number=number,
        customer=CustomerDetails(name="Ada", phone="555 0100 200", address="12 Row", city="London"),
        subtotal=Decimal("249.99"),
        discount_amount=Decimal("0"),
        shipping=Decimal("0"),
        total_amount=Decimal("249.99"),
        items=(
            OrderItem(
                id=f"i-{number[-6:].lower()}",
                product_id=seeded.shirt.id,
                variant_id=variant_id,
                product_name="Linen Shirt",
                price_at_purchase=Decimal("249.99"),
                quantity=1,
                size="S",
                color="White",
            ),
        ),
        user_id=user_id,
        created_at=now,
        updated_at=now,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog reads
# ═══════════════════════════════════════════════════════════════════════════════


async def test_listing_filters(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    assert await _slugs(storage) == {"linen-shirt", "silk-scarf", "eau-de-parfum"}
    assert await _slugs(storage, categories=("perfumes",)) == {"eau-de-parfum"}
    assert await _slugs(storage, categories=("perfumes", "clothing")) == {
        "linen-shirt", "silk-scarf", "eau-de-parfum",
    }
    assert await _slugs(storage, price_min=Decimal("100"), price_max=Decimal("180")) == {"silk-scarf"}
    assert await _slugs(storage, colors=("WHITE",)) == {"linen-shirt"}
    assert await _slugs(storage, colors=("re", "navy")) == {"silk-scarf", "linen-shirt"}
    assert await _slugs(storage, search="SILK") == {"silk-scarf"}
    assert await _slugs(storage, search="parfum description") == {"eau-de-parfum"}
    assert await _slugs(storage, featured=True) == {"silk-scarf"}


async def test_category_match_any(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    query = K.build_query(
        K.FilterSelections(categories=("perfumes", "shoes")),
        K.CategoryPolicy.MATCH_ANY,
    )

    assert {p.slug for p in ok(await storage.fetch_products(query))} == {"eau-de-parfum"}


async def test_in_stock_filter(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    ok(await storage.create_product(product_draft(
        seeded.clothing.id,
        K.VariantDraft(sku="TEE-M", size="M", stock_quantity=0),
        name="Sold Out Tee",
        slug="sold-out-tee",
    )))

    assert "sold-out-tee" in await _slugs(storage)
    assert "sold-out-tee" not in await _slugs(storage, in_stock=True)


async def test_listing_fetches_a_probe_row(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    rows = ok(await storage.fetch_products(_query(page_size=2)))

    page = K.paginate(rows, page_size=2)

    assert len(rows) == 3
    assert len(page.items) == 2
    assert page.has_next
    assert len(ok(await storage.fetch_products(_query(page=2, page_size=2)))) == 1


async def test_product_round_trip(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    shirt = ok(await storage.fetch_product_by_slug("linen-shirt"))

    assert shirt.category_slug == "clothing"
    assert [v.sku for v in shirt.variants] == ["SHIRT-S-WHT", "SHIRT-M-WHT", "SHIRT-M-NVY"]
    assert [i.image_url for i in shirt.images] == [
        "/uploads/products/shirt-front.jpg",
        "/uploads/products/shirt-back.jpg",
    ]
    assert shirt.base_price == Decimal("249.99")
    assert K.primary_image(shirt) == "/uploads/products/shirt-front.jpg"
    assert ok(await storage.fetch_product(shirt.id)) == shirt


async def test_unknown_and_inactive_products(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    draft = replace(product_draft(seeded.clothing.id, name="Hidden", slug="hidden"), is_active=False)
    ok(await storage.create_product(draft))

    assert err(await storage.fetch_product_by_slug("nope")) == NotFoundError("product", "nope")
    assert isinstance(err(await storage.fetch_product_by_slug("hidden")), NotFoundError)
    assert ok(await storage.fetch_product_by_slug("hidden", include_inactive=True)).is_active is False
    assert "hidden" not in await _slugs(storage)


async def test_related_products_share_the_category(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    related = ok(await storage.fetch_related(seeded.shirt))

    assert [p.slug for p in related] == ["silk-scarf"]


async def test_categories(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    dresses = ok(await storage.create_category(category_draft("dresses", parent_id=seeded.clothing.id)))

    top = ok(await storage.fetch_categories())
    children = ok(await storage.fetch_categories(seeded.clothing.id))

    assert {c.slug for c in top} == {"clothing", "perfumes"}
    assert [c.slug for c in children] == ["dresses"]
    assert len(ok(await storage.fetch_all_categories())) == 3
    assert ok(await storage.fetch_category_by_slug("dresses")).id == dresses.id
    assert isinstance(err(await storage.fetch_category_by_slug("shoes")), NotFoundError)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog writes
# ═══════════════════════════════════════════════════════════════════════════════


async def test_duplicate_slug_is_a_conflict(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    problem = err(await storage.create_category(category_draft("clothing")))

    assert problem == ConflictError("Cannot create category: conflicts with existing data")


async def test_category_deletion_rules(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    empty = ok(await storage.create_category(category_draft("accessories")))

    assert isinstance(err(await storage.delete_category(seeded.clothing.id)), ConflictError)
    assert isinstance(
        err(await storage.update_category(empty.id, category_draft("accessories", parent_id=empty.id))),
        ConflictError,
    )
    assert ok(await storage.delete_category(empty.id)) is None
    assert isinstance(err(await storage.delete_category(empty.id)), NotFoundError)


async def test_update_product_keeps_variant_ids_by_sku(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    keep = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")
    dropped = seeded.variant_id(seeded.shirt, "SHIRT-M-WHT")
    ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, keep, 1))
    ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, dropped, 1))

    updated = ok(await storage.update_product(seeded.shirt.id, product_draft(
        seeded.clothing.id,
        K.VariantDraft(sku="SHIRT-L-WHT", size="L", color="White", stock_quantity=7),
        K.VariantDraft(sku="SHIRT-S-WHT", size="S", color="White", stock_quantity=9),
        name="Linen Shirt",
        slug="linen-shirt",
        base_price="229.99",
        image_urls=("/uploads/products/shirt-back.jpg",),
    )))

    assert [v.sku for v in updated.variants] == ["SHIRT-L-WHT", "SHIRT-S-WHT"]
    assert updated.variants[1].id == keep
    assert updated.variants[1].stock_quantity == 9
    assert updated.base_price == Decimal("229.99")
    assert [i.image_url for i in updated.images] == ["/uploads/products/shirt-back.jpg"]
    assert [e.variant.id for e in ok(await storage.fetch_cart(GUEST))] == [keep]


async def test_replace_variants_and_add_images(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    product = ok(await storage.replace_variants(
        seeded.scarf.id,
        (K.VariantDraft(sku="SCARF-OS-BLU", size="One Size", color="Blue", stock_quantity=4),),
    ))
    assert [v.sku for v in product.variants] == ["SCARF-OS-BLU"]

    product = ok(await storage.add_images(seeded.scarf.id, ("/a.jpg", "/b.jpg")))
    assert [(i.image_url, i.display_order) for i in product.images] == [("/a.jpg", 0), ("/b.jpg", 1)]


async def test_delete_product_is_soft_when_orders_reference_it(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    ok(await storage.create_order(_order(seeded)))

    assert ok(await storage.delete_product(seeded.shirt.id)) is False
    assert ok(await storage.fetch_product(seeded.shirt.id)).is_active is False
    assert ok(await storage.delete_product(seeded.perfume.id)) is True
    assert isinstance(err(await storage.fetch_product(seeded.perfume.id)), NotFoundError)


# ═══════════════════════════════════════════════════════════════════════════════
# Stock
# ═══════════════════════════════════════════════════════════════════════════════


async def test_conditional_decrement(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    big = seeded.variant_id(seeded.perfume, "EDP-100")

    ok(await storage.decrement_stock(big, 2))
    problem = err(await storage.decrement_stock(big, 2))

    assert isinstance(problem, ConflictError)
    assert problem.message == f"Variant {big}: requested 2, only 1 left"
    assert isinstance(err(await storage.decrement_stock("missing", 1)), NotFoundError)

    ok(await storage.restock(big, 2))
    perfume = ok(await storage.fetch_product(seeded.perfume.id))
    assert perfume.variant(big).stock_quantity == 3  # type: ignore[union-attr]


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


async def test_adding_the_same_variant_grows_one_row(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    small = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")

    ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, small, 2))
    line = ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, small, 1))

    entries = ok(await storage.fetch_cart(GUEST))
    assert line.quantity == 3
    assert [(e.variant.id, e.line.quantity) for e in entries] == [(small, 3)]


async def test_cart_respects_stock_and_ownership(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    small = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")
    line = ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, small, 4))

    assert err(await storage.upsert_cart_line(GUEST, seeded.shirt.id, small, 2)) == ValidationError(
        "Only 5 left in stock", field="quantity",
    )
    assert isinstance(err(await storage.upsert_cart_line(GUEST, seeded.scarf.id, small, 1)), NotFoundError)
    assert isinstance(err(await storage.set_line_quantity(SHOPPER, line.id, 1)), NotFoundError)
    assert isinstance(err(await storage.set_line_quantity(GUEST, line.id, 6)), ValidationError)
    assert ok(await storage.set_line_quantity(GUEST, line.id, 5)).quantity == 5
    assert isinstance(err(await storage.delete_cart_line(SHOPPER, line.id)), NotFoundError)
    assert ok(await storage.delete_cart_line(GUEST, line.id)) is None
    assert ok(await storage.fetch_cart(GUEST)) == []


async def test_merge_moves_the_guest_cart_and_code(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    small = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")
    scarf = seeded.variant_id(seeded.scarf, "SCARF-OS-RED")
    user = OwnerKey.for_user("user-9")
    ok(await storage.upsert_cart_line(GUEST, seeded.shirt.id, small, 1))
    ok(await storage.upsert_cart_line(GUEST, seeded.scarf.id, scarf, 1))
    ok(await storage.set_cart_discount(GUEST, seeded.save20.id))
    ok(await storage.upsert_cart_line(user, seeded.shirt.id, small, 2))

    merged = ok(await storage.merge_cart("guest-1", "user-9"))

    assert {line.variant_id: line.quantity for line in merged} == {small: 3, scarf: 1}
    assert all(line.owner == user for line in merged)
    assert ok(await storage.fetch_cart(GUEST)) == []
    assert len(ok(await storage.fetch_cart(user))) == 2
    assert ok(await storage.get_cart_discount(user)).id == seeded.save20.id  # type: ignore[union-attr]
    assert ok(await storage.get_cart_discount(GUEST)) is None


async def test_clear_cart_drops_lines_and_code(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    small = seeded.variant_id(seeded.shirt, "SHIRT-S-WHT")
    ok(await storage.upsert_cart_line(SHOPPER, seeded.shirt.id, small, 1))
    ok(await storage.set_cart_discount(SHOPPER, seeded.save20.id))

    assert ok(await storage.clear_cart(SHOPPER)) == 1
    assert ok(await storage.fetch_cart(SHOPPER)) == []
    assert ok(await storage.get_cart_discount(SHOPPER)) is None


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


async def test_codes_are_looked_up_case_insensitively(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    found = ok(await storage.fetch_discount(" Save20 "))

    assert found is not None
    assert found.code == "SAVE20"
    assert found.percentage == Decimal("20")
    assert ok(await storage.fetch_discount("NOPE")) is None
    assert {d.code for d in ok(await storage.list_discounts())} == {"SAVE20", "ONCE"}


async def test_redemption_respects_the_cap(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    once = seeded.single_use.id

    ok(await storage.redeem_discount(once))
    assert err(await storage.redeem_discount(once)) == ConflictError(
        "This discount code is no longer available", entity="discount", key=once,
    )

    ok(await storage.release_discount(once))
    ok(await storage.redeem_discount(once))
    record = ok(await storage.fetch_discount("ONCE"))
    assert record is not None
    assert record.current_uses == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


async def test_order_round_trip(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    created = ok(await storage.create_order(_order(seeded)))

    assert created.status is OrderStatus.PENDING
    assert created.total_amount == Decimal("249.99")
    assert created.customer.city == "London"
    assert [(i.product_name, i.size, i.quantity) for i in created.items] == [("Linen Shirt", "S", 1)]
    assert ok(await storage.fetch_order_by_number("ORD-20240601-AAAAAA")) == created
    assert isinstance(err(await storage.fetch_order("missing")), NotFoundError)


async def test_status_update_is_compare_and_set(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    order = ok(await storage.create_order(_order(seeded)))

    confirmed = ok(await storage.update_order_status(order.id, OrderStatus.CONFIRMED, OrderStatus.PENDING))
    stale = err(await storage.update_order_status(order.id, OrderStatus.CANCELLED, OrderStatus.PENDING))

    assert confirmed.status is OrderStatus.CONFIRMED
    assert isinstance(stale, ConflictError)
    assert stale.message == "Order status changed to confirmed in the meantime"
    assert isinstance(
        err(await storage.update_order_status("missing", OrderStatus.CONFIRMED, OrderStatus.PENDING)),
        NotFoundError,
    )


async def test_order_listing_and_notes(storage: SQLAlchemyStorage, seeded: Seeded) -> None:
    first = ok(await storage.create_order(_order(seeded, "ORD-20240601-AAAAAA", "user-1")))
    ok(await storage.create_order(_order(seeded, "ORD-20240601-BBBBBB", None)))
    ok(await storage.update_order_status(first.id, OrderStatus.CONFIRMED, OrderStatus.PENDING))

    mine = ok(await storage.list_orders(OrderQuery(user_id="user-1")))
    confirmed = ok(await storage.list_orders(OrderQuery(status=OrderStatus.CONFIRMED)))
    later = ok(await storage.list_orders(OrderQuery(start=datetime(2024, 6, 2))))

    assert [o.order_number for o in mine] == ["ORD-20240601-AAAAAA"]
    assert [o.id for o in confirmed] == [first.id]
    assert later == []
    assert ok(await storage.update_order_notes(first.id, "Leave at the door")).notes == "Leave at the door"

    ok(await storage.delete_order(first.id))
    assert isinstance(err(await storage.fetch_order(first.id)), NotFoundError)
