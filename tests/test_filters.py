from decimal import Decimal

import pytest

from storefront import catalog as K

from tests.factories import product, variant


def _products(count: int) -> list[K.Product]:
    return [product(variant("M"), product_id=f"p-{i}", slug=f"item-{i}") for i in range(count)]


def test_defaults_fetch_one_extra_row() -> None:
    query = K.build_query(K.FilterSelections())

    assert query.limit == 13
    assert query.offset == 0
    assert query.category is None
    assert query.categories == ()
    assert not query.category_scope_widened
    assert query.active_only


def test_offset_follows_page() -> None:
    query = K.build_query(K.FilterSelections(page=3, page_size=10))

    assert (query.limit, query.offset) == (11, 20)


def test_single_category_filters_by_it() -> None:
    query = K.build_query(K.FilterSelections(categories=("dresses", " dresses ")))

    assert query.category == "dresses"
    assert query.category_slugs == ("dresses",)


def test_several_categories_widen_to_all_and_say_so() -> None:
    query = K.build_query(K.FilterSelections(categories=("dresses", "shoes")))

    assert query.category is None
    assert query.category_slugs == ()
    assert query.category_scope_widened


def test_several_categories_with_match_any() -> None:
    query = K.build_query(
        K.FilterSelections(categories=("dresses", "shoes")),
        K.CategoryPolicy.MATCH_ANY,
    )

    assert query.categories == ("dresses", "shoes")
    assert query.category_slugs == ("dresses", "shoes")
    assert not query.category_scope_widened


def test_price_colour_stock_and_search_pass_through() -> None:
    query = K.build_query(K.FilterSelections(
        price_min=Decimal("10"),
        price_max=Decimal("99.99"),
        colors=("Red", " red ", "NAVY", ""),
        in_stock=True,
        search="  silk ",
        featured=True,
    ))

    assert query.price_min == Decimal("10")
    assert query.price_max == Decimal("99.99")
    assert query.colors == ("red", "navy")
    assert query.in_stock
    assert query.search == "silk"
    assert query.featured


def test_blank_search_is_dropped() -> None:
    assert K.build_query(K.FilterSelections(search="   ")).search is None


@pytest.mark.parametrize("page", [0, -1])
def test_page_starts_at_one(page: int) -> None:
    with pytest.raises(ValueError):
        K.FilterSelections(page=page)


def test_paginate_trims_the_probe_row() -> None:
    page = K.paginate(_products(13), page_size=12, page=2)

    assert len(page.items) == 12
    assert page.has_next
    assert page.has_previous


def test_last_page_has_no_next() -> None:
    page = K.paginate(_products(12), page_size=12)

    assert len(page.items) == 12
    assert not page.has_next
    assert not page.has_previous


def test_size_filter_keeps_products_with_any_wanted_size() -> None:
    small = product(variant("S"), variant("M"), product_id="p-small")
    large = product(variant("XL"), product_id="p-large")
    bare = product(product_id="p-bare")

    kept = K.apply_size_filter([small, large, bare], ["M", "XXL"])

    assert kept == (small,)
    assert K.apply_size_filter([small, large], []) == (small, large)
