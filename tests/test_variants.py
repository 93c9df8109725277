import pytest

from storefront import catalog as K

from tests.factories import err, ok, perfume, product, variant


# ═══════════════════════════════════════════════════════════════════════════════
# Selectors
# ═══════════════════════════════════════════════════════════════════════════════


def test_fragrance_never_shows_a_colour_axis() -> None:
    p = perfume(("50ml", 2), ("100ml", 1), color="Amber")

    selectors = K.resolve_selectors(p)

    assert selectors.kind is K.ProductKind.FRAGRANCE
    assert selectors.axes == (K.Axis.VOLUME,)
    assert not selectors.has_color_axis
    assert selectors.is_volume_only
    assert selectors.colors == ()


@pytest.mark.parametrize(
    ("raw", "volume"),
    [("50ml", 50), ("50 ml", 50), ("50ML", 50), (" 100 Ml ", 100), ("30", 30)],
)
def test_parse_volume_accepts_ml_spellings(raw: str, volume: int) -> None:
    assert K.parse_volume(raw) == volume
    assert K.volume_label(volume) == f"{volume}ml"


@pytest.mark.parametrize("raw", [None, "", "travel", "50oz", "1.5ml", "ml"])
def test_parse_volume_rejects_everything_else(raw: str | None) -> None:
    assert K.parse_volume(raw) is None


def test_volume_options_sorted_deduplicated_and_unparseable_dropped() -> None:
    p = perfume(("100ml", 1), ("travel", 5), ("50 ml", 0), ("30ml", 2), ("50ml", 3))

    selectors = K.resolve_selectors(p)

    assert selectors.labels == ("30ml", "50ml", "100ml")
    option = selectors.option("50ml")
    assert option is not None
    assert option.source_sizes == ("50 ml", "50ml")


def test_sold_out_volume_is_listed_but_unavailable() -> None:
    p = perfume(("50ml", 0), ("100ml", 3))

    assert K.resolve_selectors(p).labels == ("50ml", "100ml")
    assert not K.is_option_available(p, "50ml")
    assert K.is_option_available(p, "100ml")


def test_custom_fragrance_slug() -> None:
    p = product(variant("50ml", "Amber"), category_slug="scents")

    assert K.product_kind(p) is K.ProductKind.APPAREL
    assert K.product_kind(p, fragrance_slug="scents") is K.ProductKind.FRAGRANCE


def test_apparel_keeps_size_insertion_order_and_collects_colours() -> None:
    p = product(
        variant("M", "Red"),
        variant("S", "Red"),
        variant("M", "Blue"),
        variant("L", "Blue"),
        variant("", "Green"),
    )

    selectors = K.resolve_selectors(p)

    assert selectors.kind is K.ProductKind.APPAREL
    assert selectors.axes == (K.Axis.SIZE, K.Axis.COLOR)
    assert selectors.labels == ("M", "S", "L")
    assert selectors.colors == ("Red", "Blue", "Green")


def test_product_without_colours_is_size_only() -> None:
    p = product(variant("XL"), variant("S"), variant("XL"))

    selectors = K.resolve_selectors(p)

    assert selectors.kind is K.ProductKind.GENERIC
    assert selectors.axes == (K.Axis.SIZE,)
    assert selectors.labels == ("XL", "S")


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution & availability
# ═══════════════════════════════════════════════════════════════════════════════


def test_resolve_without_size_is_none() -> None:
    p = product(variant("M", "Red"))

    assert K.resolve_variant(p, None, "Red") is None
    assert K.resolve_variant(p, "", "Red") is None


def test_apparel_needs_exact_size_and_colour() -> None:
    red = variant("M", "Red")
    p = product(red, variant("M", "Blue"))

    assert K.resolve_variant(p, "M") is None
    assert K.resolve_variant(p, "M", "Red") == red
    assert K.resolve_variant(p, "M", "red") is None
    assert K.resolve_variant(p, "m", "Red") is None


def test_generic_resolves_by_size_alone() -> None:
    xl = variant("XL")
    p = product(variant("S"), xl)

    assert K.resolve_variant(p, "XL") == xl
    assert K.resolve_variant(p, "XL", "ignored") == xl


def test_fragrance_prefers_the_spelling_with_stock() -> None:
    p = perfume(("50 ml", 0), ("50ml", 4))

    chosen = K.resolve_variant(p, "50ml")

    assert chosen is not None
    assert chosen.size == "50ml"
    assert chosen.stock_quantity == 4
    assert K.resolve_variant(p, "50 ml") == chosen


def test_fragrance_falls_back_to_first_match_when_all_sold_out() -> None:
    p = perfume(("50 ml", 0), ("50ml", 0))

    chosen = K.resolve_variant(p, "50ml")

    assert chosen is not None
    assert chosen.size == "50 ml"


def test_option_availability_ignores_colour() -> None:
    p = product(variant("M", "Red", stock=0), variant("M", "Blue", stock=1), variant("S", "Red", stock=0))

    assert K.is_option_available(p, "M")
    assert not K.is_option_available(p, "S")
    assert not K.is_option_available(p, "XL")


def test_colour_availability_is_scoped_to_size() -> None:
    p = product(variant("M", "Red", stock=0), variant("S", "Red", stock=2))

    assert not K.is_color_available(p, "M", "Red")
    assert K.is_color_available(p, "S", "Red")


@pytest.mark.parametrize(
    ("stock", "level"),
    [
        (0, K.StockLevel.OUT_OF_STOCK),
        (1, K.StockLevel.LOW_STOCK),
        (4, K.StockLevel.LOW_STOCK),
        (5, K.StockLevel.IN_STOCK),
        (40, K.StockLevel.IN_STOCK),
    ],
)
def test_classify_stock(stock: int, level: K.StockLevel) -> None:
    assert K.classify_stock(variant("M", stock=stock)) is level


@pytest.mark.parametrize(
    ("requested", "stock", "expected"),
    [(0, 3, 1), (2, 3, 2), (10, 3, 3), (-4, None, 1), (7, None, 7)],
)
def test_clamp_quantity(requested: int, stock: int | None, expected: int) -> None:
    resolved = variant("M", stock=stock) if stock is not None else None
    assert K.clamp_quantity(requested, resolved) == expected


# ═══════════════════════════════════════════════════════════════════════════════
# Selection gate
# ═══════════════════════════════════════════════════════════════════════════════


def test_missing_size_on_apparel_asks_for_size_and_colour() -> None:
    problem = err(K.select_variant(product(variant("M", "Red")), None))

    assert problem.message == "Please select size and color"
    assert problem.field == "size"
    assert problem.reason is K.SelectionRejection.MISSING_SIZE


def test_missing_colour_on_apparel() -> None:
    problem = err(K.select_variant(product(variant("M", "Red")), "M"))

    assert problem.message == "Please select size and color"
    assert problem.field == "color"
    assert problem.reason is K.SelectionRejection.MISSING_COLOR


def test_missing_volume_on_fragrance() -> None:
    problem = err(K.select_variant(perfume(("50ml", 3)), None))

    assert problem.message == "Please select a size/volume"


def test_unknown_combination() -> None:
    problem = err(K.select_variant(product(variant("M", "Red")), "M", "Blue"))

    assert problem.message == "Linen Shirt: the selected option is not available"
    assert problem.reason is K.SelectionRejection.UNAVAILABLE


def test_sold_out_selection_is_rejected() -> None:
    problem = err(K.select_variant(product(variant("S", "Red", stock=0)), "S", "Red"))

    assert problem.message == "Linen Shirt (S) is out of stock"
    assert problem.reason is K.SelectionRejection.OUT_OF_STOCK


def test_selection_clamps_quantity_and_reports_level() -> None:
    chosen = ok(K.select_variant(product(variant("S", "Red", stock=3)), "S", "Red", quantity=9))

    assert chosen.variant.size == "S"
    assert chosen.quantity == 3
    assert chosen.stock_level is K.StockLevel.LOW_STOCK
