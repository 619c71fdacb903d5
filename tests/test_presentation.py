import pytest

from sellerdash.models import ShopVariant, UnifiedProduct
from sellerdash.presentation import (
    STATUS_BEST_SELLER,
    STATUS_LOSS,
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    ViewOptions,
    best_sellers,
    compute_stats,
    derive_view,
    filter_by_category,
    filter_by_status,
    filter_by_text,
    group_variants,
    profit_by_category,
    profit_extremes,
    sort_products,
    variant_base_id,
)
from sellerdash.pricing.fee_tables import INITIAL_FEE_TABLES


def make(id, **kwargs):
    return UnifiedProduct(id=id, name=kwargs.pop("name", id.lower()), **kwargs)


@pytest.fixture
def products():
    return [
        make("A", profit=100, stock_a=0, stock_b=0, sales_30d=5, fee_category_id="monitor"),
        make("B", name="Gaming Mouse", profit=-20, stock_a=3, stock_b=2, sales_30d=0, fee_category_id="mouse_kb"),
        make("C", profit=0, stock_a=50, stock_b=50, sales_30d=9, fee_category_id="monitor"),
        make("D", profit=300, stock_a=1, stock_b=20, sales_30d=5, fee_category_id="default"),
    ]


def test_text_filter_matches_id_or_name(products):
    assert [p.id for p in filter_by_text(products, "mouse")] == ["B"]
    assert [p.id for p in filter_by_text(products, "c")] == ["C"]
    assert filter_by_text(products, "") == products


def test_category_filter(products):
    assert [p.id for p in filter_by_category(products, "monitor")] == ["A", "C"]
    assert filter_by_category(products, "all") == products
    assert filter_by_category(products, None) == products


def test_status_filters(products):
    assert [p.id for p in filter_by_status(products, STATUS_LOSS)] == ["B", "C"]
    assert [p.id for p in filter_by_status(products, STATUS_LOW_STOCK, 10)] == ["B"]
    assert [p.id for p in filter_by_status(products, STATUS_OUT_OF_STOCK)] == ["A"]
    with pytest.raises(ValueError):
        filter_by_status(products, "hot")


def test_best_sellers_rank_by_sales_and_keep_ties_in_order(products):
    assert [p.id for p in best_sellers(products)] == ["C", "A", "D"]
    assert [p.id for p in best_sellers(products, limit=1)] == ["C"]


def test_sort_is_stable_in_both_directions(products):
    assert [p.id for p in sort_products(products, "sales_30d", "asc")] == ["B", "A", "D", "C"]
    assert [p.id for p in sort_products(products, "sales_30d", "desc")] == ["C", "A", "D", "B"]


def test_text_sort_ignores_case():
    items = [make("1", name="beta"), make("2", name="Alpha"), make("3", name="alpha")]
    assert [p.id for p in sort_products(items, "name")] == ["2", "3", "1"]


def test_sort_rejects_unknown_field(products):
    with pytest.raises(ValueError):
        sort_products(products, "color")
    with pytest.raises(ValueError):
        sort_products(products, "profit", "up")


@pytest.mark.parametrize("product_id, expected", [
    ("X_RED", "X"),
    ("A_B_C", "A_B"),
    ("SKU-01", "SKU"),
    ("A-B_C", "A-B"),
    ("_X", "_X"),
    ("PLAIN", "PLAIN"),
])
def test_variant_base_id(product_id, expected):
    assert variant_base_id(product_id) == expected


def test_grouping_scenario():
    items = [
        make("X_RED", stock_a=3, price_market=100, profit=10, sales_30d=1),
        make("X_BLUE", stock_a=2, price_market=120, profit=30, sales_30d=2),
        make("Y", stock_a=9, price_market=50),
    ]
    grouped = group_variants(items)
    assert [g.id for g in grouped] == ["X", "Y"]
    x = grouped[0]
    assert x.total_stock == 5
    assert x.price_market == pytest.approx(110)
    assert x.variant_count == 2
    assert x.variant_ids == ["X_RED", "X_BLUE"]
    assert x.profit == pytest.approx(40)
    assert x.sales_30d == 3
    assert x.name == "x_red"


def test_grouping_uses_plain_mean():
    items = [make("Z_1", cost_price=10), make("Z_2", cost_price=20), make("Z_3", cost_price=60)]
    assert group_variants(items)[0].cost_price == pytest.approx(30)


def test_derive_view_pipeline(products):
    view = derive_view(products, ViewOptions(category_id="monitor", sort_field="profit", sort_order="desc"))
    assert [p.id for p in view] == ["A", "C"]

    grouped = derive_view(
        [make("K_1", profit=1), make("K_2", profit=2), make("J", profit=0)],
        ViewOptions(group_variants=True),
    )
    assert [p.id for p in grouped] == ["J", "K"]


def test_best_seller_view_keeps_sales_rank(products):
    view = derive_view(products, ViewOptions(status=STATUS_BEST_SELLER, sort_field="profit", sort_order="asc"))
    assert [p.id for p in view] == ["C", "A", "D"]


def test_stats(products):
    stats = compute_stats(products, 10)
    assert stats == {"total_items": 4, "loss_making": 2, "low_stock": 2}


def test_profit_extremes():
    items = [make(str(i), profit=i * 10) for i in range(12)]
    chart = profit_extremes(items, size=2)
    assert [row["profit"] for row in chart] == [110, 100, 0, 10]


def test_profit_by_category(products):
    table = INITIAL_FEE_TABLES[ShopVariant.SHOPEE_MALL]
    items = products + [make("E", profit=5, fee_category_id="gone")]
    chart = {row["name"]: row["value"] for row in profit_by_category(items, table)}
    assert chart == {"显示器": 100, "其他 / 默认": 300, "其他": 5}


def test_grouping_keeps_first_list_price():
    items = [
        make("W_1", price_list=200, price_market=100),
        make("W_2", price_list=400, price_market=300),
    ]
    grouped = group_variants(items)[0]
    assert grouped.price_list == 200
    assert grouped.price_market == pytest.approx(200)
