import threading

import pytest

from sellerdash.config import AppConfig
from sellerdash.errors import FeeTableError, InvalidInputError, UnknownProductError
from sellerdash.models import FeeCategory, ShopVariant
from sellerdash.presentation import ViewOptions
from sellerdash.service import DashboardService, ExportService, ImportService

INFO_CSV = "sku,name,costPrice\nA1,Widget,100000\nX_RED,Shirt red,50\nX_BLUE,Shirt blue,70\n"
INVENTORY_CSV = "sku,stockHN,stockHCM,sales30d\nA1,5,0,2\nX_RED,3,0,1\nX_BLUE,2,0,4\n"
PRICING_CSV = "sku,priceWeb,priceShopee\nA1,150000,140000\nX_RED,0,100\nX_BLUE,0,120\n"


@pytest.fixture
def session():
    session = DashboardService(config=AppConfig())
    importer = ImportService()
    for source, content in (("info", INFO_CSV), ("inventory", INVENTORY_CSV), ("pricing", PRICING_CSV)):
        session.load_source(source, importer.import_file(content, source))
    return session


def test_load_sources_merges(session):
    assert [p.id for p in session.products] == ["A1", "X_RED", "X_BLUE"]
    product = session.get_product(" a1 ")
    assert product.name == "Widget"
    assert product.fee_category_id == "default"


def test_unknown_product(session):
    with pytest.raises(UnknownProductError) as exc:
        session.get_product("nope")
    assert exc.value.product_id == "NOPE"


def test_unknown_source(session):
    with pytest.raises(ValueError):
        session.load_source("orders", [])


def test_set_category_recomputes_and_survives_refresh(session):
    updated = session.set_category("A1", "monitor")
    assert updated.fee_rate == pytest.approx(7.80)
    assert session.get_product("A1") == updated
    # 下一次整体合并得到同样的结果
    session.refresh()
    assert session.get_product("A1") == updated


def test_set_foreign_category_uses_default(session):
    updated = session.set_category("A1", "phone")
    assert updated.fee_category_id == "default"
    assert session.overrides.get("A1") == "phone"
    session.set_shop_variant(ShopVariant.TIKTOK_SHOP)
    assert session.get_product("A1").fee_category_id == "phone"


def test_shop_variant_switch_keeps_selection(session):
    session.set_category("A1", "sys_laptop")
    session.set_shop_variant("SHOPEE_NORMAL")
    product = session.get_product("A1")
    assert product.fee_category_id == "sys_laptop"
    assert product.fee_rate == pytest.approx(1.50)
    with pytest.raises(ValueError):
        session.set_shop_variant("LAZADA")


def test_service_fee_toggle(session):
    with_fee = session.get_product("A1").platform_fee
    session.set_service_fee(False)
    assert session.get_product("A1").platform_fee == pytest.approx(with_fee - 3500)
    assert session.fee_breakdown("A1").service == 0


def test_update_field_writes_back_to_source(session):
    session.update_field("A1", "price_market", "200000")
    assert session.get_product("A1").price_market == 200000
    assert session.source_rows("pricing")[0]["price_market"] == "200000"
    with pytest.raises(ValueError):
        session.update_field("A1", "profit", 1)


def test_update_field_adds_missing_row():
    session = DashboardService()
    session.load_source("pricing", [{"sku": "P", "priceShopee": 1000}])
    session.update_field("P", "stock_a", 4)
    assert session.get_product("P").stock_a == 4
    assert session.source_rows("inventory") == [{"id": "P", "stock_a": 4, "stock_b": None, "sales_30d": None}]


def test_save_product_creates_new(session):
    product = session.save_product("new-1", fee_category_id="monitor", name="Screen", price_market=3000000, cost_price=2000000)
    assert product.id == "NEW-1"
    assert product.name == "Screen"
    assert product.fee_category_id == "monitor"
    assert len(session.source_rows("inventory")) == 4
    with pytest.raises(ValueError):
        session.save_product("  ")
    with pytest.raises(ValueError):
        session.save_product("A1", color="red")


def test_custom_rate(session):
    assert session.set_custom_rate("A1", 1.0).fee_rate == pytest.approx(1.0)
    assert session.set_custom_rate("A1", None).fee_rate == pytest.approx(12.60)


def test_update_fee_table_refreshes(session):
    table = session.active_table
    edited = [FeeCategory(c.id, c.name, 5.0 if c.id == "default" else c.rate) for c in table]
    session.update_fee_table(ShopVariant.SHOPEE_MALL, edited)
    assert session.get_product("A1").fee_rate == pytest.approx(5.0)
    with pytest.raises(FeeTableError):
        session.update_fee_table(ShopVariant.SHOPEE_MALL, edited[:-1])


def test_view_stats_and_charts(session):
    grouped = session.view(ViewOptions(group_variants=True, sort_field="id"))
    assert [p.id for p in grouped] == ["A1", "X"]
    assert grouped[1].price_market == pytest.approx(110)

    stats = session.stats()
    assert stats["total_items"] == 3
    assert stats["loss_making"] == 2

    charts = session.chart_data()
    assert charts["profit_extremes"][0]["name"] == "A1"
    assert charts["profit_by_category"] == [{"name": "其他 / 默认", "value": pytest.approx(session.get_product("A1").profit)}]


def test_threshold_only_changes_view(session):
    session.set_low_stock_threshold(3)
    assert session.config.low_stock_threshold == 3
    assert [p.id for p in session.view(ViewOptions(status="low_stock", low_stock_threshold=3))] == ["X_BLUE"]


def test_ai_summary(session):
    summary = session.ai_summary()
    assert summary["product_count"] == 3
    assert summary["config"]["shop_variant"] == "SHOPEE_MALL"


def test_export_service(session, tmp_path):
    exporter = ExportService()
    content, name = exporter.get_csv_bytes(session)
    assert name == "report_SHOPEE_MALL.csv"
    assert "Widget" in content.decode("utf-8")
    data, xlsx_name = exporter.get_excel_bytes(session)
    assert xlsx_name.endswith(".xlsx") and data.getvalue()
    assert exporter.export_data(session, str(tmp_path)).endswith(".csv")
    assert exporter.get_quick_report(session)["商品总数"] == 3


def test_template():
    content, name = ImportService().get_template("info")
    assert name == "template_info.csv"
    assert content.decode("utf-8").endswith("sku,name,costPrice\n")


@pytest.mark.parametrize("rows", ["abc", b"abc", {"sku": "A1"}, 7])
def test_load_source_rejects_non_collection(session, rows):
    before = session.products
    with pytest.raises(InvalidInputError):
        session.load_source("info", rows)
    assert session.products == before
    assert len(session.source_rows("info")) == 3


def test_load_source_none_clears_source(session):
    session.load_source("pricing", None)
    assert session.source_rows("pricing") == []
    assert session.get_product("A1").price_market == 0


def test_update_fee_table_unknown_variant(session):
    normal = session.registry.get_table(ShopVariant.SHOPEE_NORMAL)
    with pytest.raises(FeeTableError):
        session.update_fee_table("EBAY", [FeeCategory(c.id, c.name, 99.0) for c in normal])
    assert session.registry.get_table(ShopVariant.SHOPEE_NORMAL) == normal


def test_threshold_setter_waits_for_lock(session):
    session._lock.acquire()
    done = threading.Event()
    worker = threading.Thread(target=lambda: (session.set_low_stock_threshold(2), done.set()))
    worker.start()
    try:
        assert not done.wait(0.2)
        assert session.config.low_stock_threshold == 10
    finally:
        session._lock.release()
    worker.join(2)
    assert done.is_set()
    assert session.config.low_stock_threshold == 2
