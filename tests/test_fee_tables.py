import pytest

from sellerdash.errors import FeeTableError
from sellerdash.models import FeeCategory, ShopVariant
from sellerdash.pricing.fee_tables import (
    INITIAL_FEE_TABLES,
    FeeTableRegistry,
    find_category,
    get_default,
)


def test_every_variant_has_a_non_empty_table():
    for variant in ShopVariant:
        table = INITIAL_FEE_TABLES[variant]
        assert table
        assert get_default(table) is table[-1]
        assert len({c.id for c in table}) == len(table)


def test_default_rates():
    assert get_default(INITIAL_FEE_TABLES[ShopVariant.SHOPEE_MALL]).rate == pytest.approx(12.60)
    assert get_default(INITIAL_FEE_TABLES[ShopVariant.SHOPEE_NORMAL]).rate == pytest.approx(7.00)
    assert get_default(INITIAL_FEE_TABLES[ShopVariant.TIKTOK_SHOP]).rate == pytest.approx(6.05)


def test_get_default_rejects_empty_table():
    with pytest.raises(FeeTableError):
        get_default([])


def test_find_category():
    table = INITIAL_FEE_TABLES[ShopVariant.SHOPEE_MALL]
    assert find_category(table, "monitor").rate == pytest.approx(7.80)
    assert find_category(table, "phone") is None
    assert find_category(table, None) is None


def test_get_table_returns_copy():
    registry = FeeTableRegistry()
    table = registry.get_table(ShopVariant.TIKTOK_SHOP)
    table.clear()
    assert registry.get_table(ShopVariant.TIKTOK_SHOP)


def test_update_table_changes_names_and_rates_only():
    registry = FeeTableRegistry()
    table = registry.get_table("SHOPEE_NORMAL")
    # 顺序打乱也可以，结果保持原顺序
    edited = [FeeCategory(c.id, c.name + "*", c.rate + 1) for c in reversed(table)]

    updated = registry.update_table("SHOPEE_NORMAL", edited)
    assert [c.id for c in updated] == [c.id for c in table]
    assert updated[0].rate == pytest.approx(table[0].rate + 1)
    assert updated[0].name.endswith("*")
    assert registry.get_table(ShopVariant.SHOPEE_NORMAL) == updated
    # 其他店铺类型不受影响
    assert registry.get_table(ShopVariant.SHOPEE_MALL) == INITIAL_FEE_TABLES[ShopVariant.SHOPEE_MALL]


def test_update_table_rejects_id_changes():
    registry = FeeTableRegistry()
    table = registry.get_table(ShopVariant.SHOPEE_MALL)

    with pytest.raises(FeeTableError):
        registry.update_table(ShopVariant.SHOPEE_MALL, table[:-1])
    with pytest.raises(FeeTableError):
        registry.update_table(ShopVariant.SHOPEE_MALL, table + [FeeCategory("new", "新类目", 1.0)])
    with pytest.raises(FeeTableError):
        registry.update_table(ShopVariant.SHOPEE_MALL, table + [table[0]])
    assert registry.get_table(ShopVariant.SHOPEE_MALL) == table


@pytest.mark.parametrize("rate", [-1, float("nan"), float("inf"), "abc"])
def test_update_table_rejects_bad_rates(rate):
    registry = FeeTableRegistry()
    table = registry.get_table(ShopVariant.TIKTOK_SHOP)
    edited = [FeeCategory(table[0].id, table[0].name, rate)] + table[1:]
    with pytest.raises(FeeTableError):
        registry.update_table(ShopVariant.TIKTOK_SHOP, edited)


def test_reset_restores_static_tables():
    registry = FeeTableRegistry()
    table = registry.get_table(ShopVariant.SHOPEE_MALL)
    registry.update_table(ShopVariant.SHOPEE_MALL, [FeeCategory(c.id, c.name, 0) for c in table])
    registry.reset()
    assert registry.get_table(ShopVariant.SHOPEE_MALL) == table


def test_unknown_variant_falls_back():
    registry = FeeTableRegistry()
    assert registry.get_table("EBAY") == registry.get_table(ShopVariant.SHOPEE_NORMAL)


def test_registry_rejects_empty_initial_table():
    with pytest.raises(FeeTableError):
        FeeTableRegistry({ShopVariant.SHOPEE_MALL: []})


@pytest.mark.parametrize("variant", ["EBAY", "", None])
def test_update_table_rejects_unknown_variant(variant):
    registry = FeeTableRegistry()
    normal = registry.get_table(ShopVariant.SHOPEE_NORMAL)
    with pytest.raises(FeeTableError):
        registry.update_table(variant, [FeeCategory(c.id, c.name, 99.0) for c in normal])
    # 回退只用于读取，写入不能改到其他店铺类型的费率表
    assert registry.get_table(ShopVariant.SHOPEE_NORMAL) == normal


def test_update_table_rejects_variant_not_in_registry():
    registry = FeeTableRegistry({ShopVariant.SHOPEE_MALL: INITIAL_FEE_TABLES[ShopVariant.SHOPEE_MALL]})
    table = INITIAL_FEE_TABLES[ShopVariant.TIKTOK_SHOP]
    with pytest.raises(FeeTableError):
        registry.update_table(ShopVariant.TIKTOK_SHOP, table)
