"""
合并计算引擎模块。
把商品主数据、库存销量、价格三个数据源按商品 ID 做全外连接，
确定每个商品适用的费用类目，并计算平台费用与利润。
"""
import dataclasses
import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from sellerdash.config import COLUMN_MAPPING
from sellerdash.errors import InvalidInputError
from sellerdash.models import (
    FeeCategory,
    FeeTable,
    RawInfoRecord,
    RawInventoryRecord,
    RawPricingRecord,
    ShopVariant,
    UnifiedProduct,
)
from sellerdash.pricing.calculator import compute_breakdown, compute_profit
from sellerdash.pricing.coercion import normalize_identifier, to_float, to_int, to_text
from sellerdash.pricing.fee_tables import FeeTableRegistry, find_category, get_default
from sellerdash.pricing.overrides import OverrideStore

logger = logging.getLogger("sellerdash.engine")

NAME_MISSING = "N/A"      # 主数据源中没有该商品
NAME_BLANK = "未命名"      # 主数据源有该商品但名称为空

RecordT = TypeVar("RecordT")


# ==========================================
# 数据接入：原始行 -> 类型化记录 (唯一的清洗边界)
# ==========================================

def _lookup(row: Any, field_name: str) -> Any:
    """按内部字段名读取原始行的值，兼容数据类、驼峰命名和原始导出的列名。"""
    if not isinstance(row, Mapping):
        return getattr(row, field_name, None)

    candidates = COLUMN_MAPPING.get(field_name, [field_name])
    for key in candidates:
        if key in row:
            return row[key]
    # 列名大小写/空白不一致时再做一次宽松匹配
    lowered = {str(k).strip().lower(): k for k in row.keys()}
    for key in candidates:
        actual = lowered.get(key.lower())
        if actual is not None:
            return row[actual]
    return None


def canonical_row(row: Any, field_names: Iterable[str]) -> Dict[str, Any]:
    """把原始行的键统一为内部字段名，值保持原样 (不做清洗)。"""
    return {name: _lookup(row, name) for name in field_names}


def _is_record(row: Any, record_type: type) -> bool:
    return isinstance(row, (Mapping, record_type))


def coerce_info(row: Any) -> Optional[RawInfoRecord]:
    if not _is_record(row, RawInfoRecord):
        return None
    product_id = normalize_identifier(_lookup(row, "id"))
    if not product_id:
        return None
    return RawInfoRecord(
        id=product_id,
        name=to_text(_lookup(row, "name")),
        cost_price=to_float(_lookup(row, "cost_price")),
    )


def coerce_inventory(row: Any) -> Optional[RawInventoryRecord]:
    if not _is_record(row, RawInventoryRecord):
        return None
    product_id = normalize_identifier(_lookup(row, "id"))
    if not product_id:
        return None
    return RawInventoryRecord(
        id=product_id,
        stock_a=to_int(_lookup(row, "stock_a")),
        stock_b=to_int(_lookup(row, "stock_b")),
        sales_30d=to_int(_lookup(row, "sales_30d")),
    )


def coerce_pricing(row: Any) -> Optional[RawPricingRecord]:
    if not _is_record(row, RawPricingRecord):
        return None
    product_id = normalize_identifier(_lookup(row, "id"))
    if not product_id:
        return None
    return RawPricingRecord(
        id=product_id,
        price_list=to_float(_lookup(row, "price_list")),
        price_market=to_float(_lookup(row, "price_market")),
    )


def ensure_collection(rows: Any, source: str) -> Iterable:
    """校验数据源是记录的集合。None 视为空集合；字符串、字典或不可迭代对象报错。"""
    if rows is None:
        return []
    if isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Iterable):
        raise InvalidInputError(f"{source} 数据必须是记录列表，实际为 {type(rows).__name__}")
    return rows


def _ingest(
    rows: Any,
    source: str,
    coerce: Callable[[Any], Optional[RecordT]],
) -> Tuple[Dict[str, RecordT], int]:
    """
    把一个数据源清洗为 {ID: 记录}。同一 ID 出现多次时后出现的行覆盖前面的行。
    返回 (记录字典, 被丢弃的行数)。
    """
    records: Dict[str, RecordT] = {}
    dropped = 0
    for row in ensure_collection(rows, source):
        record = coerce(row)
        if record is None:
            dropped += 1
            continue
        # 后出现的行覆盖，但保留首次出现的位置
        records[record.id] = record
    return records, dropped


# ==========================================
# 类目解析与计算
# ==========================================

def resolve_category(
    product_id: str,
    table: FeeTable,
    override_store: Optional[OverrideStore] = None,
) -> FeeCategory:
    """
    确定商品的费用类目：
    覆盖存储中有选择且该类目存在于当前费率表 -> 使用该类目；
    否则使用当前费率表的默认类目。
    """
    if override_store is not None:
        category = find_category(table, override_store.get(product_id))
        if category is not None:
            return category
    return get_default(table)


def recompute_product(
    product: UnifiedProduct,
    category: FeeCategory,
    service_fee_enabled: bool,
    rate: Optional[float] = None,
) -> UnifiedProduct:
    """
    用新类目重新计算单个商品的费用与利润，返回新的对象。
    用于用户修改类目后、下一次合并之前的即时反馈。
    """
    fee_rate = category.rate if rate is None else rate
    breakdown = compute_breakdown(product.price_market, fee_rate, service_fee_enabled)
    return dataclasses.replace(
        product,
        fee_category_id=category.id,
        fee_rate=fee_rate,
        platform_fee=breakdown.total,
        profit=compute_profit(product.price_market, product.cost_price, breakdown.total),
    )


def _normalize_custom_rates(custom_rates: Optional[Mapping]) -> Dict[str, float]:
    if not custom_rates:
        return {}
    rates: Dict[str, float] = {}
    for product_id, rate in custom_rates.items():
        key = normalize_identifier(product_id)
        if not key or isinstance(rate, bool):
            continue
        try:
            value = float(rate)
        except (ValueError, TypeError):
            continue
        # 负数或非有限值忽略，沿用类目费率
        if math.isfinite(value) and value >= 0:
            rates[key] = value
    return rates


def merge(
    info_records: Iterable,
    inventory_records: Iterable,
    pricing_records: Iterable,
    shop_variant: Union[ShopVariant, str],
    service_fee_enabled: bool,
    override_store: Optional[OverrideStore] = None,
    *,
    registry: Optional[FeeTableRegistry] = None,
    fee_table: Optional[FeeTable] = None,
    custom_rates: Optional[Mapping] = None,
) -> List[UnifiedProduct]:
    """
    合并三个数据源并计算费用。

    参数:
    - info_records / inventory_records / pricing_records: 原始记录 (数据类或字典)
    - shop_variant: 当前店铺类型，用于从 registry 取费率表
    - service_fee_enabled: 是否收取服务费
    - override_store: 用户的类目选择
    - registry: 费率表注册表，不传则使用静态费率表
    - fee_table: 直接指定费率表 (优先于 registry)
    - custom_rates: 按商品指定的费率 (百分比)，优先于类目费率

    返回: 每个商品 ID 一条 UnifiedProduct，顺序为 ID 首次出现的顺序。
    """
    # 1. 清洗三个数据源
    info, info_dropped = _ingest(info_records, "info", coerce_info)
    inventory, inv_dropped = _ingest(inventory_records, "inventory", coerce_inventory)
    pricing, price_dropped = _ingest(pricing_records, "pricing", coerce_pricing)

    # 2. 当前费率表快照
    if fee_table is not None:
        table = list(fee_table)
    else:
        table = (registry or FeeTableRegistry()).get_table(shop_variant)
    default_category = get_default(table)
    rates = _normalize_custom_rates(custom_rates)

    # 3. ID 全集 (按首次出现顺序)
    universe: Dict[str, None] = {}
    for source in (info, inventory, pricing):
        for product_id in source:
            universe.setdefault(product_id, None)

    # 4. 逐个商品合并并计算
    results: List[UnifiedProduct] = []
    fallback_count = 0
    for product_id in universe:
        info_row = info.get(product_id)
        inv_row = inventory.get(product_id)
        price_row = pricing.get(product_id)

        product = UnifiedProduct(id=product_id, name=NAME_MISSING)
        if info_row is not None:
            product.name = info_row.name or NAME_BLANK
            product.cost_price = info_row.cost_price
        if inv_row is not None:
            product.stock_a = inv_row.stock_a
            product.stock_b = inv_row.stock_b
            product.sales_30d = inv_row.sales_30d
        if price_row is not None:
            product.price_list = price_row.price_list
            product.price_market = price_row.price_market

        category = resolve_category(product_id, table, override_store)
        if category is default_category:
            fallback_count += 1

        results.append(
            recompute_product(product, category, service_fee_enabled, rates.get(product_id))
        )

    logger.debug(
        "合并完成: %d 个商品, 丢弃行 info=%d inventory=%d pricing=%d, 默认类目 %d 个",
        len(results), info_dropped, inv_dropped, price_dropped, fallback_count,
    )
    return results
