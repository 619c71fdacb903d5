"""
展示数据派生模块。
对合并结果做筛选、排序、变体分组，以及看板统计和图表数据的计算。
所有函数都不修改传入的商品对象。
"""
from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Optional, Sequence

from sellerdash.config import BEST_SELLER_LIMIT, CHART_EXTREMES_SIZE, DEFAULT_LOW_STOCK_THRESHOLD
from sellerdash.models import FeeTable, GroupedProduct, UnifiedProduct
from sellerdash.pricing.fee_tables import find_category

STATUS_ALL = "all"
STATUS_LOSS = "loss"
STATUS_LOW_STOCK = "low_stock"
STATUS_OUT_OF_STOCK = "out_of_stock"
STATUS_BEST_SELLER = "best_seller"

STATUSES = (STATUS_ALL, STATUS_LOSS, STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK, STATUS_BEST_SELLER)

SORTABLE_FIELDS = tuple(f.name for f in fields(UnifiedProduct))

UNCATEGORIZED_LABEL = "其他"


@dataclass
class ViewOptions:
    """表格视图的筛选/排序参数。"""
    text: str = ""
    category_id: Optional[str] = None
    status: str = STATUS_ALL
    group_variants: bool = False
    sort_field: str = "profit"
    sort_order: str = "asc"
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD
    best_seller_limit: int = BEST_SELLER_LIMIT


# ==========================================
# 筛选
# ==========================================

def filter_by_text(products: Iterable[UnifiedProduct], text: str) -> List[UnifiedProduct]:
    """按 ID 或名称做不区分大小写的子串匹配。"""
    if not text:
        return list(products)
    needle = text.strip().lower()
    return [p for p in products if needle in p.id.lower() or needle in p.name.lower()]


def filter_by_category(products: Iterable[UnifiedProduct], category_id: Optional[str]) -> List[UnifiedProduct]:
    if not category_id or category_id == STATUS_ALL:
        return list(products)
    return [p for p in products if p.fee_category_id == category_id]


def is_loss(product: UnifiedProduct) -> bool:
    return product.profit <= 0


def is_low_stock(product: UnifiedProduct, threshold: float) -> bool:
    return 0 < product.total_stock < threshold


def is_out_of_stock(product: UnifiedProduct) -> bool:
    return product.total_stock == 0


def best_sellers(products: Iterable[UnifiedProduct], limit: int = BEST_SELLER_LIMIT) -> List[UnifiedProduct]:
    """近 30 天有销量的商品，按销量降序 (稳定排序) 取前 limit 个。"""
    selling = [p for p in products if p.sales_30d > 0]
    return sorted(selling, key=lambda p: p.sales_30d, reverse=True)[:limit]


def filter_by_status(
    products: Iterable[UnifiedProduct],
    status: str,
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD,
    best_seller_limit: int = BEST_SELLER_LIMIT,
) -> List[UnifiedProduct]:
    if status == STATUS_LOSS:
        return [p for p in products if is_loss(p)]
    if status == STATUS_LOW_STOCK:
        return [p for p in products if is_low_stock(p, low_stock_threshold)]
    if status == STATUS_OUT_OF_STOCK:
        return [p for p in products if is_out_of_stock(p)]
    if status == STATUS_BEST_SELLER:
        return best_sellers(products, best_seller_limit)
    if status == STATUS_ALL:
        return list(products)
    raise ValueError(f"未知的筛选状态: {status}")


# ==========================================
# 排序
# ==========================================

def sort_products(products: Iterable[UnifiedProduct], field: str, order: str = "asc") -> List[UnifiedProduct]:
    """
    按任意字段排序。数值字段按数值比较，文本字段按不区分大小写的字典序比较。
    稳定排序：相等元素保持输入顺序 (降序时同样如此)。
    """
    items = list(products)
    if field not in SORTABLE_FIELDS:
        raise ValueError(f"不支持的排序字段: {field}")
    if order not in ("asc", "desc"):
        raise ValueError(f"排序方向只能是 asc 或 desc: {order}")

    def key(p: UnifiedProduct):
        value = getattr(p, field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, value, "")
        return (1, 0, str(value).casefold())

    return sorted(items, key=key, reverse=(order == "desc"))


# ==========================================
# 变体分组
# ==========================================

def variant_base_id(product_id: str) -> str:
    """
    去掉 ID 末尾的变体后缀：优先按最后一个 "_" 切分，没有 "_" 时按最后一个 "-" 切分。
    分隔符位于首字符时不切分。
    """
    index = product_id.rfind("_")
    if index < 0:
        index = product_id.rfind("-")
    return product_id[:index] if index > 0 else product_id


def group_variants(products: Iterable[UnifiedProduct]) -> List[GroupedProduct]:
    """
    按基础 ID 合并变体 (近似汇总，不是加权平均)：
    库存、销量、利润求和；成本、平台售价、平台费用取算术平均；
    名称、官网价、类目、费率沿用第一个变体。
    """
    groups: Dict[str, List[UnifiedProduct]] = {}
    for product in products:
        groups.setdefault(variant_base_id(product.id), []).append(product)

    results: List[GroupedProduct] = []
    for base_id, members in groups.items():
        first = members[0]
        count = len(members)
        results.append(GroupedProduct(
            id=base_id,
            name=first.name,
            cost_price=sum(p.cost_price for p in members) / count,
            stock_a=sum(p.stock_a for p in members),
            stock_b=sum(p.stock_b for p in members),
            sales_30d=sum(p.sales_30d for p in members),
            price_list=first.price_list,
            price_market=sum(p.price_market for p in members) / count,
            fee_category_id=first.fee_category_id,
            fee_rate=first.fee_rate,
            platform_fee=sum(p.platform_fee for p in members) / count,
            profit=sum(p.profit for p in members),
            variant_count=count,
            variant_ids=[p.id for p in members],
        ))
    return results


def derive_view(products: Sequence[UnifiedProduct], options: Optional[ViewOptions] = None) -> List[UnifiedProduct]:
    """
    表格视图的完整流程：文本筛选 -> 类目筛选 -> 状态筛选 -> (可选) 变体分组 -> 排序。
    "畅销" 状态保持销量排名，不再按字段排序。
    """
    opts = options or ViewOptions()
    data: List[UnifiedProduct] = filter_by_text(products, opts.text)
    data = filter_by_category(data, opts.category_id)
    data = filter_by_status(data, opts.status, opts.low_stock_threshold, opts.best_seller_limit)

    if opts.group_variants:
        data = list(group_variants(data))

    if opts.status != STATUS_BEST_SELLER:
        data = sort_products(data, opts.sort_field, opts.sort_order)
    return data


# ==========================================
# 统计与图表
# ==========================================

def compute_stats(products: Sequence[UnifiedProduct], low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD) -> Dict[str, int]:
    """
    看板顶部统计。
    这里的低库存口径是任一仓库低于阈值 (且总库存 > 0)，与表格筛选的口径不同。
    """
    return {
        "total_items": len(products),
        "loss_making": sum(1 for p in products if is_loss(p)),
        "low_stock": sum(
            1 for p in products
            if p.total_stock > 0 and (p.stock_a < low_stock_threshold or p.stock_b < low_stock_threshold)
        ),
    }


def profit_extremes(products: Sequence[UnifiedProduct], size: int = CHART_EXTREMES_SIZE) -> List[Dict[str, float]]:
    """利润最高的 size 个与最低的 size 个 (最低的按从低到高排列)，用于柱状图。"""
    ranked = sorted(products, key=lambda p: p.profit, reverse=True)
    bottom = list(reversed(ranked[-size:])) if size > 0 else []
    chosen = ranked[:size] + bottom
    return [{"name": p.id, "profit": p.profit, "sales": p.sales_30d} for p in chosen]


def _category_label(table: FeeTable, category_id: str) -> str:
    category = find_category(table, category_id)
    if category is None:
        return UNCATEGORIZED_LABEL
    return category.name.split("-")[0].strip() or UNCATEGORIZED_LABEL


def profit_by_category(products: Iterable[UnifiedProduct], table: FeeTable) -> List[Dict[str, float]]:
    """按类目名称汇总正利润，用于饼图。"""
    totals: Dict[str, float] = {}
    for p in products:
        if p.profit > 0:
            label = _category_label(table, p.fee_category_id)
            totals[label] = totals.get(label, 0.0) + p.profit
    return [{"name": name, "value": value} for name, value in totals.items()]


