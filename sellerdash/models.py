"""
数据模型定义模块。
定义了三个原始数据源的记录、费用类目，以及合并后的商品 (UnifiedProduct)。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class ShopVariant(str, Enum):
    """店铺类型，每种对应一张费率表。"""
    SHOPEE_NORMAL = "SHOPEE_NORMAL"
    SHOPEE_MALL = "SHOPEE_MALL"
    TIKTOK_SHOP = "TIKTOK_SHOP"

    @classmethod
    def parse(cls, value: Any, default: Optional["ShopVariant"] = None) -> Optional["ShopVariant"]:
        """宽松解析店铺类型，无法识别时返回 default。"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return default


@dataclass
class RawInfoRecord:
    """商品主数据源的一行。"""
    id: str
    name: str = ""
    cost_price: float = 0.0


@dataclass
class RawInventoryRecord:
    """库存/销量数据源的一行：两个仓库的库存与近 30 天销量。"""
    id: str
    stock_a: int = 0
    stock_b: int = 0
    sales_30d: int = 0


@dataclass
class RawPricingRecord:
    """价格数据源的一行。price_market 为平台实际售价，是计算费用的基础。"""
    id: str
    price_list: float = 0.0
    price_market: float = 0.0


@dataclass(frozen=True)
class FeeCategory:
    """
    费用类目。
    id 在不同店铺类型的费率表之间保持一致 (同一语义类目)，rate 为百分比。
    """
    id: str
    name: str
    rate: float


# 费率表：有序且非空，最后一项为默认类目
FeeTable = List[FeeCategory]


@dataclass(frozen=True)
class FeeBreakdown:
    """平台费用四项明细。"""
    payment: float = 0.0
    fixed: float = 0.0
    service: float = 0.0
    infra: float = 0.0
    total: float = 0.0


@dataclass
class UnifiedProduct:
    """
    合并后的商品。每次合并都会整体重建。
    """
    id: str
    name: str = "N/A"
    cost_price: float = 0.0
    stock_a: int = 0
    stock_b: int = 0
    sales_30d: int = 0
    price_list: float = 0.0
    price_market: float = 0.0

    # 费用配置
    fee_category_id: str = ""
    fee_rate: float = 0.0

    # 计算字段
    platform_fee: float = 0.0
    profit: float = 0.0

    @property
    def total_stock(self) -> int:
        return self.stock_a + self.stock_b


@dataclass
class GroupedProduct(UnifiedProduct):
    """按变体合并后的展示行 (近似汇总)。"""
    variant_count: int = 1
    variant_ids: List[str] = field(default_factory=list)
