"""
业务服务层，遵循单一职责原则拆分为独立服务。
DashboardService 持有一次会话的全部可变状态 (三个数据源、费率表、类目选择、设置)，
任何修改之后都会重新合并，保证商品数据与输入一致。
"""
import logging
import threading
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sellerdash.config import REQUIRED_FIELDS, AppConfig
from sellerdash.errors import UnknownProductError
from sellerdash.exporter import export_to_file, generate_csv_bytes, generate_excel_bytes, quick_check
from sellerdash.importer import parse_table, template_csv, template_filename
from sellerdash.models import FeeBreakdown, FeeCategory, FeeTable, ShopVariant, UnifiedProduct
from sellerdash.presentation import (
    ViewOptions,
    compute_stats,
    derive_view,
    profit_by_category,
    profit_extremes,
)
from sellerdash.pricing.calculator import compute_breakdown
from sellerdash.pricing.coercion import normalize_identifier
from sellerdash.pricing.engine import canonical_row, ensure_collection, merge, recompute_product, resolve_category
from sellerdash.pricing.fee_tables import FeeTableRegistry
from sellerdash.pricing.overrides import OverrideStore
from sellerdash.summary import build_summary

logger = logging.getLogger("sellerdash.service")

# 可编辑字段 -> 所属数据源
FIELD_SOURCES = {
    "name": "info",
    "cost_price": "info",
    "stock_a": "inventory",
    "stock_b": "inventory",
    "sales_30d": "inventory",
    "price_list": "pricing",
    "price_market": "pricing",
}


class ImportService:
    """
    导入服务：专门负责将外部文件解析为原始行。
    纯内存操作。
    """
    def import_file(self, content: Union[bytes, str], source: str, filename: str = "") -> List[Dict[str, Any]]:
        return parse_table(content, source, filename)

    def get_template(self, source: str) -> Tuple[bytes, str]:
        """返回: (模板字节流, 建议文件名)"""
        return template_csv(source), template_filename(source)


class DashboardService:
    """
    看板会话服务：管理数据源、费率表与类目选择，并负责触发合并计算。
    """
    def __init__(
        self,
        config: Optional[AppConfig] = None,
        registry: Optional[FeeTableRegistry] = None,
        overrides: Optional[OverrideStore] = None,
    ):
        self.config = config or AppConfig()
        self.registry = registry or FeeTableRegistry()
        self.overrides = overrides or OverrideStore()
        self.custom_rates: Dict[str, float] = {}
        self._sources: Dict[str, List[Dict[str, Any]]] = {name: [] for name in REQUIRED_FIELDS}
        self._products: List[UnifiedProduct] = []
        self._lock = threading.RLock()

    # ------------------------------------------
    # 查询
    # ------------------------------------------

    @property
    def products(self) -> List[UnifiedProduct]:
        with self._lock:
            return list(self._products)

    @property
    def active_table(self) -> FeeTable:
        return self.registry.get_table(self.config.shop_variant)

    def source_rows(self, source: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(row) for row in self._sources[source]]

    def get_product(self, product_id: str) -> UnifiedProduct:
        key = normalize_identifier(product_id)
        with self._lock:
            for product in self._products:
                if product.id == key:
                    return product
        raise UnknownProductError(key or str(product_id))

    def fee_breakdown(self, product_id: str) -> FeeBreakdown:
        """单个商品的费用明细 (四项)。"""
        product = self.get_product(product_id)
        return compute_breakdown(product.price_market, product.fee_rate, self.config.service_fee_enabled)

    def view(self, options: Optional[ViewOptions] = None) -> List[UnifiedProduct]:
        opts = options or ViewOptions(low_stock_threshold=self.config.low_stock_threshold)
        return derive_view(self.products, opts)

    def stats(self) -> Dict[str, int]:
        return compute_stats(self.products, self.config.low_stock_threshold)

    def chart_data(self) -> Dict[str, List[Dict[str, Any]]]:
        products = self.products
        return {
            "profit_extremes": profit_extremes(products),
            "profit_by_category": profit_by_category(products, self.active_table),
        }

    def ai_summary(self) -> Dict[str, Any]:
        return build_summary(self.products, self.config)

    # ------------------------------------------
    # 数据源
    # ------------------------------------------

    def load_source(self, source: str, rows: Iterable[Any]) -> List[UnifiedProduct]:
        """整体替换一个数据源的数据 (对应重新上传文件)。"""
        if source not in self._sources:
            raise ValueError(f"未知的数据源类型: {source}")
        fields = REQUIRED_FIELDS[source]
        normalized = [canonical_row(row, fields) for row in ensure_collection(rows, source)]
        with self._lock:
            self._sources[source] = normalized
            logger.info("已加载 %s 数据源: %d 行", source, len(normalized))
            return self.refresh()

    def refresh(self) -> List[UnifiedProduct]:
        """按当前状态重新合并。"""
        with self._lock:
            self._products = merge(
                self._sources["info"],
                self._sources["inventory"],
                self._sources["pricing"],
                self.config.shop_variant,
                self.config.service_fee_enabled,
                self.overrides,
                registry=self.registry,
                custom_rates=self.custom_rates,
            )
            return list(self._products)

    def update_field(self, product_id: str, field: str, value: Any) -> UnifiedProduct:
        """
        修改单个字段 (写回对应的数据源) 并重新合并。
        该数据源中没有这个商品时会新增一行。
        """
        if field not in FIELD_SOURCES:
            raise ValueError(f"不可编辑的字段: {field}")
        key = self.get_product(product_id).id
        with self._lock:
            self._upsert(FIELD_SOURCES[field], key, {field: value})
            self.refresh()
        return self.get_product(key)

    def save_product(
        self,
        product_id: str,
        fee_category_id: Optional[str] = None,
        **values: Any,
    ) -> UnifiedProduct:
        """
        新增或更新商品：只写入传入的字段，三个数据源中缺少的行会以默认值补齐。
        指定 fee_category_id 时同时记录类目选择。
        """
        key = normalize_identifier(product_id)
        if not key:
            raise ValueError("商品 ID 不能为空")
        unknown = set(values) - set(FIELD_SOURCES)
        if unknown:
            raise ValueError(f"不可编辑的字段: {sorted(unknown)}")

        with self._lock:
            for source in self._sources:
                source_values = {f: v for f, v in values.items() if FIELD_SOURCES[f] == source and v is not None}
                self._upsert(source, key, source_values)
            if fee_category_id:
                self.overrides.set(key, fee_category_id)
            self.refresh()
        return self.get_product(key)

    def _upsert(self, source: str, product_id: str, values: Dict[str, Any]) -> None:
        rows = self._sources[source]
        # 同一 ID 多行时合并以最后一行为准，因此修改最后一行
        for index in range(len(rows) - 1, -1, -1):
            if normalize_identifier(rows[index].get("id")) == product_id:
                updated = dict(rows[index])
                updated.update(values)
                rows[index] = updated
                return
        row = {name: None for name in REQUIRED_FIELDS[source]}
        row.update(values)
        row["id"] = product_id
        rows.append(row)

    # ------------------------------------------
    # 费用配置
    # ------------------------------------------

    def set_category(self, product_id: str, category_id: str) -> UnifiedProduct:
        """
        记录用户选择的类目，并立即重算该商品 (不触发整体合并)。
        类目不在当前费率表中时按默认类目计算，与下一次合并的结果一致。
        """
        with self._lock:
            product = self.get_product(product_id)
            self.overrides.set(product.id, category_id)

            table = self.active_table
            category = resolve_category(product.id, table, self.overrides)
            updated = recompute_product(
                product, category, self.config.service_fee_enabled, self.custom_rates.get(product.id)
            )
            self._products = [updated if p.id == product.id else p for p in self._products]
            return updated

    def set_custom_rate(self, product_id: str, rate: Optional[float]) -> UnifiedProduct:
        """单独指定商品费率 (百分比)，传 None 取消。"""
        key = self.get_product(product_id).id
        with self._lock:
            if rate is None:
                self.custom_rates.pop(key, None)
            else:
                self.custom_rates[key] = float(rate)
            self.refresh()
        return self.get_product(key)

    def update_fee_table(self, shop_variant: Union[ShopVariant, str], categories: Iterable[FeeCategory]) -> FeeTable:
        with self._lock:
            table = self.registry.update_table(shop_variant, categories)
            self.refresh()
            return table

    def set_shop_variant(self, shop_variant: Union[ShopVariant, str]) -> List[UnifiedProduct]:
        variant = ShopVariant.parse(shop_variant)
        if variant is None:
            raise ValueError(f"未知的店铺类型: {shop_variant}")
        with self._lock:
            self.config.shop_variant = variant
            return self.refresh()

    def set_service_fee(self, enabled: bool) -> List[UnifiedProduct]:
        with self._lock:
            self.config.service_fee_enabled = bool(enabled)
            return self.refresh()

    def set_low_stock_threshold(self, threshold: float) -> None:
        # 阈值只影响展示筛选，不需要重新合并
        with self._lock:
            self.config.low_stock_threshold = float(threshold)


class ExportService:
    """
    导出服务：专门负责将数据导出为文件或字节流。
    """
    def export_data(self, session: DashboardService, output_path: str = "") -> str:
        """导出到本地文件"""
        return export_to_file(session.products, session.active_table, session.config.shop_variant, output_path)

    def get_csv_bytes(self, session: DashboardService) -> Tuple[bytes, str]:
        return generate_csv_bytes(session.products, session.active_table, session.config.shop_variant)

    def get_excel_bytes(self, session: DashboardService) -> Tuple[BytesIO, str]:
        """
        生成 Excel 文件字节流，用于下载。
        返回: (excel_bytes, suggested_filename)
        """
        return generate_excel_bytes(session.products, session.active_table, session.config.shop_variant)

    def get_quick_report(self, session: DashboardService) -> Dict[str, int]:
        """生成简单的核对报告"""
        return quick_check(session.products)
