"""
配置模块。
集中存放平台费用常量、导入列名映射、以及看板用户设置 (AppConfig) 的读写。
核心计算只读取这里的值，不负责持久化。
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sellerdash.models import ShopVariant

logger = logging.getLogger("sellerdash.config")

# ==========================================
# 平台费用常量 (单位: 百分比 / 货币金额)
# ==========================================

PAYMENT_FEE_PERCENT = 4.91       # 支付手续费
SERVICE_FEE_PERCENT = 2.5        # 服务费 (Voucher Extra)
SERVICE_FEE_CAP = 50000          # 服务费封顶
FIXED_INFRA_FEE = 3000 + 1620    # 基础设施费，每单固定收取

# ==========================================
# 展示与导出
# ==========================================

DEFAULT_LOW_STOCK_THRESHOLD = 10
BEST_SELLER_LIMIT = 20
AI_SUMMARY_LIMIT = 50
CHART_EXTREMES_SIZE = 5

# ==========================================
# 导入列名映射 (内部字段 -> 可能的列名)
# ==========================================

COLUMN_MAPPING: Dict[str, List[str]] = {
    "id": ["id", "sku", "SKU", "mã sku", "商品编码", "product_id"],
    "name": ["name", "商品名称", "名称", "tên hàng hóa", "product_name"],
    "cost_price": ["cost_price", "costPrice", "成本价", "cost", "giá vốn"],
    "stock_a": ["stock_a", "stockA", "stockHN", "仓库A库存"],
    "stock_b": ["stock_b", "stockB", "stockHCM", "仓库B库存"],
    "sales_30d": ["sales_30d", "sales30d", "近30天销量"],
    "price_list": ["price_list", "priceList", "priceWeb", "官网价"],
    "price_market": ["price_market", "priceMarket", "priceShopee", "平台售价"],
}

# 各数据源必需的内部字段
REQUIRED_FIELDS: Dict[str, List[str]] = {
    "info": ["id", "name", "cost_price"],
    "inventory": ["id", "stock_a", "stock_b", "sales_30d"],
    "pricing": ["id", "price_list", "price_market"],
}

# 模板文件使用的表头 (与原始导出保持一致)
TEMPLATE_HEADERS: Dict[str, List[str]] = {
    "info": ["sku", "name", "costPrice"],
    "inventory": ["sku", "stockHN", "stockHCM", "sales30d"],
    "pricing": ["sku", "priceWeb", "priceShopee"],
}

CONFIG_ENV_VAR = "SELLERDASH_CONFIG"
LOG_LEVEL_ENV_VAR = "SELLERDASH_LOG_LEVEL"
DEFAULT_CONFIG_PATH = Path.home() / ".sellerdash" / "config.json"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class AppConfig:
    """
    用户设置：当前店铺类型、是否开启服务费、低库存阈值。
    """
    shop_variant: ShopVariant = ShopVariant.SHOPEE_MALL
    service_fee_enabled: bool = True
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """从字典构造，非法值回退为默认值。"""
        config = cls()
        if not isinstance(data, dict):
            return config

        variant = data.get("shop_variant", data.get("shopType"))
        if variant is not None:
            config.shop_variant = ShopVariant.parse(variant, default=config.shop_variant)

        enabled = data.get("service_fee_enabled", data.get("useVoucherExtra"))
        if isinstance(enabled, bool):
            config.service_fee_enabled = enabled

        threshold = data.get("low_stock_threshold", data.get("lowStockThreshold"))
        try:
            if threshold is not None and not isinstance(threshold, bool):
                config.low_stock_threshold = float(threshold)
        except (ValueError, TypeError):
            pass
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["shop_variant"] = self.shop_variant.value
        return data


def get_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_app_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    读取设置文件。文件不存在返回默认设置；文件损坏时记录警告并返回默认设置。
    """
    config_path = get_config_path(path)
    if not config_path.exists():
        return AppConfig()
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("设置文件读取失败，使用默认设置: %s (%s)", config_path, e)
        return AppConfig()
    return AppConfig.from_dict(data)


def save_app_config(config: AppConfig, path: Optional[Union[str, Path]] = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    return config_path


def setup_logging(level: Optional[str] = None) -> None:
    """供入口程序调用；库模块本身不配置 handler。"""
    level_name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
