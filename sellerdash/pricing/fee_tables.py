"""
费率表模块。
提供各店铺类型的 IT 类目固定费率表，以及会话内可编辑的费率表注册表。
同一语义类目在不同表中使用相同的 id，这样切换店铺类型时用户的类目选择可以保留。
"""
import logging
import math
from typing import Dict, Iterable, List, Optional, Union

from sellerdash.errors import FeeTableError
from sellerdash.models import FeeCategory, FeeTable, ShopVariant

logger = logging.getLogger("sellerdash.fee_tables")

# --- Shopee Mall IT 类目费率 (2025-09-08 起) ---
SHOPEE_MALL_IT_FEES: FeeTable = [
    # 3.30% 组 - 电脑与服务器
    FeeCategory("sys_laptop", "笔记本电脑", 3.30),
    FeeCategory("sys_desktop", "台式机 / 一体机", 3.30),
    FeeCategory("sys_server", "服务器", 3.30),
    FeeCategory("sys_mini", "迷你主机", 3.30),

    # 6.40% 组 - 高端相机
    FeeCategory("cam_dslr", "单反 / 微单相机", 6.40),

    # 7.80% 组 - 处理器、显示器、数码相机
    FeeCategory("cpu", "CPU 处理器", 7.80),
    FeeCategory("monitor", "显示器", 7.80),
    FeeCategory("cam_action", "运动相机 / 数码相机", 7.80),
    FeeCategory("lens", "相机镜头", 7.80),

    # 8.50% 组 - 主板与打印机
    FeeCategory("mainboard", "主板", 8.50),
    FeeCategory("printer", "打印机 / 扫描仪 / 复印机", 8.50),
    FeeCategory("water_purifier", "净水器", 8.50),

    # 10.50% 组 - 存储与高端音频
    FeeCategory("ssd", "固态硬盘", 10.50),
    FeeCategory("hdd_ext", "移动硬盘", 10.50),
    FeeCategory("ups", "UPS 不间断电源", 10.50),
    FeeCategory("amp", "功放 / 调音台", 10.50),
    FeeCategory("draw_tab", "数位板", 10.50),
    FeeCategory("print_3d", "3D 打印机 / 条码打印机", 10.50),

    # 12.60% 组 - 配件 (大多数)
    FeeCategory("ram", "内存条", 12.60),
    FeeCategory("vga", "显卡", 12.60),
    FeeCategory("case_psu", "机箱 / 电源", 12.60),
    FeeCategory("cooling", "风扇与散热", 12.60),
    FeeCategory("mouse_kb", "鼠标与键盘", 12.60),
    FeeCategory("sound", "音箱 / 耳机 / 麦克风", 12.60),
    FeeCategory("network", "网络设备 (路由器/WiFi)", 12.60),
    FeeCategory("usb_nas", "U盘 / OTG / NAS", 12.60),
    FeeCategory("odd", "光驱", 12.60),
    FeeCategory("acc_cam", "相机 / 无人机配件", 12.60),
    FeeCategory("software", "软件", 12.60),
    FeeCategory("cable", "线材与转接头", 12.60),
    FeeCategory("office_equip", "其他办公设备", 12.60),

    # 默认
    FeeCategory("default", "其他 / 默认", 12.60),
]

# --- Shopee 普通店铺费率 ---
SHOPEE_NORMAL_IT_FEES: FeeTable = [
    # 1.50% 组
    FeeCategory("monitor", "显示器", 1.50),
    FeeCategory("sys_desktop", "台式机", 1.50),
    FeeCategory("sys_laptop", "笔记本电脑", 1.50),

    # 7.00% 组
    FeeCategory("comp_parts", "电脑配件 (通用)", 7.00),
    FeeCategory("comp_acc", "电脑周边", 7.00),
    FeeCategory("printer", "打印机与扫描仪", 7.00),
    FeeCategory("storage", "存储设备", 7.00),
    FeeCategory("network", "网络设备", 7.00),
    FeeCategory("cable", "线材与转接头", 7.00),
    FeeCategory("music", "音乐播放器", 7.00),

    # 8.00% 组
    FeeCategory("mouse_kb", "鼠标与键盘", 8.00),
    FeeCategory("office_equip", "办公设备", 8.00),
    FeeCategory("software", "软件", 8.00),
    FeeCategory("sound", "耳机 / 音箱 / 麦克风", 8.00),
    FeeCategory("amp", "功放与音响", 8.00),

    # 默认
    FeeCategory("default", "其他", 7.00),
]

# --- TikTok Shop 费率 ---
TIKTOK_IT_FEES: FeeTable = [
    FeeCategory("phone", "手机与平板", 1.21),
    FeeCategory("sys_laptop", "笔记本 / 台式机 / 显示器", 1.82),
    FeeCategory("cam_dslr", "单反 / 微单相机", 3.63),
    FeeCategory("comp_parts", "配件 (内存/CPU/显卡/主板...)", 6.05),
    FeeCategory("comp_acc", "周边 (鼠标/键盘/耳机...)", 6.05),
    FeeCategory("network", "网络设备", 6.05),
    FeeCategory("office_equip", "办公设备", 6.05),
    FeeCategory("camera_acc", "监控摄像头与配件", 6.05),
    FeeCategory("default", "其他 / 默认", 6.05),
]

INITIAL_FEE_TABLES: Dict[ShopVariant, FeeTable] = {
    ShopVariant.SHOPEE_NORMAL: SHOPEE_NORMAL_IT_FEES,
    ShopVariant.SHOPEE_MALL: SHOPEE_MALL_IT_FEES,
    ShopVariant.TIKTOK_SHOP: TIKTOK_IT_FEES,
}

FALLBACK_SHOP_VARIANT = ShopVariant.SHOPEE_NORMAL


def get_default(table: FeeTable) -> FeeCategory:
    """费率表的默认类目：最后一项。"""
    if not table:
        raise FeeTableError("费率表不能为空")
    return table[-1]


def find_category(table: Iterable[FeeCategory], category_id: Optional[str]) -> Optional[FeeCategory]:
    if not category_id:
        return None
    for category in table:
        if category.id == category_id:
            return category
    return None


class FeeTableRegistry:
    """
    费率表注册表。
    启动时加载静态费率表，用户在会话中修改的费率只保存在内存中。
    """
    def __init__(self, tables: Optional[Dict[ShopVariant, FeeTable]] = None):
        source = tables if tables is not None else INITIAL_FEE_TABLES
        self._initial = {variant: list(table) for variant, table in source.items()}
        for variant, table in self._initial.items():
            if not table:
                raise FeeTableError(f"{variant.value} 的费率表不能为空")
        self._tables: Dict[ShopVariant, FeeTable] = {}
        self.reset()

    def reset(self) -> None:
        """恢复为启动时的静态费率表。"""
        self._tables = {variant: list(table) for variant, table in self._initial.items()}

    @property
    def variants(self) -> List[ShopVariant]:
        return list(self._tables)

    def _resolve_variant(self, shop_variant: Union[ShopVariant, str]) -> ShopVariant:
        variant = ShopVariant.parse(shop_variant)
        if variant is None or variant not in self._tables:
            fallback = FALLBACK_SHOP_VARIANT if FALLBACK_SHOP_VARIANT in self._tables else next(iter(self._tables))
            logger.warning("未知的店铺类型 %r，使用 %s 的费率表", shop_variant, fallback.value)
            return fallback
        return variant

    def get_table(self, shop_variant: Union[ShopVariant, str]) -> FeeTable:
        """返回店铺类型当前生效的费率表 (副本)。"""
        return list(self._tables[self._resolve_variant(shop_variant)])

    def update_table(self, shop_variant: Union[ShopVariant, str], new_table: Iterable[FeeCategory]) -> FeeTable:
        """
        用编辑后的费率表替换当前费率表。
        只允许修改名称和费率：类目 id 集合必须与当前完全一致，原有顺序 (以及默认类目) 保持不变。
        写入不做店铺类型回退，未知的店铺类型直接报错。
        """
        variant = ShopVariant.parse(shop_variant)
        if variant is None or variant not in self._tables:
            raise FeeTableError(f"未知的店铺类型: {shop_variant}")
        current = self._tables[variant]

        edits: Dict[str, FeeCategory] = {}
        for category in new_table:
            if category.id in edits:
                raise FeeTableError(f"类目 id 重复: {category.id}")
            edits[category.id] = category

        current_ids = {c.id for c in current}
        added = set(edits) - current_ids
        missing = current_ids - set(edits)
        if added or missing:
            raise FeeTableError(
                f"不允许增删类目 (新增: {sorted(added)}, 缺失: {sorted(missing)})"
            )

        updated: FeeTable = []
        for category in current:
            edited = edits[category.id]
            rate = _validate_rate(edited.rate, category.id)
            updated.append(FeeCategory(category.id, edited.name or category.name, rate))

        self._tables[variant] = updated
        logger.info("已更新 %s 的费率表 (%d 个类目)", variant.value, len(updated))
        return list(updated)


def _validate_rate(rate: object, category_id: str) -> float:
    try:
        value = float(rate)
    except (ValueError, TypeError):
        raise FeeTableError(f"类目 {category_id} 的费率无效: {rate!r}")
    if not math.isfinite(value) or value < 0:
        raise FeeTableError(f"类目 {category_id} 的费率必须为非负数: {rate!r}")
    return value
