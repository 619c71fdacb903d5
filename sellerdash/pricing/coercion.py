"""
数据清洗模块。
原始 CSV 数据的类型不可信，这里统一负责 ID 规范化和数值的安全解析 (失败一律取 0)。
"""
import math
from typing import Any


def normalize_identifier(value: Any) -> str:
    """
    规范化商品 ID：去除首尾空白并转为大写。
    None、NaN 和空白字符串返回 ""，表示没有 ID。
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        # 数值型 SKU (例如 1001.0) 按整数处理
        if value.is_integer():
            value = int(value)
    return str(value).strip().upper()


def to_float(value: Any) -> float:
    """安全解析浮点数，无法解析或非有限值返回 0。"""
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        result = float(value)
    except (ValueError, TypeError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def to_int(value: Any) -> int:
    """安全解析整数 (向零截断)，无法解析返回 0。"""
    return int(to_float(value))


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and not math.isfinite(value):
        return ""
    return str(value).strip()
