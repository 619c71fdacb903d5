"""
数据导入模块。
负责解析上传的 CSV / Excel 文件，按列名映射转换为三个数据源的原始行。
这里只做列识别和必需列校验，数值清洗统一在合并引擎中完成。
"""
import logging
from io import BytesIO
from typing import Any, Dict, List, Union

import pandas as pd

from sellerdash.config import COLUMN_MAPPING, REQUIRED_FIELDS, TEMPLATE_HEADERS
from sellerdash.errors import CsvImportError

logger = logging.getLogger("sellerdash.importer")

SOURCES = tuple(REQUIRED_FIELDS)

UTF8_BOM = "\ufeff"


def parse_table(content: Union[bytes, str], source: str, filename: str = "") -> List[Dict[str, Any]]:
    """
    解析一个数据源文件。

    参数:
    - content: 文件内容 (bytes 或 str)
    - source: 数据源类型 info / inventory / pricing
    - filename: 原始文件名，以 .xlsx 结尾时按 Excel 解析

    返回: 行字典列表，键为内部字段名 (id, name, cost_price ...)，值保持原样。
    """
    if source not in REQUIRED_FIELDS:
        raise CsvImportError(f"未知的数据源类型: {source}")

    df = _read_dataframe(content, filename)
    if df.empty:
        raise CsvImportError("文件为空")

    # 1. 建立列名映射并校验必需列
    col_map = _build_column_map(df.columns)
    missing = [f for f in REQUIRED_FIELDS[source] if f not in col_map]
    if missing:
        expected = [_display_name(source, f) for f in missing]
        raise CsvImportError(f"缺少必需列: {', '.join(expected)}")

    # 2. 逐行提取已识别的列
    rows: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        rows.append({key: row[column] for key, column in col_map.items()})

    logger.info("导入 %s 数据 %d 行 (文件: %s)", source, len(rows), filename or "<memory>")
    return rows


def _read_dataframe(content: Union[bytes, str], filename: str) -> pd.DataFrame:
    if isinstance(content, str):
        content = content.encode("utf-8")
    if not content or not content.strip():
        raise CsvImportError("文件为空")

    try:
        if filename.lower().endswith((".xlsx", ".xls")):
            df = pd.read_excel(BytesIO(content), dtype=str)
            return df.fillna("")
        return pd.read_csv(
            BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        raise CsvImportError("文件为空")
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise CsvImportError(f"文件读取失败: {e}")


def _build_column_map(columns: List[str]) -> Dict[str, str]:
    """
    根据预定义的映射表，找到 DataFrame 中对应的实际列名。
    返回: { "internal_key": "Actual Column Name" }
    """
    result = {}
    # 将所有列名转为小写以便匹配
    cols_lower = {str(c).lower().strip(): c for c in columns}

    for key, candidates in COLUMN_MAPPING.items():
        for cand in candidates:
            cand_lower = cand.lower()
            if cand_lower in cols_lower:
                result[key] = cols_lower[cand_lower]
                break
    return result


def _display_name(source: str, field: str) -> str:
    """报错时使用模板中的列名，方便用户对照。"""
    index = REQUIRED_FIELDS[source].index(field)
    return TEMPLATE_HEADERS[source][index]


def template_csv(source: str) -> bytes:
    """生成只有表头的模板文件 (带 BOM，方便 Excel 打开)。"""
    if source not in TEMPLATE_HEADERS:
        raise CsvImportError(f"未知的数据源类型: {source}")
    return (UTF8_BOM + ",".join(TEMPLATE_HEADERS[source]) + "\n").encode("utf-8")


def template_filename(source: str) -> str:
    return f"template_{source}.csv"
