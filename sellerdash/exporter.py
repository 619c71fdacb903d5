"""
导出与快速核对模块。
负责将合并后的商品导出为 CSV (带 BOM，方便 Excel 打开) 或 Excel 报表，并生成简要的数据核对报告。
"""
import csv
import os
from io import BytesIO, StringIO
from typing import Any, Dict, List, Sequence, Tuple, Union

import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from sellerdash.models import FeeTable, ShopVariant, UnifiedProduct
from sellerdash.pricing.fee_tables import find_category

UTF8_BOM = "\ufeff"
SHEET_NAME = "商品利润"
UNKNOWN_CATEGORY = "N/A"

EXPORT_COLUMNS = [
    "SKU", "商品名称", "类目", "费率(%)", "成本价", "平台售价",
    "平台费用", "利润", "仓库A库存", "仓库B库存", "近30天销量",
]


def build_export_rows(products: Sequence[UnifiedProduct], table: FeeTable) -> List[Dict[str, Any]]:
    """每个商品一行，附带解析出的类目名称。"""
    rows = []
    for p in products:
        category = find_category(table, p.fee_category_id)
        rows.append({
            "SKU": p.id,
            "商品名称": p.name,
            "类目": category.name if category else UNKNOWN_CATEGORY,
            "费率(%)": p.fee_rate,
            "成本价": p.cost_price,
            "平台售价": p.price_market,
            "平台费用": p.platform_fee,
            "利润": p.profit,
            "仓库A库存": p.stock_a,
            "仓库B库存": p.stock_b,
            "近30天销量": p.sales_30d,
        })
    return rows


def generate_csv_bytes(
    products: Sequence[UnifiedProduct],
    table: FeeTable,
    shop_variant: Union[ShopVariant, str],
) -> Tuple[bytes, str]:
    """
    生成 CSV 报表。
    文本字段加引号 (内部引号转义为 "")，数值字段不加引号；文件以 BOM 开头。
    返回: (csv_bytes, suggested_filename)
    """
    df = pd.DataFrame(build_export_rows(products, table), columns=EXPORT_COLUMNS)
    buffer = StringIO()
    df.to_csv(buffer, index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    content = UTF8_BOM + buffer.getvalue()
    return content.encode("utf-8"), _generate_filename(shop_variant, "csv")


def generate_excel_bytes(
    products: Sequence[UnifiedProduct],
    table: FeeTable,
    shop_variant: Union[ShopVariant, str],
) -> Tuple[BytesIO, str]:
    """
    生成 Excel 报表的内存流和建议文件名。
    """
    raw = BytesIO()
    df = pd.DataFrame(build_export_rows(products, table), columns=EXPORT_COLUMNS)
    df.to_excel(raw, index=False, sheet_name=SHEET_NAME)
    raw.seek(0)

    output = _format_excel(raw)
    output.seek(0)
    return output, _generate_filename(shop_variant, "xlsx")


def export_to_file(
    products: Sequence[UnifiedProduct],
    table: FeeTable,
    shop_variant: Union[ShopVariant, str],
    path: str = "",
) -> str:
    """
    导出到本地文件，按扩展名选择 CSV 或 Excel。
    path 为空或为目录时使用默认文件名。
    """
    if not path or path.endswith("/") or path.endswith("\\") or os.path.isdir(path):
        path = os.path.join(path, _generate_filename(shop_variant, "csv"))

    if path.lower().endswith(".xlsx"):
        data, _ = generate_excel_bytes(products, table, shop_variant)
        payload = data.getvalue()
    else:
        payload, _ = generate_csv_bytes(products, table, shop_variant)

    with open(path, "wb") as f:
        f.write(payload)
    return path


def quick_check(products: Sequence[UnifiedProduct]) -> Dict[str, int]:
    """
    生成快速核对报告，统计关键指标。
    """
    return {
        "商品总数": len(products),
        "亏损商品数": sum(1 for p in products if p.profit <= 0),
        "售价为0的商品数": sum(1 for p in products if p.price_market <= 0),
        "缺货商品数": sum(1 for p in products if p.stock_a + p.stock_b == 0),
    }


# ==========================================
# 内部辅助函数
# ==========================================

def _generate_filename(shop_variant: Union[ShopVariant, str], extension: str) -> str:
    variant = ShopVariant.parse(shop_variant)
    label = variant.value if variant else str(shop_variant or "report")
    return f"report_{label}.{extension}"


def _format_excel(source: BytesIO) -> BytesIO:
    """对 Excel 文件进行美化格式化。"""
    wb = load_workbook(source)
    ws = wb.active

    # 样式定义
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    loss_font = Font(color="C00000", bold=True)
    border = Border(
        left=Side(style='thin'), right=Side(style='thin'),
        top=Side(style='thin'), bottom=Side(style='thin')
    )
    center_align = Alignment(horizontal="center", vertical="center", wrap_text=True)
    left_align = Alignment(horizontal="left", vertical="center", wrap_text=True)

    # 格式化表头
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = center_align
        cell.border = border

    profit_col = EXPORT_COLUMNS.index("利润") + 1

    # 格式化数据行，亏损商品的利润标红
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in row:
            cell.border = border
            cell.alignment = left_align
            if cell.column == profit_col and isinstance(cell.value, (int, float)) and cell.value <= 0:
                cell.font = loss_font

    # 自动调整列宽
    for column in ws.columns:
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    return output
