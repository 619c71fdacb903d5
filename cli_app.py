"""
命令行入口：读取三个数据源文件，合并计算平台费用与利润，打印结果并导出报表。
用法示例：
    python cli_app.py --info info.csv --inventory inventory.csv --pricing pricing.csv --shop SHOPEE_MALL --out report.csv
"""
import argparse
import json
import os
import sys
import time
from dataclasses import asdict
from typing import List, Optional

import pandas as pd

from sellerdash.config import load_app_config, setup_logging
from sellerdash.errors import SellerDashError
from sellerdash.models import ShopVariant
from sellerdash.presentation import SORTABLE_FIELDS, STATUSES, ViewOptions
from sellerdash.service import DashboardService, ExportService, ImportService

DISPLAY_COLUMNS = [
    "id", "name", "fee_category_id", "fee_rate", "cost_price",
    "price_market", "platform_fee", "profit", "stock_a", "stock_b", "sales_30d",
]


def read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="多平台卖家费用与利润计算")
    parser.add_argument("--info", help="商品主数据文件 (sku, name, costPrice)")
    parser.add_argument("--inventory", help="库存销量文件 (sku, stockHN, stockHCM, sales30d)")
    parser.add_argument("--pricing", help="价格文件 (sku, priceWeb, priceShopee)")
    parser.add_argument("--config", help="设置文件路径 (默认读取 SELLERDASH_CONFIG 或 ~/.sellerdash/config.json)")

    # 费用设置 (覆盖设置文件)
    parser.add_argument(
        "--shop",
        choices=[v.value for v in ShopVariant],
        help="店铺类型，决定使用的费率表"
    )
    service = parser.add_mutually_exclusive_group()
    service.add_argument("--service-fee", dest="service_fee", action="store_true", default=None, help="收取服务费")
    service.add_argument("--no-service-fee", dest="service_fee", action="store_false", help="不收取服务费")
    parser.add_argument("--threshold", type=float, help="低库存阈值")

    # 视图
    parser.add_argument("--search", default="", help="按 SKU / 名称筛选")
    parser.add_argument("--category", help="按类目 ID 筛选")
    parser.add_argument("--status", choices=STATUSES, default="all", help="按状态筛选")
    parser.add_argument("--group", action="store_true", help="合并同款变体")
    parser.add_argument("--sort", choices=SORTABLE_FIELDS, default="profit", help="排序字段")
    parser.add_argument("--order", choices=["asc", "desc"], default="asc", help="排序方向")
    parser.add_argument("--limit", type=int, default=50, help="最多打印的行数")

    # 输出
    parser.add_argument("--out", help="导出文件 (.csv 或 .xlsx)")
    parser.add_argument("--summary", action="store_true", help="打印 AI 分析用的数据摘要 (JSON)")
    parser.add_argument("--template", choices=["info", "inventory", "pricing"], help="生成指定数据源的模板文件后退出")
    parser.add_argument("--log-level", dest="log_level", help="日志级别 (默认 INFO)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    import_service = ImportService()

    if args.template:
        content, file_name = import_service.get_template(args.template)
        with open(file_name, "wb") as f:
            f.write(content)
        print(f"模板已生成: {file_name}")
        return 0

    sources = {"info": args.info, "inventory": args.inventory, "pricing": args.pricing}
    if not any(sources.values()):
        print("请至少提供一个数据源文件 (--info / --inventory / --pricing)。")
        return 2

    # 1. 设置
    config = load_app_config(args.config)
    if args.shop:
        config.shop_variant = ShopVariant(args.shop)
    if args.service_fee is not None:
        config.service_fee_enabled = args.service_fee
    if args.threshold is not None:
        config.low_stock_threshold = args.threshold

    start = time.time()
    session = DashboardService(config=config)

    # 2. 导入并合并
    try:
        for source, path in sources.items():
            if not path:
                continue
            rows = import_service.import_file(read_file(path), source, os.path.basename(path))
            print(f"[{source}] 读取 {len(rows)} 行: {path}")
            session.load_source(source, rows)
    except (OSError, SellerDashError) as e:
        print(f"导入失败: {e}")
        return 1

    products = session.products
    if not products:
        print("没有可计算的商品数据。")
        return 1

    print(
        f"--- 店铺类型: {config.shop_variant.value}, "
        f"服务费: {'开启' if config.service_fee_enabled else '关闭'}, "
        f"低库存阈值: {config.low_stock_threshold:g} ---"
    )

    # 3. 视图
    options = ViewOptions(
        text=args.search,
        category_id=args.category,
        status=args.status,
        group_variants=args.group,
        sort_field=args.sort,
        sort_order=args.order,
        low_stock_threshold=config.low_stock_threshold,
    )
    rows = session.view(options)
    if rows:
        df = pd.DataFrame([asdict(p) for p in rows[:args.limit]])
        columns = DISPLAY_COLUMNS + (["variant_count"] if args.group else [])
        print(df[columns].to_string(index=False, float_format=lambda v: f"{v:,.0f}"))
    else:
        print("没有符合条件的商品。")

    stats = session.stats()
    print(f"统计: 商品 {stats['total_items']} | 亏损 {stats['loss_making']} | 低库存 {stats['low_stock']}")

    # 4. 导出
    export_service = ExportService()
    if args.out:
        out_path = export_service.export_data(session, args.out)
        print(f"结果已导出至: {out_path}")

    if args.summary:
        print(json.dumps(session.ai_summary(), ensure_ascii=False, indent=2))

    report = export_service.get_quick_report(session)
    print("核对报告:", report)

    duration = time.time() - start
    print(f"总耗时: {duration:.2f} 秒")
    return 0


if __name__ == "__main__":
    sys.exit(main())
