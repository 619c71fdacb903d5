"""
AI 分析数据摘要模块。
把合并结果压缩成短键 JSON，交给外部文本生成服务作为上下文。
只截取前 N 个商品以控制数据量；提示词的构造与调用不在这里。
"""
import json
from typing import Any, Dict, Sequence

from sellerdash.config import AI_SUMMARY_LIMIT, AppConfig
from sellerdash.models import UnifiedProduct

# 短键说明: s=SKU, n=名称, p=利润, pr=平台售价, st=总库存, sa=近30天销量, c=类目
FIELD_LEGEND = {
    "s": "SKU",
    "n": "名称",
    "p": "利润",
    "pr": "平台售价",
    "st": "总库存",
    "sa": "近30天销量",
    "c": "类目",
}


def build_summary(
    products: Sequence[UnifiedProduct],
    config: AppConfig,
    limit: int = AI_SUMMARY_LIMIT,
) -> Dict[str, Any]:
    # 汇总值基于全部商品，明细只取前 limit 个
    total_profit = sum(p.profit for p in products)
    total_stock = sum(p.total_stock for p in products)

    items = [
        {
            "s": p.id,
            "n": p.name,
            "p": p.profit,
            "pr": p.price_market,
            "st": p.total_stock,
            "sa": p.sales_30d,
            "c": p.fee_category_id,
        }
        for p in list(products)[:max(limit, 0)]
    ]

    return {
        "total_profit": total_profit,
        "total_stock": total_stock,
        "product_count": len(products),
        "config": config.to_dict(),
        "legend": FIELD_LEGEND,
        "items": items,
    }


def summary_json(products: Sequence[UnifiedProduct], config: AppConfig, limit: int = AI_SUMMARY_LIMIT) -> str:
    return json.dumps(build_summary(products, config, limit), ensure_ascii=False)
