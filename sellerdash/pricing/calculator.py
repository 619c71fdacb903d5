"""
平台费用计算模块。
根据平台售价、类目费率和服务费开关计算四项费用明细及利润。
纯函数，不做任何取整 (取整属于展示层)。
"""
from sellerdash.config import (
    FIXED_INFRA_FEE,
    PAYMENT_FEE_PERCENT,
    SERVICE_FEE_CAP,
    SERVICE_FEE_PERCENT,
)
from sellerdash.models import FeeBreakdown


def compute_breakdown(
    price: float,
    category_rate: float,
    service_fee_enabled: bool,
    *,
    payment_rate_percent: float = PAYMENT_FEE_PERCENT,
    service_rate_percent: float = SERVICE_FEE_PERCENT,
    service_fee_cap: float = SERVICE_FEE_CAP,
    infra_fee: float = FIXED_INFRA_FEE,
) -> FeeBreakdown:
    """
    计算平台费用明细。

    参数:
    - price: 平台售价
    - category_rate: 类目固定费率 (百分比，例如 6 表示 6%)
    - service_fee_enabled: 是否收取服务费 (Voucher Extra)

    规则:
    - 售价 <= 0 时所有费用均为 0 (包括基础设施费)
    - 支付费 = 售价 * 支付费率
    - 固定费 = 售价 * 类目费率
    - 服务费 = min(售价 * 服务费率, 封顶金额)，未开启时为 0
    - 基础设施费 = 固定金额
    """
    if price <= 0:
        return FeeBreakdown()

    # 1. 支付手续费
    payment = price * payment_rate_percent / 100

    # 2. 类目固定费
    fixed = price * category_rate / 100

    # 3. 服务费 (有封顶)
    service = 0.0
    if service_fee_enabled:
        service = min(price * service_rate_percent / 100, service_fee_cap)

    # 4. 基础设施费
    infra = infra_fee

    return FeeBreakdown(
        payment=payment,
        fixed=fixed,
        service=service,
        infra=infra,
        total=payment + fixed + service + infra,
    )


def compute_platform_fee(price: float, category_rate: float, service_fee_enabled: bool) -> float:
    return compute_breakdown(price, category_rate, service_fee_enabled).total


def compute_profit(price: float, cost: float, total_fee: float) -> float:
    """利润 = 售价 - 成本 - 平台费用，允许为负。"""
    return price - cost - total_fee
