"""
异常定义模块。
所有业务异常都继承自 ValueError，调用方按参数错误处理即可。
"""


class SellerDashError(ValueError):
    """看板相关异常的基类。"""


class InvalidInputError(SellerDashError):
    """传入合并引擎的数据集合本身不合法 (非可迭代对象等)，属于调用方错误。"""


class FeeTableError(SellerDashError):
    """费率表编辑不合法：类目 ID 集合变化或费率非法。"""


class CsvImportError(SellerDashError):
    """导入文件无法解析、为空或缺少必需列。"""


class UnknownProductError(SellerDashError):
    """按 ID 查找商品失败。"""

    def __init__(self, product_id: str):
        super().__init__(f"未找到商品: {product_id}")
        self.product_id = product_id
