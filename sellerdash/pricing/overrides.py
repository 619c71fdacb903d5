"""
类目覆盖存储模块。
保存用户为每个商品手动选择的费用类目 (商品 ID -> 类目 ID)，与当前店铺类型无关。
类目是否有效只在合并时判断，这里不做校验。
"""
from typing import Dict, Iterator, Optional, Tuple

from sellerdash.pricing.coercion import normalize_identifier


class OverrideStore:
    """
    会话级的类目选择存储，条目不会自动过期。
    """
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = {}
        for product_id, category_id in (initial or {}).items():
            self.set(product_id, category_id)

    def get(self, product_id: str) -> Optional[str]:
        return self._entries.get(normalize_identifier(product_id))

    def set(self, product_id: str, category_id: str) -> None:
        key = normalize_identifier(product_id)
        if not key:
            raise ValueError("商品 ID 不能为空")
        self._entries[key] = str(category_id)

    def remove(self, product_id: str) -> None:
        self._entries.pop(normalize_identifier(product_id), None)

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._entries.items()))

    def to_dict(self) -> Dict[str, str]:
        return dict(self._entries)

    def __contains__(self, product_id: object) -> bool:
        return isinstance(product_id, str) and normalize_identifier(product_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
