import logging
from typing import Dict, List, Optional

from ..models.workspace import Namespace

logger = logging.getLogger(__name__)


class NamespaceStore:
    """工作区存储（内存），按名称索引"""

    def __init__(self):
        self._store: Dict[str, Namespace] = {}

    def save(self, namespace: Namespace) -> Namespace:
        self._store[namespace.name] = namespace.model_copy(deep=True)
        logger.info(f"保存工作区: {namespace.name}")
        return namespace.model_copy(deep=True)

    def get_by_name(self, name: str) -> Optional[Namespace]:
        namespace = self._store.get(name)
        if namespace is None:
            # 名称比较忽略大小写
            for key, value in self._store.items():
                if key.lower() == name.lower():
                    namespace = value
                    break
        return namespace.model_copy(deep=True) if namespace else None

    def list_all(self) -> List[Namespace]:
        return [ns.model_copy(deep=True) for ns in self._store.values()]

    def delete(self, name: str) -> bool:
        namespace = self.get_by_name(name)
        if namespace is None:
            return False
        del self._store[namespace.name]
        logger.info(f"删除工作区: {namespace.name}")
        return True
