import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..exceptions import EntityNotFoundError
from ..models.mapping import RequestMapping

logger = logging.getLogger(__name__)


class MappingStore:
    """端点配置存储（内存），读写均返回副本"""

    def __init__(self):
        self._store: Dict[str, RequestMapping] = {}

    def save(self, mapping: RequestMapping, namespace: Optional[str] = None) -> RequestMapping:
        stored = mapping.model_copy(deep=True)
        if not stored.id:
            stored.id = uuid.uuid4().hex[:12]
        if namespace:
            stored.namespace = namespace
        now = datetime.now(timezone.utc)
        if stored.created_at is None:
            stored.created_at = now
        if stored.updated_at is None:
            stored.updated_at = now
        self._store[stored.id] = stored
        logger.info(f"保存端点: {stored.id} ({stored.name}) -> {stored.namespace}")
        return stored.model_copy(deep=True)

    def get(self, mapping_id: str) -> Optional[RequestMapping]:
        mapping = self._store.get(mapping_id)
        return mapping.model_copy(deep=True) if mapping else None

    def list_by_namespace(self, namespace: str) -> List[RequestMapping]:
        return [m.model_copy(deep=True) for m in self._store.values() if m.namespace == namespace]

    def list_all(self) -> List[RequestMapping]:
        return [m.model_copy(deep=True) for m in self._store.values()]

    def delete(self, mapping_id: str) -> bool:
        if mapping_id in self._store:
            del self._store[mapping_id]
            logger.info(f"删除端点: {mapping_id}")
            return True
        return False

    def move(self, mapping_id: str, target_namespace: str) -> RequestMapping:
        mapping = self._store.get(mapping_id)
        if mapping is None:
            raise EntityNotFoundError(f"Mapping not found: {mapping_id}")
        mapping.namespace = target_namespace
        mapping.updated_at = datetime.now(timezone.utc)
        logger.info(f"移动端点: {mapping_id} -> {target_namespace}")
        return mapping.model_copy(deep=True)
