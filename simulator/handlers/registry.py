import logging
from typing import List, Optional

from ..models.ai import AIRequest
from ..models.mapping import RequestMapping
from .base import TaskHandler

logger = logging.getLogger(__name__)


class TaskHandlerRegistry:
    """按优先级升序保存处理器，同优先级保持注册顺序"""

    def __init__(self):
        self._handlers: List[TaskHandler] = []

    def register(self, handler: TaskHandler) -> None:
        self._handlers.append(handler)
        # sort 是稳定排序
        self._handlers.sort(key=lambda h: h.priority)
        logger.info(f"注册任务处理器: {handler.name} (priority {handler.priority})")

    def find_handler(self, request: AIRequest, mappings: List[RequestMapping]) -> Optional[TaskHandler]:
        for handler in self._handlers:
            if handler.can_handle(request, mappings):
                logger.info(f"选中处理器: {handler.name} (priority {handler.priority})")
                return handler
        logger.info(f"没有处理器接管 {request.task_type.value if request.task_type else None}")
        return None

    def handlers(self) -> List[TaskHandler]:
        return list(self._handlers)
