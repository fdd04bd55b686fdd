import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import RequestMapping


class TaskHandler(ABC):
    """可插拔任务处理器

    priority 越小越先尝试；can_handle 默认只看任务类型，子类可以再加条件。
    """
    priority: int = 10
    supported_task_types: Tuple[TaskType, ...] = ()

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @property
    def name(self) -> str:
        return type(self).__name__

    def can_handle(self, request: AIRequest, mappings: List[RequestMapping]) -> bool:
        return request.task_type is not None and request.task_type in self.supported_task_types

    @abstractmethod
    def handle(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        ...


def status_label(enabled: bool) -> str:
    return "✅ Enabled" if enabled else "❌ Disabled"


def format_mapping_list(mappings: List[RequestMapping], header: str, show_headers: bool = False) -> str:
    """编号列表：名称、方法路径、状态码、优先级、启用状态"""
    lines = [header, ""]
    for index, mapping in enumerate(mappings, start=1):
        lines.append(f"{index}. **{mapping.name}**")
        lines.append(f"   └─ `{mapping.request.method} {mapping.request.path}`")
        if show_headers:
            required = ", ".join(mapping.request.headers) or "None"
            lines.append(f"   └─ **Required Headers**: {required}")
        lines.append(
            f"   └─ Status: {mapping.response.status} | Priority: {mapping.priority} | "
            f"{status_label(mapping.enabled)}"
        )
        lines.append("")
    return "\n".join(lines)


def list_all_response(mappings: List[RequestMapping], namespace: Optional[str] = None) -> AIResponse:
    if not mappings:
        return AIResponse.ok(
            "No mappings found",
            "📋 You currently have no API mappings configured in this workspace.",
            action="list",
            mappings=[],
        )
    where = f"workspace `{namespace}`" if namespace else "your workspace"
    return AIResponse.ok(
        f"Found {len(mappings)} endpoints",
        format_mapping_list(mappings, f"📋 **Found {len(mappings)} endpoints in {where}:**"),
        action="list",
        mappings=mappings,
    )
