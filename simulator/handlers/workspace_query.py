from typing import List

from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import RequestMapping
from ..storage.workspace_store import NamespaceStore
from .base import TaskHandler

CURRENT_WORKSPACE_HINTS = ("current", "which", "what workspace", "querying")


class WorkspaceQueryHandler(TaskHandler):
    """回答"当前在哪个工作区"，否则列出所有工作区"""
    priority = 10
    supported_task_types = (TaskType.LIST_NAMESPACES,)

    def __init__(self, namespaces: NamespaceStore):
        super().__init__()
        self.namespaces = namespaces

    def handle(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        current = request.namespace or "default"
        lowered = request.user_prompt.lower()

        if any(hint in lowered for hint in CURRENT_WORKSPACE_HINTS):
            message = f"You are currently in the **`{current}`** workspace."
            if mappings:
                message += f"\n\nThis workspace contains **{len(mappings)} endpoints**."
            return AIResponse.ok("Current workspace", message, action="info")

        namespaces = self.namespaces.list_all()
        lines = [f"📁 **Available workspaces:** ({len(namespaces)} total)", ""]
        for index, ns in enumerate(namespaces, start=1):
            marker = " ← **(Current)**" if ns.name == current else ""
            lines.append(f"{index}. **{ns.name}**{marker}")
            if ns.display_name and ns.display_name != ns.name:
                lines.append(f"   └─ {ns.display_name}")
            if ns.description:
                lines.append(f"   └─ {ns.description}")
            lines.append("")

        return AIResponse.ok(f"Found {len(namespaces)} workspaces", "\n".join(lines), action="list")
