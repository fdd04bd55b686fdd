from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field

from ..config import settings
from .mapping import CamelModel, RequestMapping


class TaskType(str, Enum):
    """AI 任务类型"""
    # Mapping CRUD
    CREATE_MAPPING = "CREATE_MAPPING"
    MODIFY_MAPPING = "MODIFY_MAPPING"
    DELETE_MAPPING = "DELETE_MAPPING"
    LIST_MAPPINGS = "LIST_MAPPINGS"
    MOVE_MAPPING = "MOVE_MAPPING"
    BULK_UPDATE_MAPPING = "BULK_UPDATE_MAPPING"

    # Mapping 辅助
    SUGGEST_RESPONSE = "SUGGEST_RESPONSE"
    DEBUG_MAPPING = "DEBUG_MAPPING"
    EXPLAIN_MAPPING = "EXPLAIN_MAPPING"
    OPTIMIZE_MAPPING = "OPTIMIZE_MAPPING"

    # OpenAPI 生成
    GENERATE_FROM_OPENAPI = "GENERATE_FROM_OPENAPI"

    # 请求 / 端点匹配分析
    ANALYZE_PAYLOAD = "ANALYZE_PAYLOAD"
    ANALYZE_CURL = "ANALYZE_CURL"
    CHECK_ENDPOINT_MATCH = "CHECK_ENDPOINT_MATCH"

    # 工作区 CRUD
    CREATE_NAMESPACE = "CREATE_NAMESPACE"
    MODIFY_NAMESPACE = "MODIFY_NAMESPACE"
    DELETE_NAMESPACE = "DELETE_NAMESPACE"
    LIST_NAMESPACES = "LIST_NAMESPACES"

    # 用户 CRUD
    CREATE_USER = "CREATE_USER"
    MODIFY_USER = "MODIFY_USER"
    DELETE_USER = "DELETE_USER"
    LIST_USERS = "LIST_USERS"

    # 用户 / 工作区管理
    ENABLE_DISABLE_USER = "ENABLE_DISABLE_USER"
    ASSIGN_NAMESPACE = "ASSIGN_NAMESPACE"


class MessageRole(str, Enum):
    """消息角色"""
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(CamelModel):
    """对话历史中的一条消息"""
    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="user 或 assistant")
    content: str = Field(..., description="消息内容")


class AIRequest(CamelModel):
    """AI 助手请求"""
    user_prompt: str = Field(..., min_length=1, description="用户输入")
    task_type: Optional[TaskType] = Field(None, description="任务类型（为空时自动识别）")
    namespace: str = Field(default_factory=lambda: settings.default_namespace, description="当前工作区")
    conversation_history: List[ChatMessage] = Field(default_factory=list, description="对话历史（旧→新）")


class AIResponse(CamelModel):
    """AI 助手响应"""
    success: bool
    message: str = ""
    explanation: Optional[str] = None
    action: Optional[str] = Field(None, description="执行的动作标识")
    mapping_id: Optional[str] = Field(None, description="目标实体 ID")
    mappings: Optional[List[RequestMapping]] = None
    generated_mapping: Optional[RequestMapping] = None
    suggestions: Optional[List[str]] = None

    @classmethod
    def ok(cls, message: str, explanation: Optional[str] = None, **fields) -> "AIResponse":
        return cls(success=True, message=message, explanation=explanation, **fields)

    @classmethod
    def error(cls, message: str, explanation: Optional[str] = None, **fields) -> "AIResponse":
        return cls(success=False, message=message, explanation=explanation or message, **fields)


class AIStatusResponse(CamelModel):
    enabled: bool
    provider: str
    model: str
