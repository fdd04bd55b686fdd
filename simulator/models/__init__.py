from .mapping import (
    RequestMapping,
    RequestSpec,
    ResponseSpec,
    DelaySpec,
    ParameterPattern,
    ParameterMatchType,
    BodyPattern,
)
from .workspace import Namespace
from .user import UserProfile
from .ai import AIRequest, AIResponse, ChatMessage, MessageRole, TaskType

__all__ = [
    "RequestMapping",
    "RequestSpec",
    "ResponseSpec",
    "DelaySpec",
    "ParameterPattern",
    "ParameterMatchType",
    "BodyPattern",
    "Namespace",
    "UserProfile",
    "AIRequest",
    "AIResponse",
    "ChatMessage",
    "MessageRole",
    "TaskType",
]
