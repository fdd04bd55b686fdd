"""AI 助手 API"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..config import settings
from ..models.ai import AIRequest, AIResponse, AIStatusResponse
from ..services.ai_service import AIService
from ..services.assistant_service import AssistantService
from ..services.prompt_composer import PromptComposer
from ..storage import MappingStore, NamespaceStore, UserStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI 助手"])

mapping_store = MappingStore()
namespace_store = NamespaceStore()
user_store = UserStore()

_assistant_service: Optional[AssistantService] = None


def ai_available() -> bool:
    return settings.ai_enabled and bool(settings.zhipu_api_key)


def get_assistant_service() -> Optional[AssistantService]:
    """首次请求时创建助手服务；未启用或未配置 API Key 时返回 None"""
    global _assistant_service
    if not ai_available():
        return None
    if _assistant_service is None:
        oracle_config = settings.oracle_config()
        _assistant_service = AssistantService(
            oracle=AIService.from_api_key(settings.zhipu_api_key, oracle_config),
            composer=PromptComposer(oracle_config),
            mappings=mapping_store,
            namespaces=namespace_store,
            users=user_store,
            max_context_mappings=settings.max_context_mappings,
        )
        logger.info(f"AI 助手已初始化: {settings.ai_provider} / {settings.ai_model}")
    return _assistant_service


@router.post(
    "/generate",
    response_model=AIResponse,
    response_model_exclude_none=True,
    summary="处理自然语言请求",
    description="识别意图并执行对应操作，失败时返回 success=false（始终 200）",
)
def generate(request: AIRequest, service: Optional[AssistantService] = Depends(get_assistant_service)):
    """
    处理一次自然语言请求

    - **userPrompt**: 用户输入
    - **taskType**: 任务类型（可选，缺省时自动识别）
    - **namespace**: 当前工作区，默认 default
    - **conversationHistory**: 对话历史（旧→新）
    """
    if service is None:
        return AIResponse.error(
            "AI assistant is not available",
            "AI features are disabled or no API key is configured.",
        )
    return service.process(request)


@router.get(
    "/status",
    response_model=AIStatusResponse,
    summary="AI 助手状态",
)
def status():
    """查询 AI 助手是否可用及当前模型"""
    return AIStatusResponse(
        enabled=ai_available(),
        provider=settings.ai_provider,
        model=settings.ai_model,
    )
