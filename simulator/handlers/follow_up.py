from typing import List

from ..exceptions import OracleError
from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import RequestMapping
from ..services.ai_service import AIService
from ..services.context_service import build_deep_endpoint_context
from ..services.prompt_composer import PromptComposer
from ..services.resolver import find_mentioned, mentions_explicitly
from .base import TaskHandler

# 判断是否追问时带入的历史条数与单条截断长度
DETECT_WINDOW = 4
DETECT_TRUNCATE = 200
# 从最近几条 assistant 消息中找端点
MENTION_WINDOW = 3


class FollowUpQuestionHandler(TaskHandler):
    """追问："它有哪些请求头？"这类不指名端点的问题，用上几轮提到的端点回答"""
    priority = 5
    supported_task_types = (
        TaskType.EXPLAIN_MAPPING,
        TaskType.LIST_MAPPINGS,
        TaskType.DEBUG_MAPPING,
        TaskType.ANALYZE_PAYLOAD,
        TaskType.ANALYZE_CURL,
        TaskType.CHECK_ENDPOINT_MATCH,
    )

    def __init__(self, oracle: AIService, composer: PromptComposer):
        super().__init__()
        self.oracle = oracle
        self.composer = composer

    def can_handle(self, request: AIRequest, mappings: List[RequestMapping]) -> bool:
        if not super().can_handle(request, mappings) or not request.conversation_history:
            return False
        if mentions_explicitly(request.user_prompt, mappings):
            self.logger.debug("输入直接提到了端点，不按追问处理")
            return False
        return self.is_follow_up(request)

    def is_follow_up(self, request: AIRequest) -> bool:
        recent = request.conversation_history[-DETECT_WINDOW:]
        conversation = "\n".join(
            f"{turn.role.value.upper()}: {_truncate(turn.content)}" for turn in recent
        )
        bundle = self.composer.auxiliary(
            "follow_up_detect",
            "Is this a follow-up question or initial question?",
            conversation=conversation,
            question=request.user_prompt,
        )
        try:
            reply = self.oracle.complete(
                bundle.instructions,
                bundle.user_content,
                temperature=bundle.temperature,
                max_tokens=bundle.max_tokens,
            )
        except OracleError as e:
            self.logger.error(f"追问判断失败，按非追问处理: {e}")
            return False

        verdict = "FOLLOWUP" in reply.upper()
        self.logger.info(f"追问判断 '{request.user_prompt[:50]}': {reply.strip()}")
        return verdict

    def handle(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        mentioned = find_mentioned(request.conversation_history, mappings, MENTION_WINDOW)
        if not mentioned:
            self.logger.warning("对话历史中没有找到端点，无法回答追问")
            return AIResponse.error(
                "Could not determine which endpoints you're asking about",
                "Please specify which endpoint(s) you want to know about.",
                action="error",
            )

        self.logger.info(f"历史中提到的端点: {[m.name for m in mentioned]}")
        context = "=== ENDPOINTS FROM PREVIOUS CONVERSATION ===\n\n" + "\n---\n\n".join(
            build_deep_endpoint_context(m) for m in mentioned
        )
        bundle = self.composer.auxiliary("follow_up_answer", request.user_prompt, context=context)
        answer = self.oracle.complete(
            bundle.instructions,
            bundle.user_content,
            temperature=bundle.temperature,
            max_tokens=bundle.max_tokens,
        )
        return AIResponse.ok(
            "Answer based on previous context",
            answer,
            action="explain",
            mappings=mentioned,
        )


def _truncate(content: str) -> str:
    return content if len(content) <= DETECT_TRUNCATE else content[:DETECT_TRUNCATE] + "..."
