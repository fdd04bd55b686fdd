import logging
from typing import Optional

from ..exceptions import OracleError
from ..models.ai import TaskType
from .ai_service import AIService
from .prompt_composer import PromptComposer
from .response_parser import normalize_task_type

logger = logging.getLogger(__name__)


def classify_by_keywords(prompt: str) -> TaskType:
    """模型不可用时的关键词兜底，结果确定且总有返回"""
    lowered = prompt.lower()

    if ("openapi" in lowered or "swagger" in lowered or "generate from spec" in lowered
            or "openapi:" in prompt or "swagger:" in prompt):
        return TaskType.GENERATE_FROM_OPENAPI
    if "namespace" in lowered and "create" in lowered:
        return TaskType.CREATE_NAMESPACE
    if "user" in lowered and "create" in lowered:
        return TaskType.CREATE_USER
    return TaskType.CREATE_MAPPING


class IntentClassifier:
    """任务类型识别：优先问模型，模型调用失败时走关键词规则"""

    def __init__(self, oracle: AIService, composer: PromptComposer):
        self.oracle = oracle
        self.composer = composer

    def classify(self, prompt: str, task_type: Optional[TaskType] = None) -> TaskType:
        if task_type is not None:
            return task_type

        bundle = self.composer.auxiliary("classify", prompt)
        try:
            reply = self.oracle.complete(
                bundle.instructions,
                bundle.user_content,
                temperature=bundle.temperature,
                max_tokens=bundle.max_tokens,
            )
        except OracleError as e:
            fallback = classify_by_keywords(prompt)
            logger.error(f"模型分类失败，使用关键词规则: {fallback.value} ({e})")
            return fallback

        detected = normalize_task_type(reply)
        logger.info(f"模型识别任务类型: {detected.value}")
        return detected
