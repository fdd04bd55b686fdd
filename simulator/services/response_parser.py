"""模型输出的规范化与结构校验

所有解析前都先经过 strip_code_fence，其余地方不再各自处理 markdown。
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import ResponseParseError
from ..models.ai import TaskType
from ..models.mapping import RequestMapping

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_LEADING_FENCE = re.compile(r"^```(?:[A-Za-z0-9_+-]*[ \t]*\n)?")
_TRAILING_FENCE = re.compile(r"\n?```$")
_EMPHASIS = re.compile(r"```|\*\*|##|[`\"']")
_NON_INDEX = re.compile(r"[^0-9,]")
_TOKEN = re.compile(r"[A-Z_]+")

DEFAULT_TASK_TYPE = TaskType.CREATE_MAPPING


def strip_code_fence(text: Optional[str]) -> str:
    """去掉首尾的 ``` / ```json 代码块标记（幂等）"""
    cleaned = (text or "").strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json(text: str) -> object:
    cleaned = strip_code_fence(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"模型输出不是合法 JSON: {e}")
        raise ResponseParseError(f"AI response is not valid JSON: {e.msg}") from e


def parse_payload(text: str, model: Type[T]) -> T:
    """把模型输出解析为指定的结构化记录

    Args:
        text: 模型原始输出
        model: 期望的 pydantic 记录类型

    Returns:
        校验通过的记录

    Raises:
        ResponseParseError: JSON 非法、不是对象，或缺少必填字段
    """
    data = parse_json(text)
    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected a JSON object for {model.__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        logger.warning(f"{model.__name__} 校验失败: {fields}")
        raise ResponseParseError(f"Invalid {model.__name__}: {fields}") from e


def parse_mapping(text: str) -> RequestMapping:
    return parse_payload(text, RequestMapping)


def apply_identity(generated: RequestMapping, original: RequestMapping, now: Optional[datetime] = None) -> RequestMapping:
    """生成结果只取内容：id / namespace 用原 mapping 的，updatedAt 取应用时刻"""
    return generated.model_copy(update={
        "id": original.id,
        "namespace": original.namespace,
        "created_at": original.created_at,
        "updated_at": now or datetime.now(timezone.utc),
    })


def normalize_task_type(text: Optional[str]) -> TaskType:
    """分类结果规范化；无法识别时回落到 CREATE_MAPPING，不报错"""
    cleaned = _EMPHASIS.sub("", strip_code_fence(text)).strip().upper()
    if cleaned in TaskType.__members__:
        return TaskType[cleaned]

    # 模型偶尔在类型前后追加解释，取第一个合法的类型名
    for token in _TOKEN.findall(cleaned):
        if token in TaskType.__members__:
            return TaskType[token]

    logger.warning(f"模型返回了未知任务类型 '{cleaned}'，默认使用 {DEFAULT_TASK_TYPE.value}")
    return DEFAULT_TASK_TYPE


def parse_index_list(text: Optional[str], size: int) -> List[int]:
    """解析 "1,2,3" / "NONE" 形式的下标列表，越界与重复下标丢弃"""
    raw = strip_code_fence(text)
    if not raw or raw.upper() == "NONE":
        return []

    indexes = []
    for part in _NON_INDEX.sub("", raw).split(","):
        if not part:
            continue
        index = int(part)
        if 0 <= index < size and index not in indexes:
            indexes.append(index)
        elif index >= size:
            logger.warning(f"下标 {index} 越界 (0-{size - 1})")
    return indexes
