"""批量更新：按模型给出的计划逐个修改并保存端点"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import ResponseParseError
from ..models.mapping import DelaySpec, ParameterMatchType, ParameterPattern, RequestMapping
from ..models.payloads import BulkUpdatePlan
from ..storage.mapping_store import MappingStore

logger = logging.getLogger(__name__)

EXISTENCE_VALUES = {"required", "exists"}


def resolve_targets(plan: BulkUpdatePlan, mappings: List[RequestMapping]) -> List[RequestMapping]:
    """all → 工作区全部端点；subset → 计划中且实际存在的 id（不存在的跳过）"""
    if plan.target_endpoints == "all":
        logger.info(f"目标: 全部端点 ({len(mappings)} 个)")
        return list(mappings)

    by_id = {m.id: m for m in mappings}
    targets = []
    for endpoint_id in plan.endpoint_ids:
        mapping = by_id.get(endpoint_id)
        if mapping is None:
            logger.warning(f"端点 ID 不存在，跳过: {endpoint_id}")
            continue
        if mapping not in targets:
            targets.append(mapping)
    logger.info(f"目标: {len(targets)}/{len(plan.endpoint_ids)} 个指定端点")
    return targets


def _require(details: Dict, key: str, update_type: str):
    if details.get(key) in (None, ""):
        raise ResponseParseError(f"{update_type} requires updateDetails.{key}")
    return details[key]


def _add_header(mapping: RequestMapping, details: Dict) -> bool:
    name = str(details["headerName"])
    value = str(details.get("headerValue", "required"))
    if value.lower() in EXISTENCE_VALUES:
        mapping.request.header_patterns[name] = ParameterPattern(
            match_type=ParameterMatchType.EXISTS, pattern="", ignore_case=False
        )
        logger.info(f"{mapping.name}: 添加 EXISTS 请求头匹配 '{name}'")
    else:
        mapping.request.headers[name] = value
        logger.info(f"{mapping.name}: 添加精确请求头 '{name}': '{value}'")
    return True


def _remove_header(mapping: RequestMapping, details: Dict) -> bool:
    name = str(details["headerName"])
    removed = mapping.request.headers.pop(name, None) is not None
    removed = mapping.request.header_patterns.pop(name, None) is not None or removed
    return removed


def _set_priority(mapping: RequestMapping, details: Dict) -> bool:
    mapping.priority = int(details["priority"])
    return True


def _set_enabled(enabled: bool) -> Callable[[RequestMapping, Dict], bool]:
    def apply(mapping: RequestMapping, details: Dict) -> bool:
        mapping.enabled = enabled
        return True
    return apply


def _set_delay(mapping: RequestMapping, details: Dict) -> bool:
    mapping.delays = DelaySpec.model_validate(details["delays"])
    return True


# updateType → (必填字段, 修改函数)
UPDATERS: Dict[str, tuple] = {
    "add_header": (("headerName",), _add_header),
    "remove_header": (("headerName",), _remove_header),
    "set_priority": (("priority",), _set_priority),
    "enable": ((), _set_enabled(True)),
    "disable": ((), _set_enabled(False)),
    "set_delay": (("delays",), _set_delay),
}


def validate_plan(plan: BulkUpdatePlan) -> None:
    """在修改任何端点前检查计划，避免改到一半才发现缺字段"""
    entry = UPDATERS.get(plan.update_type)
    if entry is None:
        return
    required, _ = entry
    for key in required:
        _require(plan.update_details, key, plan.update_type)
    if plan.update_type == "set_priority":
        try:
            int(plan.update_details["priority"])
        except (TypeError, ValueError) as e:
            raise ResponseParseError("set_priority requires an integer priority") from e
    if plan.update_type == "set_delay":
        if not isinstance(plan.update_details["delays"], dict):
            raise ResponseParseError("set_delay requires a delays object, not a scalar")
        try:
            DelaySpec.model_validate(plan.update_details["delays"])
        except ValidationError as e:
            raise ResponseParseError(f"Invalid delays object: {e.error_count()} error(s)") from e


def apply_update(mapping: RequestMapping, plan: BulkUpdatePlan, now: Optional[datetime] = None) -> bool:
    """对单个端点应用更新，返回是否有修改；未知 updateType 不做任何修改"""
    entry = UPDATERS.get(plan.update_type)
    if entry is None:
        logger.warning(f"未知的批量更新类型 '{plan.update_type}'，{mapping.name} 保持不变")
        return False

    _, updater = entry
    modified = updater(mapping, plan.update_details)
    if modified:
        mapping.updated_at = now or datetime.now(timezone.utc)
    return modified


def execute_plan(
    plan: BulkUpdatePlan,
    mappings: List[RequestMapping],
    store: MappingStore,
    namespace: str,
) -> List[RequestMapping]:
    """按顺序修改并逐个保存，保存失败直接抛出，已保存的不回滚

    Returns:
        实际修改并保存的端点
    """
    validate_plan(plan)
    saved = []
    for mapping in resolve_targets(plan, mappings):
        if apply_update(mapping, plan):
            saved.append(store.save(mapping, namespace))
            logger.info(f"✓ 已保存: {mapping.name} ({mapping.id})")
    logger.info(f"批量更新 {len(saved)} 个端点: {plan.summary}")
    return saved
