"""关键词抽取、相关度排序与上下文构建"""

import logging
import re
from typing import Iterable, List, Set

from ..models.mapping import RequestMapping

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "create", "make", "need", "want", "endpoint", "mapping",
    "please", "can", "you", "help", "add",
})

NO_MAPPINGS = "No existing mappings in workspace."

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_HANDLEBARS_VAR = re.compile(r"\{\{([^}]+)\}\}")
_JSONPATH_FIELD = re.compile(r"\{\{\{jsonPath\s+request\.body\s+'\$\.([^']+)'\}\}\}")


def extract_keywords(text: str) -> Set[str]:
    """从用户输入中提取关键词

    先按长度和停用词过滤，再去掉非字母数字字符；过滤顺序不能调换。
    """
    if not text or not text.strip():
        return set()

    keywords = set()
    for word in text.lower().split():
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        word = _NON_ALNUM.sub("", word)
        if word:
            keywords.add(word)
    return keywords


def search_text(mapping: RequestMapping) -> str:
    """name + path + method + tags，小写"""
    parts = [mapping.name or ""]
    if mapping.request:
        parts.append(mapping.request.path or "")
        parts.append(mapping.request.method or "")
    parts.extend(mapping.tags or [])
    return " ".join(parts).lower()


def calculate_relevance(mapping: RequestMapping, keywords: Set[str]) -> float:
    """命中关键词数 / 关键词总数；无关键词时所有 mapping 同等相关"""
    if not keywords:
        return 1.0

    text = search_text(mapping)
    matches = sum(1 for keyword in keywords if keyword in text)
    return matches / len(keywords)


def get_relevant_mappings(mappings: List[RequestMapping], prompt: str, limit: int) -> List[RequestMapping]:
    """按相关度降序取前 limit 个，同分保持原有顺序"""
    keywords = extract_keywords(prompt)
    scored = [
        (-calculate_relevance(mapping, keywords), index, mapping)
        for index, mapping in enumerate(mappings)
    ]
    scored.sort(key=lambda item: (item[0], item[1]))
    return [mapping for _, _, mapping in scored[:max(limit, 0)]]


def build_context(mappings: List[RequestMapping]) -> str:
    """简要上下文（创建 mapping 时使用）"""
    if not mappings:
        return NO_MAPPINGS

    lines = ["EXISTING ENDPOINTS:"]
    for mapping in mappings:
        lines.append(
            f"- {mapping.request.method} {mapping.request.path} "
            f"(Priority: {mapping.priority}, Status: {mapping.response.status})"
        )
        if mapping.tags:
            lines.append(f"  Tags: {', '.join(mapping.tags)}")
    return "\n".join(lines) + "\n"


def build_detailed_context(mappings: List[RequestMapping]) -> str:
    """详细上下文：名称、ID、方法路径、优先级、状态码、启用状态、标签、延迟模式"""
    if not mappings:
        return NO_MAPPINGS

    blocks = []
    for mapping in mappings:
        lines = [
            f"📍 **{mapping.name}** (ID: {mapping.id})",
            f"   Method: {mapping.request.method} {mapping.request.path}",
            f"   Priority: {mapping.priority} | Status: {mapping.response.status} | "
            f"Enabled: {str(mapping.enabled).lower()}",
        ]
        if mapping.tags:
            lines.append(f"   Tags: {', '.join(mapping.tags)}")
        if mapping.delays and mapping.delays.mode:
            lines.append(f"   Delay: {mapping.delays.mode}")
        blocks.append("\n".join(lines))
    return "EXISTING ENDPOINTS:\n\n" + "\n\n".join(blocks) + "\n"


def extract_template_variables(body: str) -> dict:
    """静态扫描响应体中的模板变量

    Returns:
        {"variables": [...], "json_path_fields": [...]}，各自按出现顺序去重
    """
    variables = _unique(match.strip() for match in _HANDLEBARS_VAR.findall(body or ""))
    fields = _unique(_JSONPATH_FIELD.findall(body or ""))
    return {"variables": variables, "json_path_fields": fields}


def build_deep_endpoint_context(mapping: RequestMapping) -> str:
    """单个端点的完整配置 + 模板变量分析"""
    if mapping is None:
        return "No endpoint configuration available."

    req = mapping.request
    resp = mapping.response
    lines = [
        "=== COMPLETE ENDPOINT CONFIGURATION ===",
        "",
        f"**Endpoint Name**: {mapping.name}",
        f"**ID**: {mapping.id}",
        f"**Priority**: {mapping.priority} (lower = higher precedence)",
        f"**Enabled**: {str(mapping.enabled).lower()}",
        f"**Type**: {mapping.endpoint_type}",
        "",
        "**REQUEST CONFIGURATION:**",
        f"  - Method: {req.method}",
        f"  - Path: {req.path}",
    ]
    if req.path_pattern:
        lines.append(f"  - Path Pattern Type: {req.path_pattern.match_type.value}")
        lines.append(f"  - Path Pattern: {req.path_pattern.pattern}")
    if req.headers:
        lines.append("  - Required Headers:")
        lines.extend(f"    * {key}: {value}" for key, value in req.headers.items())
    if req.header_patterns:
        lines.append("  - Header Patterns (must match):")
        lines.extend(
            f"    * {name}: matchType={pattern.match_type.value}, pattern={pattern.pattern}"
            for name, pattern in req.header_patterns.items()
        )
    if req.query_params:
        lines.append("  - Required Query Params:")
        lines.extend(f"    * {key}: {value}" for key, value in req.query_params.items())
    if req.query_param_patterns:
        lines.append("  - Query Param Patterns (must match):")
        lines.extend(
            f"    * {name}: matchType={pattern.match_type.value}, pattern={pattern.pattern}"
            for name, pattern in req.query_param_patterns.items()
        )
    if req.body_patterns:
        lines.append("  - Body Patterns (must match):")
        lines.extend(
            f"    * Type: {pattern.match_type.value}, Expression: {pattern.expr}, Expected: {pattern.expected}"
            for pattern in req.body_patterns
        )

    lines += [
        "",
        "**RESPONSE CONFIGURATION:**",
        f"  - Status Code: {resp.status}",
        f"  - Templating Enabled: {str(resp.templating_enabled).lower()}",
    ]
    if resp.headers:
        lines.append("  - Response Headers:")
        lines.extend(f"    * {key}: {value}" for key, value in resp.headers.items())
    if resp.body:
        lines += ["  - Response Body Template:", "```json", resp.body, "```", "", "  - Template Variables Analysis:"]
        found = extract_template_variables(resp.body)
        if found["variables"]:
            lines.append(f"    * Handlebars variables: {', '.join(found['variables'])}")
        if found["json_path_fields"]:
            lines.append(f"    * JSONPath fields from request body: {', '.join(found['json_path_fields'])}")

    delays = mapping.delays
    if delays:
        lines += ["", "**DELAY CONFIGURATION:**", f"  - Mode: {delays.mode}"]
        if delays.mode == "fixed":
            lines.append(f"  - Fixed Delay: {delays.fixed_ms}ms")
        elif delays.mode == "variable":
            lines.append(f"  - Variable Delay: {delays.variable_min_ms}ms - {delays.variable_max_ms}ms")
        if delays.error_rate_percent:
            lines.append(f"  - Error Rate: {delays.error_rate_percent}%")

    if mapping.tags:
        lines += ["", f"**Tags**: {', '.join(mapping.tags)}"]
    return "\n".join(lines) + "\n"


def build_follow_up_context(target: RequestMapping, mappings: List[RequestMapping]) -> str:
    """追问场景：目标端点的完整配置 + 工作区全部端点摘要"""
    return (
        build_deep_endpoint_context(target)
        + "\n\n=== ALL WORKSPACE ENDPOINTS (for context) ===\n\n"
        + build_detailed_context(mappings)
    )


def _unique(items: Iterable[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
