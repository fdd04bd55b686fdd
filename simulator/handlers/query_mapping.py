from typing import List

from ..exceptions import OracleError
from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import RequestMapping
from ..services.ai_service import AIService
from ..services.context_service import extract_keywords
from ..services.prompt_composer import PromptComposer
from ..services.response_parser import parse_index_list
from .base import TaskHandler, format_mapping_list, list_all_response, status_label

ALL_ENDPOINT_PHRASES = (
    "all endpoints",
    "all mappings",
    "workspace endpoints",
    "namespace endpoints",
    "default namespace",
    "demo namespace",
    "current workspace",
    "this workspace",
)


class QueryMappingHandler(TaskHandler):
    """列出 / 解释端点：区分"全部"、单个和多个匹配"""
    priority = 10
    supported_task_types = (TaskType.LIST_MAPPINGS, TaskType.EXPLAIN_MAPPING)

    def __init__(self, oracle: AIService, composer: PromptComposer):
        super().__init__()
        self.oracle = oracle
        self.composer = composer

    def handle(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        lowered = request.user_prompt.lower()
        if any(phrase in lowered for phrase in ALL_ENDPOINT_PHRASES):
            self.logger.info("用户请求工作区全部端点")
            return list_all_response(mappings)

        matches = self.filter_endpoints(request.user_prompt, mappings)
        if len(matches) == 1:
            self.logger.info(f"查询单个端点: {matches[0].name}")
            return self.details_response(matches[0])
        if len(matches) > 1:
            self.logger.info(f"查询 {len(matches)} 个匹配端点")
            header = f"📋 **Found {len(matches)} matching endpoints in workspace `{request.namespace}`:**"
            return AIResponse.ok(
                f"Found {len(matches)} matching endpoints",
                format_mapping_list(matches, header, show_headers=True),
                action="list",
                mappings=matches,
            )
        self.logger.info("没有识别到具体端点，列出全部")
        return list_all_response(mappings)

    def filter_endpoints(self, prompt: str, mappings: List[RequestMapping]) -> List[RequestMapping]:
        """让模型按名称 / 状态码 / 启用状态过滤；模型不可用时退回名称关键词匹配"""
        if not mappings:
            return []

        summary = "\n".join(
            f'{index}. Name: "{m.name}", Method: {m.request.method}, Path: {m.request.path}, '
            f"Status: {m.response.status}, Enabled: {str(m.enabled).lower()}"
            for index, m in enumerate(mappings)
        )
        bundle = self.composer.auxiliary("filter_endpoints", "Indexes only:", endpoints=summary, user_prompt=prompt)
        try:
            reply = self.oracle.complete(
                bundle.instructions,
                bundle.user_content,
                temperature=bundle.temperature,
                max_tokens=bundle.max_tokens,
            )
        except OracleError as e:
            self.logger.error(f"模型过滤端点失败，改用关键词匹配: {e}")
            return self.match_by_keywords(prompt, mappings)

        indexes = parse_index_list(reply, len(mappings))
        self.logger.info(f"模型过滤结果: '{reply.strip()}' -> {indexes}")
        return [mappings[i] for i in indexes]

    @staticmethod
    def match_by_keywords(prompt: str, mappings: List[RequestMapping]) -> List[RequestMapping]:
        keywords = extract_keywords(prompt)
        if not keywords:
            return []
        return [m for m in mappings if any(k in m.name.lower() for k in keywords)]

    @staticmethod
    def details_response(mapping: RequestMapping) -> AIResponse:
        req, resp = mapping.request, mapping.response
        lines = [
            f"📍 **{mapping.name}**",
            "",
            f"**Method**: `{req.method}`",
            f"**Path**: `{req.path}`",
            f"**Workspace**: `{mapping.namespace or 'default'}`",
            f"**Priority**: {mapping.priority}",
            f"**Status**: {status_label(mapping.enabled)}",
            "",
        ]
        if req.headers:
            lines.append("**Required Headers**:")
            lines.extend(f"  - `{key}: {value}`" for key, value in req.headers.items())
            lines.append("")
        if req.header_patterns:
            lines.append("**Header Patterns**:")
            lines.extend(
                f"  - `{name}`: {pattern.match_type.value} `{pattern.pattern}`"
                for name, pattern in req.header_patterns.items()
            )
            lines.append("")
        if req.body_patterns:
            lines.append("**Body Patterns**:")
            lines.extend(f"  - {p.match_type.value}: `{p.expr}`" for p in req.body_patterns)
            lines.append("")
        lines.append(f"**Response Status**: {resp.status}")
        if resp.body:
            lines += ["", "**Response Body**:", "```json", resp.body, "```"]
        if mapping.delays and mapping.delays.mode:
            delay = f"**Delay**: {mapping.delays.mode}"
            if mapping.delays.mode == "fixed":
                delay += f" ({mapping.delays.fixed_ms}ms)"
            elif mapping.delays.mode == "variable":
                delay += f" ({mapping.delays.variable_min_ms}-{mapping.delays.variable_max_ms}ms)"
            lines += ["", delay]

        return AIResponse.ok(
            "Endpoint details",
            "\n".join(lines) + "\n",
            action="show_details",
            mapping_id=mapping.id,
        )
