import json
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from ..exceptions import AssistantError
from ..models.ai import AIRequest, AIResponse, TaskType
from ..models.mapping import DelaySpec, RequestMapping, RequestSpec, ResponseSpec
from ..models.payloads import EndpointGenerationData
from ..services.ai_service import AIService
from ..services.prompt_composer import PromptComposer
from ..services.response_parser import parse_payload
from ..storage.mapping_store import MappingStore
from .base import TaskHandler

HTTP_METHODS = ("get", "post", "put", "delete", "patch")
FENCE_MARKERS = ("```yaml", "```yml", "```")

STATUS_DESCRIPTIONS = {
    "200": "Success",
    "201": "Created",
    "204": "No Content",
    "400": "Bad Request",
    "401": "Unauthorized",
    "403": "Forbidden",
    "404": "Not Found",
    "409": "Conflict",
    "422": "Validation Error",
    "500": "Server Error",
    "503": "Service Unavailable",
}

MISSING_SPEC_HELP = """❌ **Could not find OpenAPI spec in your message**

Please provide an OpenAPI/Swagger spec in one of these formats:

**Option 1: With code blocks**
```yaml
openapi: 3.0.0
paths:
  /users:
    get:
      responses:
        '200':
          description: Success
```

**Option 2: Direct YAML**
Just paste the YAML starting with `openapi:` or `swagger:`
"""


class EndpointSpec(BaseModel):
    """OpenAPI 中的一个 path + method"""
    path: str
    method: str
    summary: Optional[str] = None
    description: Optional[str] = None
    status_codes: List[str] = Field(default_factory=list)
    request_schema: Optional[dict] = None
    response_schemas: Dict[str, dict] = Field(default_factory=dict)


def status_description(status_code: str) -> str:
    return STATUS_DESCRIPTIONS.get(status_code, f"Status {status_code}")


def priority_for(status_code: str) -> int:
    """错误响应优先级更高（3），成功响应为 5"""
    code = int(status_code)
    return 3 if code >= 400 else 5


def extract_spec_text(prompt: str) -> Optional[str]:
    """从输入中取出 YAML：先找代码块，再从 openapi: / swagger: 开始截取"""
    for marker in FENCE_MARKERS:
        start = prompt.find(marker)
        if start == -1:
            continue
        start += len(marker)
        end = prompt.find("```", start)
        if end != -1:
            return prompt[start:end].strip()

    lowered = prompt.lower()
    for keyword in ("openapi:", "swagger:"):
        index = lowered.find(keyword)
        if index != -1:
            return prompt[index:].strip()

    stripped = prompt.strip()
    if stripped.startswith(("version:", "info:", "paths:")):
        return stripped
    return None


def _json_schema(node) -> Optional[dict]:
    if not isinstance(node, dict):
        return None
    content = node.get("content") or {}
    schema = (content.get("application/json") or {}).get("schema")
    return schema if isinstance(schema, dict) else None


def _response_schemas(responses: dict) -> Dict[str, dict]:
    schemas = {}
    for code, body in responses.items():
        schema = _json_schema(body)
        if schema is not None:
            schemas[str(code)] = schema
    return schemas


def parse_openapi(text: str) -> List[EndpointSpec]:
    """解析 paths × (get/post/put/delete/patch)，忽略 default 响应

    Raises:
        yaml.YAMLError: YAML 非法
    """
    document = yaml.safe_load(text)
    if not isinstance(document, dict) or not isinstance(document.get("paths"), dict):
        return []

    specs = []
    for path, item in document["paths"].items():
        if not isinstance(item, dict):
            continue
        for method in HTTP_METHODS:
            operation = item.get(method)
            if not isinstance(operation, dict):
                continue
            responses = operation.get("responses") or {}
            codes = [str(code) for code in responses if str(code) != "default" and str(code).isdigit()]
            if not codes:
                continue
            specs.append(EndpointSpec(
                path=str(path),
                method=method.upper(),
                summary=operation.get("summary"),
                description=operation.get("description"),
                status_codes=codes,
                request_schema=_json_schema(operation.get("requestBody")),
                response_schemas=_response_schemas(responses),
            ))
    return specs


class OpenAPIGeneratorHandler(TaskHandler):
    """按 OpenAPI 文档为每个 path / method / 状态码生成一个端点"""
    priority = 10
    supported_task_types = (TaskType.GENERATE_FROM_OPENAPI,)

    def __init__(self, oracle: AIService, composer: PromptComposer, mappings: MappingStore):
        super().__init__()
        self.oracle = oracle
        self.composer = composer
        self.mappings = mappings

    def handle(self, request: AIRequest, mappings: List[RequestMapping]) -> AIResponse:
        text = extract_spec_text(request.user_prompt)
        if not text:
            return AIResponse.error("No OpenAPI spec provided", MISSING_SPEC_HELP)

        try:
            specs = parse_openapi(text)
        except yaml.YAMLError as e:
            self.logger.error(f"OpenAPI YAML 解析失败: {e}")
            return AIResponse.error("Invalid OpenAPI spec", f"Could not parse the YAML: {e}")
        if not specs:
            return AIResponse.error(
                "No endpoints found in OpenAPI spec",
                "Could not extract any endpoints from the provided OpenAPI spec",
            )

        self.logger.info(f"OpenAPI 中找到 {len(specs)} 个端点")
        generated = []
        for spec in specs:
            for status_code in spec.status_codes:
                try:
                    mapping = self.generate(spec, status_code)
                except AssistantError as e:
                    self.logger.error(f"生成失败 {spec.method} {spec.path} {status_code}: {e}")
                    continue
                saved = self.mappings.save(mapping, request.namespace)
                generated.append(saved)
                self.logger.info(f"✓ 已生成: {saved.name} - {spec.method} {spec.path}")

        lines = [f"✅ **Generated {len(generated)} endpoint mappings** from OpenAPI spec", "", "**Summary:**"]
        lines.extend(
            f"- `{spec.method} {spec.path}`: {len(spec.status_codes)} variants ({', '.join(spec.status_codes)})"
            for spec in specs
        )
        return AIResponse.ok(
            f"Generated {len(generated)} endpoints",
            "\n".join(lines),
            action="generate_from_openapi",
            mappings=generated,
        )

    def generate(self, spec: EndpointSpec, status_code: str) -> RequestMapping:
        details = ""
        if spec.summary:
            details += f"- Summary: {spec.summary}\n"
        if spec.description:
            details += f"- Description: {spec.description}\n"
        schemas = ""
        if status_code in spec.response_schemas:
            schemas += f"\n**Response Schema:**\n```json\n{json.dumps(spec.response_schemas[status_code], indent=2)}\n```\n"
        if spec.request_schema:
            schemas += f"\n**Request Body Schema:**\n```json\n{json.dumps(spec.request_schema, indent=2)}\n```\n"

        bundle = self.composer.auxiliary(
            "openapi_endpoint",
            "Generate endpoint data",
            method=spec.method,
            path=spec.path,
            status_code=status_code,
            details=details,
            schemas=schemas,
            name=f"{spec.summary or f'{spec.method} {spec.path}'} - {status_description(status_code)} {status_code}",
            priority=priority_for(status_code),
        )
        reply = self.oracle.complete(
            bundle.instructions,
            bundle.user_content,
            temperature=bundle.temperature,
            max_tokens=bundle.max_tokens,
        )
        data = parse_payload(reply, EndpointGenerationData)
        return build_mapping(data, spec, int(status_code))


def build_mapping(data: EndpointGenerationData, spec: EndpointSpec, status: int) -> RequestMapping:
    body = "{}" if data.response_body is None else json.dumps(data.response_body, indent=2, ensure_ascii=False)
    delays = None
    if data.fixed_delay_ms and data.fixed_delay_ms > 0:
        delays = DelaySpec(mode="fixed", fixed_ms=data.fixed_delay_ms)
    return RequestMapping(
        name=data.name,
        priority=data.priority,
        enabled=True,
        tags=data.tags,
        request=RequestSpec(method=spec.method, path=spec.path, headers=data.required_headers),
        response=ResponseSpec(status=status, headers={"Content-Type": "application/json"}, body=body),
        delays=delays,
    )
