from enum import Enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON 字段使用 camelCase，Python 侧使用 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PathMatchType(str, Enum):
    EXACT = "EXACT"
    REGEX = "REGEX"
    WILDCARD = "WILDCARD"


class ParameterMatchType(str, Enum):
    """请求头 / 查询参数匹配方式"""
    EXACT = "EXACT"
    REGEX = "REGEX"
    CONTAINS = "CONTAINS"
    EXISTS = "EXISTS"


class BodyMatchType(str, Enum):
    EXACT = "EXACT"
    REGEX = "REGEX"
    JSONPATH = "JSONPATH"
    XPATH = "XPATH"
    CONTAINS = "CONTAINS"


class MatchTypeModel(CamelModel):

    @field_validator("match_type", mode="before", check_fields=False)
    @classmethod
    def normalize_match_type(cls, value):
        # 模型偶尔输出小写枚举值
        return value.upper() if isinstance(value, str) else value


class PathPattern(MatchTypeModel):
    match_type: PathMatchType = PathMatchType.EXACT
    pattern: str = ""
    ignore_case: bool = False


class ParameterPattern(MatchTypeModel):
    match_type: ParameterMatchType = ParameterMatchType.EXACT
    pattern: Optional[str] = ""
    ignore_case: bool = False


class BodyPattern(MatchTypeModel):
    match_type: BodyMatchType = BodyMatchType.EXACT
    expr: Optional[str] = None
    expected: Optional[str] = None
    ignore_case: bool = False


class RequestSpec(CamelModel):
    method: str = "GET"
    path: Optional[str] = None
    path_pattern: Optional[PathPattern] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    header_patterns: Dict[str, ParameterPattern] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    query_param_patterns: Dict[str, ParameterPattern] = Field(default_factory=dict)
    body_patterns: List[BodyPattern] = Field(default_factory=list)


class ResponseSpec(CamelModel):
    status: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    templating_enabled: bool = False


class ErrorResponse(CamelModel):
    status: int = 500
    body: Optional[str] = None


class DelaySpec(CamelModel):
    """延迟配置，必须是完整对象，不能是单个数字"""
    mode: Optional[str] = None  # fixed/variable
    fixed_ms: Optional[int] = None
    variable_min_ms: Optional[int] = None
    variable_max_ms: Optional[int] = None
    error_rate_percent: int = 0
    error_response: Optional[ErrorResponse] = None


class RequestMapping(CamelModel):
    """模拟 API 端点配置"""
    id: Optional[str] = Field(None, description="Mapping ID")
    name: str = Field(..., description="端点名称")
    namespace: Optional[str] = Field(None, description="所属工作区")
    priority: int = Field(default=5, description="优先级（越小越优先）")
    endpoint_type: str = Field(default="REST", description="REST 或 GRAPHQL")
    enabled: bool = Field(default=True)
    tags: List[str] = Field(default_factory=list)
    request: RequestSpec = Field(default_factory=RequestSpec)
    response: ResponseSpec = Field(default_factory=ResponseSpec)
    delays: Optional[DelaySpec] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
