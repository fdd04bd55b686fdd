"""模型输出的结构化记录（每种任务一个），缺少必填字段即解析失败"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .mapping import CamelModel


class BulkUpdatePlan(CamelModel):
    """批量更新计划，仅在一次请求内存在"""
    update_type: str = Field(..., alias="updateType")
    target_endpoints: Literal["all", "subset"] = Field(..., alias="targetEndpoints")
    endpoint_ids: List[str] = Field(default_factory=list, alias="endpointIds")
    update_details: Dict[str, Any] = Field(default_factory=dict, alias="updateDetails")
    affected_count: Optional[int] = Field(None, alias="affectedCount")
    summary: str

    @field_validator("target_endpoints", mode="before")
    @classmethod
    def normalize_target(cls, value):
        # 除 all 以外一律按指定端点处理
        if isinstance(value, str):
            return "all" if value.strip().lower() == "all" else "subset"
        return value


class MovePlan(CamelModel):
    mapping_id: str
    mapping_name: Optional[str] = None
    target_namespace: str
    explanation: str = ""


class NamespaceDraft(CamelModel):
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None


class NamespaceUpdate(CamelModel):
    namespace_name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None


class NamespaceTarget(CamelModel):
    namespace_name: str


class UserDraft(CamelModel):
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: str = "password123"


class UserUpdate(CamelModel):
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserTarget(CamelModel):
    user_id: str


class UserStatusChange(CamelModel):
    user_id: str
    action: Literal["enable", "disable"]
    reason: Optional[str] = None


class NamespaceAssignment(CamelModel):
    user_id: str
    namespace_name: str


class EndpointGenerationData(CamelModel):
    """OpenAPI 单个状态码变体的生成数据"""
    name: str
    priority: int = 5
    tags: List[str] = Field(default_factory=list)
    required_headers: Dict[str, str] = Field(default_factory=dict)
    response_body: Any = None
    fixed_delay_ms: Optional[int] = None
