from .base import TaskHandler
from .registry import TaskHandlerRegistry
from .follow_up import FollowUpQuestionHandler
from .query_mapping import QueryMappingHandler
from .workspace_query import WorkspaceQueryHandler
from .openapi_generator import OpenAPIGeneratorHandler


def build_default_registry(oracle, composer, mappings, namespaces) -> TaskHandlerRegistry:
    """注册内置处理器"""
    registry = TaskHandlerRegistry()
    registry.register(FollowUpQuestionHandler(oracle, composer))
    registry.register(QueryMappingHandler(oracle, composer))
    registry.register(WorkspaceQueryHandler(namespaces))
    registry.register(OpenAPIGeneratorHandler(oracle, composer, mappings))
    return registry


__all__ = [
    "TaskHandler",
    "TaskHandlerRegistry",
    "FollowUpQuestionHandler",
    "QueryMappingHandler",
    "WorkspaceQueryHandler",
    "OpenAPIGeneratorHandler",
    "build_default_registry",
]
