"""AI 助手自定义异常"""


class AssistantError(Exception):
    """助手处理基础异常"""
    pass


class OracleError(AssistantError):
    """模型调用失败（网络、超时、服务错误）"""
    pass


class ResponseParseError(AssistantError):
    """模型输出无法解析为期望结构，或缺少必填字段"""
    pass


class EntityNotFoundError(AssistantError):
    """实体不存在"""
    pass


class TargetUnresolvedError(AssistantError):
    """无法确定用户所指的实体"""

    def __init__(self, message: str, context: str = ""):
        super().__init__(message)
        self.context = context


class ValidationConflictError(AssistantError):
    """操作与现有状态冲突（如工作区下仍有 mapping）"""

    def __init__(self, message: str, remediation: str = ""):
        super().__init__(message)
        self.remediation = remediation
