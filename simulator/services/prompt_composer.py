import json
import logging
from pathlib import Path
from string import Template
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..config import OracleConfig
from ..models.ai import TaskType
from ..models.mapping import RequestMapping

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

# 辅助提示词的 (temperature, max_tokens)，未列出的使用默认配置
AUXILIARY_LIMITS: Dict[str, Tuple[float, int]] = {
    "filter_endpoints": (0.1, 30),
    "follow_up_detect": (0.1, 10),
    "follow_up_answer": (0.3, 500),
}


class PromptBundle(BaseModel):
    """一次模型调用所需的提示词与参数"""
    model_config = ConfigDict(frozen=True)

    instructions: str
    user_content: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class PromptComposer:
    """从 prompts/*.md 模板构建各任务的提示词"""

    def __init__(self, config: OracleConfig, prompts_dir: Path = PROMPTS_DIR):
        self.config = config
        self.prompts_dir = prompts_dir
        self._templates: Dict[str, Template] = {}

    def _load(self, name: str) -> Template:
        """加载提示词模板（按名称缓存）"""
        if name not in self._templates:
            prompt_path = self.prompts_dir / f"{name}.md"
            with open(prompt_path, "r", encoding="utf-8") as f:
                self._templates[name] = Template(f.read())
        return self._templates[name]

    def render(self, template: str, **values) -> str:
        return self._load(template).safe_substitute(**{k: "" if v is None else v for k, v in values.items()})

    def compose(
        self,
        task_type: TaskType,
        context: str = "",
        namespace: str = "default",
        mapping: Optional[RequestMapping] = None,
        user_prompt: str = "",
        **facts,
    ) -> PromptBundle:
        """构建任务提示词

        Args:
            task_type: 任务类型，对应 prompts/<task_type 小写>.md
            context: 上下文块（端点摘要或单端点深度上下文）
            namespace: 当前工作区
            mapping: 目标 mapping（修改类任务），以 JSON 形式嵌入
            user_prompt: 本轮用户输入，同时作为 user 消息内容
            **facts: 模板中其余占位符的取值

        Returns:
            PromptBundle
        """
        values = dict(facts)
        values.update(context=context, namespace=namespace, user_prompt=user_prompt)
        if mapping is not None:
            values["mapping_json"] = json.dumps(
                mapping.model_dump(mode="json", by_alias=True, exclude_none=True),
                indent=2,
                ensure_ascii=False,
            )

        instructions = self.render(task_type.value.lower(), **values)
        logger.debug(f"构建 {task_type.value} 提示词，长度 {len(instructions)}")
        return PromptBundle(
            instructions=instructions,
            user_content=user_prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    def auxiliary(self, template: str, user_content: str, **values) -> PromptBundle:
        """辅助提示词：分类、端点识别、端点过滤、追问判断等"""
        temperature, max_tokens = AUXILIARY_LIMITS.get(
            template, (self.config.temperature, self.config.max_tokens)
        )
        return PromptBundle(
            instructions=self.render(template, **values),
            user_content=user_content,
            temperature=temperature,
            max_tokens=max_tokens,
        )
