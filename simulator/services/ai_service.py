import logging
import time
from typing import List, Optional, Sequence

from zhipuai import ZhipuAI

from ..config import OracleConfig
from ..exceptions import OracleError
from ..models.ai import ChatMessage

logger = logging.getLogger(__name__)


class AIService:
    """智谱 AI 调用封装，消息顺序固定为 system → 历史 → user"""

    def __init__(self, client: ZhipuAI, config: OracleConfig):
        self.client = client
        self.config = config

    @classmethod
    def from_api_key(cls, api_key: str, config: OracleConfig) -> "AIService":
        return cls(ZhipuAI(api_key=api_key), config)

    def build_messages(
        self,
        system_prompt: str,
        user_content: str,
        history: Optional[Sequence[ChatMessage]] = None,
    ) -> List[dict]:
        messages = [{"role": "system", "content": system_prompt}]
        for turn in history or []:
            messages.append({"role": turn.role.value, "content": turn.content})
        messages.append({"role": "user", "content": user_content})
        return messages

    def complete(
        self,
        system_prompt: str,
        user_content: str,
        history: Optional[Sequence[ChatMessage]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """单次对话补全

        Args:
            system_prompt: 系统提示词
            user_content: 本轮用户输入
            history: 对话历史（旧→新），原样传递
            temperature: 覆盖默认采样温度
            max_tokens: 覆盖默认最大 token 数

        Returns:
            模型输出文本

        Raises:
            OracleError: 调用失败或返回为空
        """
        messages = self.build_messages(system_prompt, user_content, history)
        logger.info(
            f"调用模型: {self.config.model}, 消息数: {len(messages)}, "
            f"system prompt 长度: {len(system_prompt)}"
        )

        start = time.monotonic()
        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=self.config.max_tokens if max_tokens is None else max_tokens,
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"模型调用失败: {e}")
            raise OracleError(f"AI service call failed: {e}") from e

        if not content:
            raise OracleError("AI service returned an empty response")

        logger.info(f"模型返回 {len(content)} 字符，耗时 {time.monotonic() - start:.2f}s")
        return content
