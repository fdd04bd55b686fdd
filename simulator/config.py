"""应用配置（环境变量 / .env）"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OracleConfig(BaseModel):
    """模型调用参数（构造时注入，运行期不可变）"""
    model_config = ConfigDict(frozen=True)

    model: str = Field(default="glm-4", description="模型名称")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="采样温度")
    max_tokens: int = Field(default=4096, ge=1, description="最大生成 token 数")


class Settings(BaseSettings):
    """API Simulator 助手配置"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # 服务
    host: str = Field(default="0.0.0.0", description="监听地址")
    port: int = Field(default=8000, ge=1, le=65535, description="监听端口")

    # AI
    ai_enabled: bool = Field(default=True, description="是否启用 AI 助手")
    ai_provider: str = Field(default="zhipu", description="AI 提供方")
    zhipu_api_key: str = Field(default="", description="智谱 API Key")
    ai_model: str = Field(default="glm-4", description="模型名称")
    ai_temperature: float = Field(default=0.7, description="采样温度")
    ai_max_tokens: int = Field(default=4096, description="最大生成 token 数")
    max_context_mappings: int = Field(default=20, ge=1, description="创建 mapping 时带入的上下文 mapping 数")

    # 工作区
    default_namespace: str = Field(default="default", description="默认工作区")
    seed_demo_data: bool = Field(default=True, description="启动时写入演示数据")

    def oracle_config(self) -> OracleConfig:
        return OracleConfig(
            model=self.ai_model,
            temperature=self.ai_temperature,
            max_tokens=self.ai_max_tokens,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
