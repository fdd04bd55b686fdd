import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import ai
from .storage.seed import seed_demo_data

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 启动时初始化
    logger.info("🚀 API Simulator Assistant 启动")
    logger.info(f"📦 AI Provider: {settings.ai_provider}")
    logger.info(f"🧠 Model: {settings.ai_model}")
    if not ai.ai_available():
        logger.warning("⚠️ AI 助手未启用或未配置 ZHIPU_API_KEY")
    if settings.seed_demo_data:
        seed_demo_data(ai.mapping_store, ai.namespace_store, ai.user_store, settings.default_namespace)
        logger.info("🌱 已写入演示数据")
    yield
    logger.info("👋 API Simulator Assistant 关闭")


app = FastAPI(
    title="API Simulator Assistant",
    description="自然语言驱动的 API 模拟器助手：创建、修改、查询模拟端点，管理工作区与用户",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai.router)


@app.get("/", summary="服务信息", tags=["系统"])
async def root():
    """获取 API 服务信息"""
    return {"message": "API Simulator Assistant is running", "version": "1.0.0"}


@app.get("/health", summary="健康检查", tags=["系统"])
async def health():
    """检查服务健康状态"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "simulator.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
