#!/usr/bin/env python3
"""
启动 API Simulator 助手服务
端点与工作区数据保存在进程内存中，因此只使用单个 worker
"""
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    import uvicorn
    from simulator.config import settings

    print("=" * 50)
    print("🚀 启动 API Simulator Assistant")
    print("=" * 50)
    print(f"Host: {settings.host}")
    print(f"Port: {settings.port}")
    print(f"Model: {settings.ai_model}")
    print(f"Demo data: {'on' if settings.seed_demo_data else 'off'}")
    print("=" * 50)

    uvicorn.run(
        "simulator.main:app",
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level="info"
    )
