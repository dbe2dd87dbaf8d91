"""开发环境启动 FastAPI 服务。"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from interviewlens.config import AppConfig
from interviewlens.service import build_service
from interviewlens.ui import create_app

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")


def build_app(config: AppConfig) -> FastAPI:
    """装配服务并把其生命周期挂到应用的 lifespan 上。"""

    service = build_service(config)
    return create_app(orchestrator=service.orchestrator, config=config, lifespan=service.lifespan)


async def main(config: Optional[AppConfig] = None) -> None:
    config_model = config or AppConfig.load()
    app = build_app(config_model)

    # uvicorn 自行处理 SIGINT/SIGTERM，退出时触发 lifespan 关闭服务
    server = uvicorn.Server(
        uvicorn.Config(app, host=config_model.api_host, port=config_model.api_port, reload=False)
    )
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
