"""面试分析服务启动入口。"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# 确保 src 加入路径
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from scripts.dev_server import main as run_dev_server
from interviewlens.config import AppConfig


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="interviewlens 实时面试行为分析服务")
    parser.add_argument("--host", help="监听地址，默认读取配置")
    parser.add_argument("--port", type=int, help="监听端口，默认读取配置")
    parser.add_argument("--simulate", action="store_true", help="不打开摄像头，使用模拟分类器")
    args = parser.parse_args()

    config = AppConfig.load()
    overrides: dict[str, object] = {}
    if args.host:
        overrides["api_host"] = args.host
    if args.port:
        overrides["api_port"] = args.port
    if args.simulate:
        overrides["vision_backend"] = "simulated"
    if overrides:
        config = config.model_copy(update=overrides)

    logging.getLogger(__name__).info("启动服务 http://%s:%d", config.api_host, config.api_port)
    asyncio.run(run_dev_server(config))


if __name__ == "__main__":
    main()
