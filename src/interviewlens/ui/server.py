"""FastAPI 控制接口。"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from interviewlens.adapters.speaking import SimulatedSpeakingAdapter
from interviewlens.adapters.vision.simulated import SimulatedFrameClassifier
from interviewlens.config import AppConfig
from interviewlens.core.orchestrator import CycleOrchestrator, TransitionResult


def create_app(
    orchestrator: Optional[CycleOrchestrator] = None,
    config: Optional[AppConfig] = None,
    lifespan: Optional[Callable[[FastAPI], Any]] = None,
) -> FastAPI:
    """构建 FastAPI 应用并注册面试控制路由。

    lifespan 可传入 `InterviewService.lifespan`，让服务器的启动与关闭驱动外部资源。
    """

    app = FastAPI(title="interviewlens", lifespan=lifespan)
    config = config or AppConfig.load_default()
    if orchestrator is None:
        orchestrator = CycleOrchestrator(
            classifier=SimulatedFrameClassifier(),
            speaking=SimulatedSpeakingAdapter(),
            config=config,
        )
    app.state.orchestrator = orchestrator

    def _transition(result: TransitionResult) -> JSONResponse:
        # 非法状态迁移返回 409，响应体与成功时结构一致
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 409)

    @app.get("/api/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "state": orchestrator.state.value}

    @app.post("/api/interview/start-models", tags=["interview"])
    async def start_models() -> JSONResponse:
        return _transition(orchestrator.start_models())

    @app.post("/api/interview/start-collection", tags=["interview"])
    async def start_collection() -> JSONResponse:
        return _transition(orchestrator.start_data_collection())

    @app.post("/api/interview/stop-collection", tags=["interview"])
    async def stop_collection(finalize: bool = False) -> JSONResponse:
        return _transition(orchestrator.stop_data_collection(finalize_partial=finalize))

    @app.post("/api/interview/end", tags=["interview"])
    async def end_interview() -> JSONResponse:
        return _transition(orchestrator.end_interview())

    @app.get("/api/interview/status", tags=["interview"])
    async def status() -> dict:
        return {"success": True, "status": orchestrator.get_current_status().to_dict()}

    @app.get("/api/interview/cycle-results", tags=["interview"])
    async def cycle_results() -> dict:
        results = orchestrator.get_cycle_results()
        return {
            "success": True,
            "totalCycles": len(results),
            "results": [result.to_dict() for result in results],
        }

    @app.get("/api/interview/summary", tags=["interview"])
    async def analysis_summary() -> dict:
        summary = orchestrator.get_analysis_summary()
        return {"success": True, "summary": summary.to_dict() if summary is not None else None}

    @app.get("/api/interview/session-summary", tags=["interview"])
    async def session_summary() -> dict:
        summary = orchestrator.get_session_summary()
        return {"success": True, "summary": summary.to_dict() if summary is not None else None}

    @app.get("/api/interview/recent", tags=["interview"])
    async def recent_results(limit: Optional[int] = Query(None, ge=0)) -> dict:
        results = orchestrator.get_recent_results(limit)
        return {"success": True, "results": [result.to_dict() for result in results]}

    @app.get("/api/interview/speaking-summary", tags=["interview"])
    async def speaking_summary() -> dict:
        summary = orchestrator.get_speaking_summary()
        if summary is None:
            return {"success": True, "summary": None, "message": "暂无语音分析数据"}
        return {"success": True, "summary": summary.to_dict()}

    return app
