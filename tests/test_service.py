from __future__ import annotations

from fastapi.testclient import TestClient

from interviewlens.adapters.vision.simulated import SimulatedFrameClassifier
from interviewlens.config import AppConfig
from interviewlens.core.orchestrator import OrchestratorState
from interviewlens.service import build_service
from interviewlens.ui import create_app


def test_simulated_backend_skips_camera() -> None:
    service = build_service(AppConfig(vision_backend="simulated"))
    assert isinstance(service.orchestrator.classifier, SimulatedFrameClassifier)
    assert service.frame_source is None

    service.start()
    service.close()
    assert service.orchestrator.state is OrchestratorState.ENDED


def test_disabled_vision_uses_simulation() -> None:
    service = build_service(AppConfig(vision_enabled=False))
    assert isinstance(service.orchestrator.classifier, SimulatedFrameClassifier)


def test_lifespan_drives_service_lifecycle() -> None:
    service = build_service(AppConfig(vision_backend="simulated"))
    app = create_app(orchestrator=service.orchestrator, lifespan=service.lifespan)

    with TestClient(app) as client:
        assert client.post("/api/interview/start-models").json()["success"] is True
        assert service.orchestrator.state is OrchestratorState.MODELS_RUNNING

    assert service.orchestrator.state is OrchestratorState.ENDED
