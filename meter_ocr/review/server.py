import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from meter_ocr.exceptions import PersistenceError
from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.review.schemas import ApplyRequest, CorrectionRequest
from meter_ocr.types import ErrorKind


class LearningServer:
    """HTTP interface to the learning engine for the capture and dashboard UIs."""

    def __init__(self, coordinator: LearningCoordinator, logger: Optional[logging.Logger] = None):
        self.coordinator = coordinator
        self.logger = logger or logging.getLogger(__name__)

        self.app = FastAPI(title="Meter OCR Learning")
        self._configure_cors()
        self._register_routes()

    def _configure_cors(self) -> None:
        """Configure CORS middleware."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=[f"http://localhost:{port}" for port in range(3000, 5174)]
            + [f"http://127.0.0.1:{port}" for port in range(3000, 5174)],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _register_routes(self) -> None:
        """Register API routes."""
        self.app.add_api_route("/api/ping", self.ping, methods=["GET"])
        self.app.add_api_route("/api/statistics", self.get_statistics, methods=["GET"])
        self.app.add_api_route("/api/rules", self.get_rules, methods=["GET"])
        self.app.add_api_route("/api/patterns", self.get_patterns, methods=["GET"])
        self.app.add_api_route("/api/observations", self.get_observations, methods=["GET"])
        self.app.add_api_route("/api/apply", self.apply, methods=["POST"])
        self.app.add_api_route("/api/corrections", self.submit_correction, methods=["POST"])
        self.app.add_api_route("/api/reset", self.reset, methods=["POST"])

    async def ping(self) -> Dict[str, str]:
        return {"status": "ok"}

    async def get_statistics(self) -> Dict[str, Any]:
        return self.coordinator.get_statistics().to_dict()

    async def get_rules(self) -> List[Dict[str, Any]]:
        return [{**rule.to_dict(), "id": rule.id} for rule in self.coordinator.list_rules()]

    async def get_patterns(self) -> List[Dict[str, Any]]:
        return [pattern.to_dict() for pattern in self.coordinator.list_patterns()]

    async def get_observations(self, error_kind: Optional[ErrorKind] = None) -> List[Dict[str, Any]]:
        try:
            observations = self.coordinator.list_observations(error_kind)
        except PersistenceError as e:
            self.logger.error(f"Failed to read observations: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        return [{**observation.to_dict(), "id": observation.id} for observation in observations]

    async def apply(self, request: ApplyRequest) -> Dict[str, Any]:
        result = self.coordinator.apply(request.ocr_result.to_result(), request.context.to_context())
        return result.to_dict()

    async def submit_correction(self, request: CorrectionRequest) -> Dict[str, Any]:
        features = request.image_features.to_features() if request.image_features else None
        try:
            observation = self.coordinator.submit_correction(
                request.ocr_result.to_result(),
                request.user_text,
                image_features=features,
                context=request.context.to_context(),
            )
        except PersistenceError as e:
            self.logger.error(f"Failed to save correction: {e}")
            raise HTTPException(status_code=503, detail=str(e))

        if observation is None:
            return {"status": "unchanged", "observation": None}
        return {"status": "saved", "observation": {**observation.to_dict(), "id": observation.id}}

    async def reset(self) -> Dict[str, str]:
        try:
            self.coordinator.reset_learning_state()
        except PersistenceError as e:
            self.logger.error(f"Failed to reset learning state: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        return {"status": "reset"}

    def start(self, host: str = "127.0.0.1", port: int = 8000) -> None:
        """Serve the API until interrupted."""
        self.logger.info(f"Starting learning server on http://{host}:{port}")
        config = uvicorn.Config(self.app, host=host, port=port, log_level="error")
        server = uvicorn.Server(config)
        server.run()
