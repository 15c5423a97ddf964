from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from ..ai import Classifier
from ..ai.simple import HeuristicNoteClassifier
from .schemas import ClassificationResponse, ClassifyRequest
from .service import ClassificationService

logger = logging.getLogger(__name__)


def create_app(classifier: Classifier | None = None) -> FastAPI:
    selected_classifier = classifier or HeuristicNoteClassifier()
    service = ClassificationService(classifier=selected_classifier)

    app = FastAPI(title="CashGuard inference API")
    app.state.service = service

    @app.get("/health", response_model=dict[str, str])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/classify", response_model=ClassificationResponse)
    def classify(request: ClassifyRequest) -> ClassificationResponse:
        logger.info(
            "Classify request device=%s payload_bytes=%d",
            request.device_id,
            len(request.image_base64 or ""),
        )
        try:
            sample = service.classify_payload(request.model_dump())
        except RuntimeError as exc:
            logger.exception(
                "Classification failed device=%s error=%s", request.device_id, exc
            )
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return ClassificationResponse(
            label=sample.label,
            confidence=sample.confidence,
            features=list(sample.features),
        )

    return app


__all__ = ["create_app"]
