"""
Admin / metrics API routes.

All endpoints require a valid ``X-Admin-Key`` header.

Endpoints:
    GET  /api/metrics        — performance counters and queue snapshot
    POST /api/metrics/reset  — reset performance counters
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from security import require_admin_key
from src.transcription.orchestrator import TranscriptionOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["admin"])


@router.get("/metrics")
def get_metrics(
    _=Depends(require_admin_key),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
) -> dict:
    return {
        "success": True,
        "data": {
            "performance": orchestrator.metrics.to_dict(),
            "queue": orchestrator.queue_status(),
            "jobs": [job.to_dict() for job in orchestrator.jobs()],
            "timestamp": datetime.utcnow().isoformat(),
        },
    }


@router.post("/metrics/reset")
def reset_metrics(
    _=Depends(require_admin_key),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
) -> dict:
    orchestrator.metrics.reset()
    logger.info("Performance metrics reset")
    return {
        "success": True,
        "message": "Performance metrics reset successfully",
        "timestamp": datetime.utcnow().isoformat(),
    }
