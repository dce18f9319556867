"""
Health and metrics endpoints. No auth, no secrets.
"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from gather.api.deps import get_services
from gather.core.container import Services
from gather.core.metrics import METRICS

logger = logging.getLogger("gather")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Liveness: the process answers"""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(services: Services = Depends(get_services)):
    """Readiness: the document store answers"""
    if not services.db.check_connection():
        logger.warning("[readyz] database unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
    return {"status": "ok"}


@router.get("/metrics")
def metrics_endpoint():
    return Response(content=METRICS.export_prometheus(), media_type="text/plain")
