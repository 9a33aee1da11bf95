# evalhub/routes/health.py
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from evalhub.core.healthcheck import is_healthy

logger = logging.getLogger(__name__)

router = APIRouter()
tags = ["health"]


@router.get("/health")
async def healthcheck():
    if not await is_healthy():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Unhealthy"
        )
    return {"status": "ready"}
