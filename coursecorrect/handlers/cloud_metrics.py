import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ..deps import get_http, get_metrics_tokens
from ..errors import UpstreamError
from ..models import CloudMetricsRequest
from ..monitoring import DEFAULT_DAYS_BACK, ServiceAccountTokens, clamp_days_back, collect_metrics


logger = logging.getLogger(__name__)

router = APIRouter()


async def _days_back(request: Request) -> float:
    # No body or an invalid one falls back to the default window.
    try:
        body = CloudMetricsRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return DEFAULT_DAYS_BACK
    return clamp_days_back(body.days_back)


@router.post("/cloud-metrics")
async def cloud_metrics(
    request: Request,
    tokens: Optional[ServiceAccountTokens] = Depends(get_metrics_tokens),
    http: httpx.AsyncClient = Depends(get_http),
):
    if tokens is None:
        raise HTTPException(status_code=500, detail="GOOGLE_SERVICE_ACCOUNT_KEY secret not set")

    days_back = await _days_back(request)
    try:
        return await collect_metrics(http, tokens, days_back)
    except UpstreamError as e:
        logger.error("Cloud metrics error: %s", e)
        raise HTTPException(status_code=500, detail="Cloud metrics failed. Please try again.")
