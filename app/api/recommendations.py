"""Recommendation endpoints backed by TMDB or the external ML service."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from ..models import (
    MLRecommendationRequest,
    RecommendationByIdRequest,
    RecommendationByTitleRequest,
)
from ..utils import ok
from .deps import Ctx

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

ML_TIMEOUT_SECONDS = 120.0


@router.post("")
async def recommendations(
    context: Ctx,
    body: RecommendationByIdRequest | RecommendationByTitleRequest = Body(...),
) -> dict[str, Any]:
    if isinstance(body, RecommendationByTitleRequest):
        items = await context.translator.legacy_recommendations(body.title, body.top_n)
        return ok({"recommendations": items})
    data, source = await context.tmdb.recommendations(body.media_type, body.tmdb_id, body.page)
    return ok(data, source)


@router.post("/ml", response_model=None)
async def ml_recommendations(
    context: Ctx, body: MLRecommendationRequest
) -> dict[str, Any] | JSONResponse:
    try:
        response = await context.ml_client.post(
            str(context.settings.ml_recommendations_url),
            json={"titles": body.titles, "top_n": body.top_n},
            timeout=ML_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("External ML API failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": {
                    "code": "ML_UNAVAILABLE",
                    "message": "External ML API temporarily unavailable",
                    "details": str(exc),
                },
            },
        )

    if not isinstance(payload, dict):
        payload = {}
    return ok(
        {
            "recommendations": payload.get("recommendations") or [],
            "found_titles": payload.get("found_titles") or [],
            "message": payload.get("message"),
            "processing_time": payload.get("processing_time"),
            "recommendation_sources": payload.get("recommendation_sources"),
            "source": "external_ml_api",
        }
    )
