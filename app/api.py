"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import Bin, ReadingOutcome, ReadingRequest
from services.processor import ReadingProcessor, build_default_processor

router = APIRouter()


def get_processor() -> ReadingProcessor:
    return build_default_processor()


@router.post(
    "/readings",
    response_model=ReadingOutcome,
    summary="Evaluate a distance reading reported by a bin sensor.",
)
async def post_reading(
    reading: ReadingRequest,
    processor: ReadingProcessor = Depends(get_processor),
) -> ReadingOutcome:
    future = processor.submit_reading(reading.sensor_id, reading.distance)
    return await asyncio.wrap_future(future)


@router.get(
    "/bins",
    response_model=list[Bin],
    summary="List bins ordered by fill percentage, fullest first.",
)
async def list_bins(
    full: bool = Query(False, description="Only return bins at or above their threshold."),
    processor: ReadingProcessor = Depends(get_processor),
) -> list[Bin]:
    return processor.list_bins(full_only=full)


@router.get(
    "/bins/{bin_id}",
    response_model=Bin,
    summary="Fetch the current fill and alert state of a bin.",
)
async def get_bin(
    bin_id: str,
    processor: ReadingProcessor = Depends(get_processor),
) -> Bin:
    try:
        return processor.fetch_bin(bin_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
