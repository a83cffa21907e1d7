"""Liveness endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
def index() -> str:
    return "Voice Micropayment Agent is running."


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
