"""JSON API endpoints exposing trader status and closed trades. Read-only."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


def _to_json(obj: Any) -> Any:
    """Recursively convert Decimal, Enum and datetime values for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _to_json(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_json(item) for item in obj]
    return obj


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Current position, latest close, bars processed and cumulative profit."""
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        return JSONResponse(content={"error": "trader not running"}, status_code=503)
    return JSONResponse(content=_to_json(asdict(orchestrator.get_status())))


@router.get("/trades")
async def get_trades(request: Request) -> JSONResponse:
    """Trade records closed by this process, oldest first."""
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        return JSONResponse(content={"error": "trader not running"}, status_code=503)
    records = orchestrator.context.ledger.records
    return JSONResponse(content=[_to_json(asdict(r)) for r in records])
