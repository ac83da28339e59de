"""Portfolio and CSV import API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from typing_extensions import Annotated

from portfel.api.dependencies import AppDependencies, get_deps
from portfel.csv_import import generate_sample_csv, parse_csv, validate_csv_file
from portfel.errors import ValidationError
from portfel.models import Position

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("")
async def get_portfolio(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Get all positions with portfolio totals."""
    summary = await deps.portfolio.summary()
    return summary.to_dict()


@router.delete("")
async def clear_portfolio(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    """Remove every position."""
    if not await deps.portfolio.clear():
        raise HTTPException(status_code=500, detail="Failed to clear portfolio")
    return {"status": "ok"}


@router.post("")
async def add_position(
    payload: dict,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Add a position. An existing symbol is merged at weighted average cost."""
    try:
        position = Position.from_dict(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    if not await deps.portfolio.add(position):
        raise HTTPException(status_code=400, detail=f"Position {position.symbol} was rejected")

    stored = await deps.portfolio.get(position.symbol)
    return stored.to_dict() if stored else position.to_dict()


@router.post("/import")
async def import_csv(
    payload: dict,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """
    Import positions from CSV text.

    Body: ``{"content": "<csv text>", "filename": "positions.csv"}``. Valid rows
    are imported even when other rows fail; every failure is listed in ``errors``.
    """
    content = payload.get("content")
    if not isinstance(content, str):
        raise HTTPException(status_code=400, detail="Payload must include string field 'content'")

    check = validate_csv_file(content, payload.get("filename"), max_bytes=deps.config.csv_max_bytes)
    if not check.valid:
        raise HTTPException(status_code=400, detail=check.error)

    parsed = parse_csv(content)
    if not parsed.positions:
        return {"success": False, "imported": 0, "errors": parsed.errors}

    result = await deps.portfolio.import_positions(parsed.positions)
    errors = parsed.errors + result.errors
    return {"success": not errors and result.imported > 0, "imported": result.imported, "errors": errors}


@router.get("/import/sample")
async def get_sample_csv() -> PlainTextResponse:
    """Download a template CSV file."""
    return PlainTextResponse(
        generate_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="portfolio_sample.csv"'},
    )


@router.get("/{symbol}")
async def get_position(
    symbol: str,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Get a single position."""
    position = await deps.portfolio.get(symbol)
    if not position:
        raise HTTPException(status_code=404, detail="Position not found")
    return position.to_dict()


@router.put("/{symbol}")
async def update_position(
    symbol: str,
    payload: dict,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Update fields of an existing position."""
    if not await deps.portfolio.get(symbol):
        raise HTTPException(status_code=404, detail="Position not found")

    if not await deps.portfolio.update(symbol, payload):
        raise HTTPException(status_code=400, detail=f"Update for {symbol.upper()} was rejected")

    position = await deps.portfolio.get(symbol)
    return position.to_dict()


@router.delete("/{symbol}")
async def remove_position(
    symbol: str,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    """Remove a position. Removing an absent symbol succeeds."""
    if not await deps.portfolio.remove(symbol):
        raise HTTPException(status_code=500, detail=f"Failed to remove {symbol.upper()}")
    return {"status": "ok"}
