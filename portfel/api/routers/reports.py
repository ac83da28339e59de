"""Report and notification history API routes."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from typing_extensions import Annotated

from portfel.api.dependencies import AppDependencies, get_deps
from portfel.models import ReportPeriod

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/generate")
async def generate_report(
    deps: Annotated[AppDependencies, Depends(get_deps)],
    payload: Annotated[Optional[dict], Body()] = None,
) -> dict[str, Any]:
    """
    Generate a report now.

    Body (optional): ``{"period": "daily" | "weekly", "include_positions": bool}``.
    The report is recorded in history and becomes the new diff baseline.
    """
    payload = payload or {}
    try:
        period = ReportPeriod(payload.get("period", "daily"))
    except ValueError:
        raise HTTPException(status_code=400, detail="'period' must be 'daily' or 'weekly'") from None

    include_positions = payload.get("include_positions")
    if include_positions is not None and not isinstance(include_positions, bool):
        raise HTTPException(status_code=400, detail="'include_positions' must be a boolean")

    report = await deps.reports.generate(period, include_positions)
    return {"report": report.to_dict(), "body": deps.reports.format_body(report)}


@router.get("/history")
async def get_history(
    deps: Annotated[AppDependencies, Depends(get_deps)],
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Report history, oldest first."""
    return [entry.to_dict() for entry in await deps.reports.get_history(limit)]


@router.post("/history/{report_id}/opened")
async def mark_opened(
    report_id: str,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    if not await deps.reports.mark_as_opened(report_id):
        raise HTTPException(status_code=404, detail="Report not found")
    return {"status": "ok"}


@router.delete("/history")
async def clear_history(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    if not await deps.reports.clear_history():
        raise HTTPException(status_code=500, detail="Failed to clear history")
    return {"status": "ok"}


@router.get("/snapshot")
async def get_snapshot(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """The baseline the next report is compared with."""
    snapshot = await deps.reports.get_snapshot()
    return {"snapshot": snapshot.to_dict() if snapshot else None}
