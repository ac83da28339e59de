"""Notification settings and scheduling API routes."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from typing_extensions import Annotated

from portfel.api.dependencies import AppDependencies, get_deps

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _apply_schedule(deps: AppDependencies, force: bool = False) -> str:
    settings = await deps.settings.load()
    status = await deps.scheduler.schedule(settings, force=force)
    return status.value


@router.get("/settings")
async def get_settings(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Get notification settings (defaults are created on first read)."""
    return (await deps.settings.load()).to_dict()


@router.put("/settings")
async def update_settings(
    payload: dict,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Partially update settings, then bring the schedule in line with them."""
    if not await deps.settings.update(payload):
        raise HTTPException(status_code=400, detail="Invalid notification settings")

    schedule = await _apply_schedule(deps)
    return {"settings": (await deps.settings.load()).to_dict(), "schedule": schedule}


@router.post("/settings/reset")
async def reset_settings(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, Any]:
    """Restore default settings."""
    if not await deps.settings.reset():
        raise HTTPException(status_code=500, detail="Failed to reset notification settings")

    schedule = await _apply_schedule(deps)
    return {"settings": (await deps.settings.load()).to_dict(), "schedule": schedule}


@router.get("/quiet-hours")
async def get_quiet_hours_status(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, bool]:
    """Whether the current local time is inside quiet hours."""
    return {"quiet": await deps.settings.is_quiet_hours()}


@router.post("/permission")
async def request_permission(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, bool]:
    return {"granted": await deps.scheduler.request_permission()}


@router.get("/scheduled")
async def get_scheduled(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> list[dict[str, Any]]:
    """Recurring notifications currently registered."""
    return [s.to_dict() for s in await deps.scheduler.get_scheduled()]


@router.post("/schedule")
async def schedule(
    deps: Annotated[AppDependencies, Depends(get_deps)],
    payload: Annotated[Optional[dict], Body()] = None,
) -> dict[str, Any]:
    """Re-apply the current settings. ``{"force": true}`` re-registers even if unchanged."""
    force = bool((payload or {}).get("force", False))
    status = await deps.scheduler.schedule(await deps.settings.load(), force=force)
    return {"status": status.value, "ok": status.ok}


@router.delete("/scheduled")
async def cancel_all(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    if not await deps.scheduler.cancel_all():
        raise HTTPException(status_code=500, detail="Failed to cancel scheduled notifications")
    return {"status": "ok"}


@router.delete("/scheduled/{notification_id}")
async def cancel(
    notification_id: str,
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, str]:
    if not await deps.scheduler.cancel(notification_id):
        raise HTTPException(status_code=404, detail="Scheduled notification not found")
    return {"status": "ok"}


@router.post("/test")
async def send_test(
    deps: Annotated[AppDependencies, Depends(get_deps)],
) -> dict[str, bool]:
    """Send a notification now, ignoring schedule and quiet hours."""
    return {"sent": await deps.scheduler.send_test()}
