"""
Health check endpoint for the meter billing API.

GET /health returns HTTP 200 with the service status and whether the
in-process scheduler is running. No authentication; intended for Docker
HEALTHCHECK and internal monitoring.

CHANGELOG:
- 2026-10-16: Report scheduler state
- 2026-10-15: Initial creation

TODO:
- None
"""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    """Return service status and scheduler state.

    Returns:
        dict: ``{"status": "ok", "scheduler": "running" | "stopped" | "disabled"}``.
    """
    task = getattr(request.app.state, "scheduler_task", None)
    if task is None:
        scheduler = "disabled"
    elif task.done():
        scheduler = "stopped"
    else:
        scheduler = "running"
    return {"status": "ok", "scheduler": scheduler}
