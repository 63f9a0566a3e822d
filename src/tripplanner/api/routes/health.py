"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.osrm_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
async def health_osrm() -> dict:
    """Check OSRM service health."""
    try:
        osrm_health_check = _get_osrm_health_check()
        status_flag = await osrm_health_check()
        return {"service": "osrm", "healthy": status_flag}
    except Exception as e:
        return {"service": "osrm", "healthy": False, "error": str(e)}


@router.get("/health/routing", status_code=status.HTTP_200_OK)
async def health_routing(request: Request) -> dict:
    """Report the route queue and the days waiting for a recomputation."""
    orchestrator = request.app.state.orchestrator
    return {
        "service": "routing",
        "queue_processing": orchestrator.queue.is_processing,
        "pending_days": orchestrator.queue.pending_keys,
        "scheduled_days": orchestrator.scheduled_days,
    }
