"""
Health check endpoints for the adapter API.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Request, Response, status

from scm_github.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe endpoint.

    Returns 200 if the API server is running.
    """
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(request: Request, response: Response) -> dict[str, str | dict[str, str]]:
    """Readiness probe endpoint.

    Not ready until the adapter exists, or while its circuit breaker is open.
    """
    checks: dict[str, str] = {}

    scm = getattr(request.app.state, "scm", None)
    if scm is None:
        checks["scm"] = "unhealthy"
    else:
        checks["scm"] = "healthy"
        checks["breaker"] = scm.executor.breaker.state.value

    all_healthy = checks["scm"] == "healthy" and checks.get("breaker") != "open"

    if not all_healthy:
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
