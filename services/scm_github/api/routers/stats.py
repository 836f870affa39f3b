"""Executor statistics endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from scm_github.api.dependencies import get_scm
from scm_github.services.github_scm import GithubScm

router = APIRouter(tags=["stats"])


@router.get("/stats")
async def stats(scm: GithubScm = Depends(get_scm)) -> dict[str, dict[str, Any]]:
    """Request counters and breaker state keyed by scm context."""
    return scm.stats()
