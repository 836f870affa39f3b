"""FastAPI dependencies for the adapter API."""

from fastapi import HTTPException, Request, status

from scm_github.services.github_scm import GithubScm


def get_scm(request: Request) -> GithubScm:
    """Return the adapter held by the application. 503 until it is initialized."""
    scm: GithubScm | None = getattr(request.app.state, "scm", None)
    if scm is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SCM adapter not initialized",
        )
    return scm
