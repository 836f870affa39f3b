"""GitHub webhook receiver.

Verifies the HMAC signature over the raw body and returns the normalized
event for the orchestrator to act on.

Endpoints:
    POST /webhooks/github
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from scm_github.api.dependencies import get_scm
from scm_github.logging_config import get_logger
from scm_github.services.github_scm import GithubScm

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


@router.post("/github")
async def github_webhook(request: Request, scm: GithubScm = Depends(get_scm)) -> Response:
    """Receive a GitHub webhook delivery.

    401 on a bad signature, 204 when the event needs no action.
    """
    payload = await request.body()
    event = await scm.parse_hook(request.headers, payload)

    if event is None:
        logger.debug(
            "Webhook event ignored",
            event=request.headers.get("x-github-event"),
            hook_id=request.headers.get("x-github-delivery"),
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    logger.info(
        "Webhook event received",
        type=event.type,
        checkout_url=event.checkout_url,
        hook_id=event.hook_id,
    )
    return JSONResponse(content=event.to_dict())
