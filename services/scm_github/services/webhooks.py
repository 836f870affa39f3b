"""GitHub webhook verification and normalization.

The signature is checked against the raw body before anything in the
payload is parsed. Verified events are turned into PingEvent,
PullRequestEvent or PushEvent records.

Headers:
    x-hub-signature    sha1=<hex digest of the body keyed with the shared secret>
    x-github-event     ping | pull_request | push
    x-github-delivery  delivery id, passed through as hook_id
"""

import hashlib
import hmac
import json
from collections.abc import Mapping
from typing import Any

from scm_github.errors import InvalidSignatureError, UnsupportedEventError, ValidationError
from scm_github.logging_config import get_logger
from scm_github.models import PingEvent, PullRequestEvent, PushEvent, WebhookEvent

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-hub-signature"
EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"
SIGNATURE_ALGORITHM = "sha1"

SUPPORTED_PR_ACTIONS = frozenset({"opened", "reopened", "synchronized", "closed"})


def header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def reach(payload: Any, path: str, default: Any = None) -> Any:
    """Follow a dotted path through nested dicts, returning default on a miss."""
    current = payload
    for key in path.split("."):
        if not isinstance(current, dict) or current.get(key) is None:
            return default
        current = current[key]
    return current


def compute_signature(secret: str, payload: bytes) -> str:
    digest = hmac.new(secret.encode(), payload, getattr(hashlib, SIGNATURE_ALGORITHM)).hexdigest()
    return f"{SIGNATURE_ALGORITHM}={digest}"


def verify_signature(secret: str, payload: bytes, signature: str | None) -> bool:
    """Validate a GitHub webhook HMAC signature in constant time."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, payload), signature)


def normalize_event(
    event_type: str | None,
    payload: dict[str, Any],
    hook_id: str | None,
    scm_context: str,
) -> WebhookEvent | None:
    """Convert a verified GitHub payload into a canonical event.

    Returns None for pull request actions nobody acts on; raises
    UnsupportedEventError for event types other than ping, pull_request
    and push.
    """
    checkout_url = reach(payload, "repository.ssh_url")

    if event_type == "ping":
        return PingEvent(
            checkout_url=checkout_url,
            username=reach(payload, "sender.login"),
            hook_id=hook_id,
            scm_context=scm_context,
        )

    if event_type == "pull_request":
        action = reach(payload, "action")
        if action == "synchronize":
            action = "synchronized"
        if action not in SUPPORTED_PR_ACTIONS:
            logger.debug("Ignoring pull request action", action=action, hook_id=hook_id)
            return None

        pr_num = reach(payload, "pull_request.number")
        if pr_num is None:
            logger.warning("Pull request event without a number", hook_id=hook_id)
            return None

        head_repo = reach(payload, "pull_request.head.repo.full_name")
        base_repo = reach(payload, "pull_request.base.repo.full_name")
        return PullRequestEvent(
            action=action,
            branch=reach(payload, "pull_request.base.ref"),
            checkout_url=checkout_url,
            pr_num=pr_num,
            pr_ref=f"pull/{pr_num}/merge",
            pr_source="branch" if head_repo == base_repo else "fork",
            sha=reach(payload, "pull_request.head.sha"),
            username=reach(payload, "pull_request.user.login"),
            hook_id=hook_id,
            scm_context=scm_context,
        )

    if event_type == "push":
        return PushEvent(
            branch=reach(payload, "ref", "").removeprefix("refs/heads/"),
            checkout_url=checkout_url,
            sha=reach(payload, "after"),
            username=reach(payload, "sender.login"),
            last_commit_message=reach(payload, "head_commit.message", ""),
            hook_id=hook_id,
            scm_context=scm_context,
        )

    raise UnsupportedEventError(event_type)


def parse_webhook(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    scm_context: str,
) -> WebhookEvent | None:
    """Verify and normalize one webhook delivery.

    Raises InvalidSignatureError before looking at the body when the
    signature does not match.
    """
    if not verify_signature(secret, body, header(headers, SIGNATURE_HEADER)):
        logger.warning("Invalid webhook signature", hook_id=header(headers, DELIVERY_HEADER))
        raise InvalidSignatureError()

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationError("Webhook payload is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    return normalize_event(
        header(headers, EVENT_HEADER),
        payload,
        header(headers, DELIVERY_HEADER),
        scm_context,
    )
