"""GitHub REST API invoker.

Maps the fixed set of named operations the adapter uses onto GitHub REST
endpoints. Path placeholders are filled from the call's params; the
remaining params become the query string for GET requests and the JSON body
otherwise. The token is sent on each request and never stored.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote as url_quote

import httpx

from scm_github.errors import NotFoundError, RemoteError
from scm_github.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class Operation:
    method: str
    path: str
    # Placeholders whose values may contain "/" (file paths)
    raw_path_params: tuple[str, ...] = ()


OPERATIONS: dict[tuple[str, str], Operation] = {
    ("repos", "get"): Operation("GET", "/repos/{owner}/{repo}"),
    ("repos", "get_by_id"): Operation("GET", "/repositories/{id}"),
    ("repos", "get_branch"): Operation("GET", "/repos/{owner}/{repo}/branches/{branch}"),
    ("repos", "get_branches"): Operation("GET", "/repos/{owner}/{repo}/branches"),
    ("repos", "get_commit"): Operation("GET", "/repos/{owner}/{repo}/commits/{sha}"),
    ("repos", "get_content"): Operation(
        "GET", "/repos/{owner}/{repo}/contents/{path}", raw_path_params=("path",)
    ),
    ("repos", "create_status"): Operation("POST", "/repos/{owner}/{repo}/statuses/{sha}"),
    ("repos", "get_hooks"): Operation("GET", "/repos/{owner}/{repo}/hooks"),
    ("repos", "create_hook"): Operation("POST", "/repos/{owner}/{repo}/hooks"),
    ("repos", "edit_hook"): Operation("PATCH", "/repos/{owner}/{repo}/hooks/{hook_id}"),
    ("pull_requests", "get"): Operation("GET", "/repos/{owner}/{repo}/pulls/{number}"),
    ("pull_requests", "get_all"): Operation("GET", "/repos/{owner}/{repo}/pulls"),
    ("pull_requests", "get_files"): Operation(
        "GET", "/repos/{owner}/{repo}/pulls/{number}/files"
    ),
    ("issues", "create_comment"): Operation(
        "POST", "/repos/{owner}/{repo}/issues/{number}/comments"
    ),
    ("users", "get_for_user"): Operation("GET", "/users/{username}"),
    ("users", "get_org_membership"): Operation("GET", "/user/memberships/orgs/{org}"),
}


def _path_fields(template: str) -> list[str]:
    fields = []
    for chunk in template.split("{")[1:]:
        fields.append(chunk.split("}", 1)[0])
    return fields


def build_request(
    operation: Operation, params: dict[str, Any]
) -> tuple[str, dict[str, Any], dict[str, Any] | None]:
    """Split params into (path, query, json body) for an operation."""
    remaining = dict(params)
    path_values = {}
    for name in _path_fields(operation.path):
        if name not in remaining:
            raise ValueError(f"Missing path parameter '{name}' for {operation.path}")
        safe = "/" if name in operation.raw_path_params else ""
        path_values[name] = url_quote(str(remaining.pop(name)), safe=safe)

    path = operation.path.format(**path_values)
    if operation.method == "GET":
        return path, remaining, None
    return path, {}, remaining


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return resp.text


class GitHubClient:
    """RemoteInvoker backed by the GitHub REST API."""

    def __init__(
        self,
        api_url: str = DEFAULT_GITHUB_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._transport = transport

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def invoke(
        self, scope_type: str, action: str, token: str, params: dict[str, Any]
    ) -> Any:
        operation = OPERATIONS.get((scope_type, action))
        if operation is None:
            raise ValueError(f"Unknown GitHub operation {scope_type}.{action}")

        path, query, body = build_request(operation, params)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.request(
                    operation.method,
                    f"{self.api_url}{path}",
                    params=query or None,
                    json=body,
                    headers=self._headers(token),
                )
        except httpx.HTTPError as e:
            raise RemoteError(f"GitHub request {scope_type}.{action} failed: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(_error_message(resp))
        if resp.is_error:
            logger.debug(
                "GitHub returned an error",
                action=f"{scope_type}.{action}",
                status_code=resp.status_code,
            )
            raise RemoteError(_error_message(resp), status_code=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()
