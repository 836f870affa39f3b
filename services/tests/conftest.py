"""
Top-level test configuration for the GitHub SCM adapter.
"""

import hashlib
import hmac
import json
import os
from typing import Any

import pytest

# Ensure test-friendly defaults
os.environ.setdefault("SCM_GITHUB_JSON_LOGS", "false")
os.environ.setdefault("SCM_GITHUB_LOG_LEVEL", "DEBUG")

from scm_github.config import GithubScmConfig  # noqa: E402
from scm_github.services.github_scm import GithubScm  # noqa: E402

WEBHOOK_SECRET = "somesecret"
TOKEN = "sometoken"


class FakeGitHub:
    """Invoker that answers named GitHub operations from canned results.

    Each (scope, action) holds a queue of results. Results are consumed in
    order and the last one repeats. Exceptions are raised instead of returned.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str, dict[str, Any]]] = []
        self._results: dict[tuple[str, str], list[Any]] = {}

    def respond(self, action: str, *results: Any, scope: str = "repos") -> None:
        self._results.setdefault((scope, action), []).extend(results)

    def calls_to(self, action: str, scope: str = "repos") -> list[dict[str, Any]]:
        return [params for s, a, _, params in self.calls if (s, a) == (scope, action)]

    async def invoke(
        self, scope_type: str, action: str, token: str, params: dict[str, Any]
    ) -> Any:
        self.calls.append((scope_type, action, token, params))
        queue = self._results.get((scope_type, action))
        if not queue:
            raise AssertionError(f"Unexpected GitHub call {scope_type}.{action}")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return "sha1=" + hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def webhook_request(
    event: str, payload: dict[str, Any], secret: str = WEBHOOK_SECRET
) -> tuple[dict[str, str], bytes]:
    """Headers and body for a signed webhook delivery."""
    body = json.dumps(payload).encode()
    headers = {
        "x-hub-signature": sign(body, secret),
        "x-github-event": event,
        "x-github-delivery": "3c77bf80-9a2f-11e6-80d6-72f7fe03ea29",
        "content-type": "application/json",
    }
    return headers, body


@pytest.fixture
def scm_config() -> GithubScmConfig:
    return GithubScmConfig(
        oauth_client_id="abcdefg",
        oauth_client_secret="hijklmno",
        secret=WEBHOOK_SECRET,
        fusebox={"retry": {"min_timeout": 0.001, "max_timeout": 0.01}},
    )


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def scm(scm_config: GithubScmConfig, github: FakeGitHub) -> GithubScm:
    return GithubScm(scm_config, invoker=github)


@pytest.fixture
def make_webhook():
    """Build signed (headers, body) pairs for webhook deliveries."""
    return webhook_request


@pytest.fixture
def pr_payload() -> dict[str, Any]:
    return {
        "action": "opened",
        "number": 1,
        "pull_request": {
            "number": 1,
            "user": {"login": "baxterthehacker"},
            "head": {
                "ref": "changes",
                "sha": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
                "repo": {"full_name": "baxterthehacker/public-repo"},
            },
            "base": {
                "ref": "master",
                "sha": "9353195a19e45482665306e466c832c46560532d",
                "repo": {"full_name": "baxterthehacker/public-repo"},
            },
        },
        "repository": {
            "full_name": "baxterthehacker/public-repo",
            "ssh_url": "git@github.com:baxterthehacker/public-repo.git",
        },
        "sender": {"login": "baxterthehacker"},
    }


@pytest.fixture
def push_payload() -> dict[str, Any]:
    return {
        "ref": "refs/heads/master",
        "before": "9049f1265b7d61be4a8904a9a27120d2064dab3b",
        "after": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
        "commits": [
            {
                "id": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
                "message": "Update README.md",
                "added": ["docs/new.md"],
                "modified": ["README.md"],
                "removed": [],
            },
            {
                "id": "1d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1d",
                "message": "Tidy",
                "added": [],
                "modified": ["README.md", "setup.cfg"],
                "removed": ["old.txt"],
            },
        ],
        "head_commit": {
            "id": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
            "message": "Update README.md",
        },
        "repository": {
            "full_name": "baxterthehacker/public-repo",
            "ssh_url": "git@github.com:baxterthehacker/public-repo.git",
        },
        "sender": {"login": "baxterthehacker"},
    }
