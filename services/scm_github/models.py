"""Data shapes exchanged between the adapter and the orchestrator."""

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class BuildStatus(StrEnum):
    """Orchestrator build states that map onto GitHub commit statuses."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"
    RUNNING = "RUNNING"
    QUEUED = "QUEUED"


@dataclass(frozen=True)
class RepoIdentifier:
    """A repository branch, serialized as ``host:repoId:branch``."""

    host: str
    repo_id: str
    branch: str

    def __str__(self) -> str:
        return f"{self.host}:{self.repo_id}:{self.branch}"


@dataclass(frozen=True)
class CheckoutUrlInfo:
    host: str
    owner: str
    repo: str
    branch: str


@dataclass(frozen=True)
class ScmInfo:
    """An identifier resolved to the repository's current owner and name."""

    host: str
    owner: str
    repo: str
    branch: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class Permissions:
    admin: bool
    push: bool
    pull: bool


@dataclass(frozen=True)
class OrgPermissions:
    admin: bool
    member: bool


@dataclass(frozen=True)
class AuthorInfo:
    avatar: str
    name: str
    username: str
    url: str


# Substituted when a commit cannot be attributed to a GitHub user
UNKNOWN_AUTHOR = AuthorInfo(
    avatar="https://cd.screwdriver.cd/assets/unknown_user.png",
    name="n/a",
    username="n/a",
    url="https://cd.screwdriver.cd/",
)


@dataclass(frozen=True)
class CommitInfo:
    author: AuthorInfo
    message: str
    url: str


@dataclass(frozen=True)
class UrlInfo:
    branch: str
    name: str
    url: str


@dataclass(frozen=True)
class PrSummary:
    name: str
    ref: str


@dataclass(frozen=True)
class PrInfo:
    name: str
    ref: str
    sha: str
    url: str
    username: str


@dataclass(frozen=True)
class PrComment:
    comment_id: str
    create_time: str
    username: str


@dataclass(frozen=True)
class CommitStatusUpdate:
    """One commit status as sent to GitHub."""

    scm_uri: str
    sha: str
    state: str
    description: str
    target_url: str | None
    context: str


# --- Webhook events ---


@dataclass(frozen=True)
class PingEvent:
    checkout_url: str
    username: str
    hook_id: str | None
    scm_context: str
    type: str = field(default="ping", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PullRequestEvent:
    action: str
    branch: str
    checkout_url: str
    pr_num: int
    pr_ref: str
    pr_source: str
    sha: str
    username: str
    hook_id: str | None
    scm_context: str
    type: str = field(default="pr", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PushEvent:
    branch: str
    checkout_url: str
    sha: str
    username: str
    last_commit_message: str
    hook_id: str | None
    scm_context: str
    action: str = field(default="push", init=False)
    type: str = field(default="repo", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


WebhookEvent = PingEvent | PullRequestEvent | PushEvent


@dataclass(frozen=True)
class ExecutorStats:
    """Point-in-time snapshot of executor counters."""

    requests_total: int
    requests_success: int
    requests_failure: int
    requests_timeouts: int
    breaker_state: str
    breaker_is_closed: bool
    average_latency_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": {
                "total": self.requests_total,
                "success": self.requests_success,
                "failure": self.requests_failure,
                "timeouts": self.requests_timeouts,
            },
            "breaker": {
                "state": self.breaker_state,
                "is_closed": self.breaker_is_closed,
            },
            "average_latency_ms": self.average_latency_ms,
        }
