"""SCM provider contract.

Defines the ScmProvider protocol the orchestrator works against. Tokens are
passed on each call so an implementation resolves auth without global state.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from scm_github.models import (
    AuthorInfo,
    BuildStatus,
    CommitInfo,
    OrgPermissions,
    Permissions,
    PrComment,
    PrInfo,
    PrSummary,
    ScmInfo,
    UrlInfo,
    WebhookEvent,
)


@runtime_checkable
class ScmProvider(Protocol):
    """Interface for source control provider operations."""

    async def lookup_scm_uri(self, scm_uri: str, token: str) -> ScmInfo:
        """Resolve an scmUri to the repository's current owner and name."""
        ...

    async def parse_url(self, checkout_url: str, token: str) -> str:
        """Register a repository: turn a checkout URL into an scmUri."""
        ...

    async def parse_hook(
        self, headers: Mapping[str, str], payload: bytes
    ) -> WebhookEvent | None:
        """Verify and normalize a webhook. None when there is nothing to act on."""
        ...

    async def can_handle_webhook(self, headers: Mapping[str, str], payload: bytes) -> bool:
        ...

    async def get_permissions(self, scm_uri: str, token: str) -> Permissions:
        ...

    async def get_org_permissions(
        self, organization: str, username: str, token: str
    ) -> OrgPermissions:
        ...

    async def get_commit_sha(self, scm_uri: str, token: str, pr_num: int | None = None) -> str:
        """Head SHA of the pull request, or of the identifier's branch."""
        ...

    async def update_commit_status(
        self,
        scm_uri: str,
        sha: str,
        build_status: BuildStatus | str,
        token: str,
        job_name: str | None = None,
        url: str | None = None,
        pipeline_id: int | str | None = None,
    ) -> Any:
        ...

    async def get_file(self, scm_uri: str, path: str, token: str, ref: str | None = None) -> str:
        ...

    async def add_webhook(self, scm_uri: str, token: str, webhook_url: str) -> Any:
        ...

    async def get_changed_files(
        self, event_type: str, payload: Mapping[str, Any], token: str
    ) -> list[str]:
        ...

    async def get_opened_prs(self, scm_uri: str, token: str) -> list[PrSummary]:
        ...

    async def get_pr_info(self, scm_uri: str, pr_num: int, token: str) -> PrInfo:
        ...

    async def add_pr_comment(
        self, scm_uri: str, pr_num: int, comment: str, token: str
    ) -> PrComment | None:
        ...

    async def get_branch_list(self, scm_uri: str, token: str) -> list[str]:
        ...

    async def decorate_author(self, username: str, token: str) -> AuthorInfo:
        ...

    async def decorate_commit(self, scm_uri: str, sha: str, token: str) -> CommitInfo:
        ...

    async def decorate_url(self, scm_uri: str, token: str) -> UrlInfo:
        ...

    def get_scm_contexts(self) -> list[str]:
        ...

    def get_bell_configuration(self) -> dict[str, dict[str, Any]]:
        """OAuth provider descriptor keyed by scm context."""
        ...

    def stats(self) -> dict[str, dict[str, Any]]:
        ...
