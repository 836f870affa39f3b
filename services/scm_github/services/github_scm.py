"""GitHub implementation of the SCM provider contract.

Each operation decodes the scmUri, resolves the repository id to its
current owner/name, makes its GitHub calls through the shared Executor and
reshapes the response. Errors propagate unchanged except where noted.
"""

import asyncio
import base64
from collections.abc import Mapping
from typing import Any

import pydantic

from scm_github.config import GithubScmConfig
from scm_github.errors import (
    NotAFileError,
    RemoteError,
    ScmError,
    UnsupportedEventError,
    ValidationError,
)
from scm_github.logging_config import get_logger
from scm_github.models import (
    UNKNOWN_AUTHOR,
    AuthorInfo,
    BuildStatus,
    CommitInfo,
    CommitStatusUpdate,
    OrgPermissions,
    Permissions,
    PrComment,
    PrInfo,
    PrSummary,
    ScmInfo,
    UrlInfo,
    WebhookEvent,
)
from scm_github.services.executor import Executor, RemoteInvoker
from scm_github.services.github_client import GitHubClient
from scm_github.services.identifier import (
    decode_identifier,
    lookup_repo_full_name,
    parse_checkout_url,
    resolve_identifier,
)
from scm_github.services.webhooks import parse_webhook, reach

logger = get_logger(__name__)

STATE_MAP = {
    BuildStatus.SUCCESS: "success",
    BuildStatus.RUNNING: "pending",
    BuildStatus.QUEUED: "pending",
}
DESCRIPTION_MAP = {
    BuildStatus.SUCCESS: "Everything looks good!",
    BuildStatus.FAILURE: "Did not work as expected.",
    BuildStatus.ABORTED: "Aborted mid-flight",
    BuildStatus.RUNNING: "Testing your code...",
    BuildStatus.QUEUED: "Looking for a place to park...",
}
CONTEXT_PREFIX = "Screwdriver"
OAUTH_SCOPES = ["admin:repo_hook", "read:org", "repo:status"]
HOOK_EVENTS = ["push", "pull_request"]
HOOK_PAGE_SIZE = 30
BRANCH_PAGE_SIZE = 100


def status_context(job_name: str | None, pipeline_id: int | str | None = None) -> str:
    """Commit status context: Screwdriver[/<pipelineId>]/<job>.

    PR job names such as ``PR-15:test`` are shortened to ``PR:test`` so
    every pull request reports under the same context.
    """
    if not job_name:
        return CONTEXT_PREFIX

    prefix, sep, pr_job = job_name.partition(":")
    if sep and prefix.startswith("PR-") and prefix.removeprefix("PR-").isdigit():
        job_name = f"PR:{pr_job}"

    parts = [CONTEXT_PREFIX]
    if pipeline_id is not None:
        parts.append(str(pipeline_id))
    parts.append(job_name)
    return "/".join(parts)


class GithubScm:
    """SCM provider for github.com or one GitHub Enterprise host."""

    def __init__(
        self,
        config: GithubScmConfig | Mapping[str, Any],
        invoker: RemoteInvoker | None = None,
    ) -> None:
        if not isinstance(config, GithubScmConfig):
            try:
                config = GithubScmConfig.model_validate(dict(config))
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid config for GitHub: {e}") from e

        self.config = config
        self.host = config.host
        self.scm_context = f"github:{self.host}"
        self.executor = Executor(
            invoker or GitHubClient(config.api_url),
            config.fusebox,
            name=self.scm_context,
        )

    # --- Identifiers ---

    async def lookup_scm_uri(self, scm_uri: str, token: str) -> ScmInfo:
        identifier = decode_identifier(scm_uri)
        owner, repo = await lookup_repo_full_name(self.executor, identifier.repo_id, token)
        return ScmInfo(host=identifier.host, owner=owner, repo=repo, branch=identifier.branch)

    async def parse_url(self, checkout_url: str, token: str) -> str:
        return await resolve_identifier(self.executor, self.host, checkout_url, token)

    # --- Webhooks ---

    async def parse_hook(
        self, headers: Mapping[str, str], payload: bytes
    ) -> WebhookEvent | None:
        try:
            return parse_webhook(self.config.secret, headers, payload, self.scm_context)
        except UnsupportedEventError as e:
            logger.info("Ignoring unsupported webhook event", event=e.event_type)
            return None

    async def can_handle_webhook(self, headers: Mapping[str, str], payload: bytes) -> bool:
        """True when the webhook verifies and belongs to this adapter's host."""
        try:
            event = await self.parse_hook(headers, payload)
            if event is None or not event.checkout_url:
                return False
            return parse_checkout_url(event.checkout_url).host == self.host
        except ScmError as e:
            logger.debug("Webhook not handled", error=str(e))
            return False

    async def add_webhook(self, scm_uri: str, token: str, webhook_url: str) -> Any:
        """Create the repository webhook, or update it if the URL is already hooked."""
        info = await self.lookup_scm_uri(scm_uri, token)
        repo_params = {"owner": info.owner, "repo": info.repo}
        # The edit endpoint takes everything but the hook name
        hook = {
            "active": True,
            "events": HOOK_EVENTS,
            "config": {
                "content_type": "json",
                "secret": self.config.secret,
                "url": webhook_url,
            },
        }

        page = 1
        while True:
            hooks = await self.executor.run(
                action="get_hooks",
                token=token,
                params={**repo_params, "page": page, "per_page": HOOK_PAGE_SIZE},
            )
            existing = next(
                (h for h in hooks if reach(h, "config.url") == webhook_url), None
            )
            if existing is not None:
                logger.info("Updating webhook", repo=info.full_name, hook_id=existing["id"])
                return await self.executor.run(
                    action="edit_hook",
                    token=token,
                    params={**repo_params, "hook_id": existing["id"], **hook},
                )
            if len(hooks) < HOOK_PAGE_SIZE:
                break
            page += 1

        logger.info("Creating webhook", repo=info.full_name)
        return await self.executor.run(
            action="create_hook",
            token=token,
            params={**repo_params, "name": "web", **hook},
        )

    async def get_changed_files(
        self, event_type: str, payload: Mapping[str, Any], token: str
    ) -> list[str]:
        """Files touched by a push (from the payload) or a pull request (from GitHub)."""
        if event_type == "repo":
            files: dict[str, None] = {}
            for commit in payload.get("commits") or []:
                for key in ("added", "modified", "removed"):
                    files.update(dict.fromkeys(commit.get(key) or []))
            return list(files)

        if event_type == "pr":
            owner, _, repo = reach(payload, "repository.full_name", "").partition("/")
            data = await self.executor.run(
                action="get_files",
                token=token,
                params={
                    "owner": owner,
                    "repo": repo,
                    "number": reach(payload, "pull_request.number"),
                },
                scope_type="pull_requests",
            )
            return [f["filename"] for f in data]

        return []

    # --- Repository data ---

    async def get_permissions(self, scm_uri: str, token: str) -> Permissions:
        try:
            info = await self.lookup_scm_uri(scm_uri, token)
            data = await self.executor.run(
                action="get",
                token=token,
                params={"owner": info.owner, "repo": info.repo},
            )
        except RemoteError as e:
            if "suspend" in e.message.lower():
                logger.info(
                    "User's account suspended, it will be removed from pipeline admins",
                    scm_uri=scm_uri,
                )
                return Permissions(admin=False, push=False, pull=False)
            raise

        permissions = data.get("permissions") or {}
        return Permissions(
            admin=bool(permissions.get("admin")),
            push=bool(permissions.get("push")),
            pull=bool(permissions.get("pull")),
        )

    async def get_org_permissions(
        self, organization: str, username: str, token: str
    ) -> OrgPermissions:
        """Role of the token's user in an organization.

        GitHub answers for the authenticated user, so ``username`` only
        labels the log line.
        """
        data = await self.executor.run(
            action="get_org_membership",
            token=token,
            params={"org": organization},
            scope_type="users",
        )
        active = data.get("state") == "active"
        role = data.get("role")
        logger.debug("Fetched org membership", org=organization, username=username, role=role)
        return OrgPermissions(admin=active and role == "admin", member=active and role == "member")

    async def get_commit_sha(self, scm_uri: str, token: str, pr_num: int | None = None) -> str:
        info = await self.lookup_scm_uri(scm_uri, token)

        if pr_num is not None:
            pr = await self.executor.run(
                action="get",
                token=token,
                params={"owner": info.owner, "repo": info.repo, "number": pr_num},
                scope_type="pull_requests",
            )
            return pr["head"]["sha"]

        branch = await self.executor.run(
            action="get_branch",
            token=token,
            params={"owner": info.owner, "repo": info.repo, "branch": info.branch},
        )
        return branch["commit"]["sha"]

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
        """Set the commit status for a build.

        Resolves to None when GitHub rejects the status with a 422 (the
        per-context status limit for a SHA has been reached).
        """
        info = await self.lookup_scm_uri(scm_uri, token)
        update = CommitStatusUpdate(
            scm_uri=scm_uri,
            sha=sha,
            state=STATE_MAP.get(build_status, "failure"),
            description=DESCRIPTION_MAP.get(build_status, "failure"),
            target_url=url,
            context=status_context(job_name, pipeline_id),
        )

        params = {
            "owner": info.owner,
            "repo": info.repo,
            "sha": update.sha,
            "state": update.state,
            "description": update.description,
            "context": update.context,
        }
        if update.target_url:
            params["target_url"] = update.target_url

        try:
            return await self.executor.run(action="create_status", token=token, params=params)
        except RemoteError as e:
            if e.status_code == 422:
                logger.warning(
                    "Commit status rejected by GitHub",
                    scm_uri=scm_uri,
                    sha=sha,
                    error=e.message,
                )
                return None
            raise

    async def get_file(self, scm_uri: str, path: str, token: str, ref: str | None = None) -> str:
        """Text content of a file at ``ref`` (defaults to the identifier's branch)."""
        info = await self.lookup_scm_uri(scm_uri, token)
        data = await self.executor.run(
            action="get_content",
            token=token,
            params={
                "owner": info.owner,
                "repo": info.repo,
                "path": path,
                "ref": ref or info.branch,
            },
        )

        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotAFileError(path)

        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            return base64.b64decode(content).decode("utf-8", errors="replace")
        return content

    async def get_opened_prs(self, scm_uri: str, token: str) -> list[PrSummary]:
        info = await self.lookup_scm_uri(scm_uri, token)
        prs = await self.executor.run(
            action="get_all",
            token=token,
            params={"owner": info.owner, "repo": info.repo, "state": "open"},
            scope_type="pull_requests",
        )
        return [
            PrSummary(name=f"PR-{pr['number']}", ref=f"pull/{pr['number']}/merge")
            for pr in prs
        ]

    async def get_pr_info(self, scm_uri: str, pr_num: int, token: str) -> PrInfo:
        info = await self.lookup_scm_uri(scm_uri, token)
        pr = await self.executor.run(
            action="get",
            token=token,
            params={"owner": info.owner, "repo": info.repo, "number": pr_num},
            scope_type="pull_requests",
        )
        return PrInfo(
            name=f"PR-{pr['number']}",
            ref=f"pull/{pr['number']}/merge",
            sha=pr["head"]["sha"],
            url=pr["html_url"],
            username=pr["user"]["login"],
        )

    async def add_pr_comment(
        self, scm_uri: str, pr_num: int, comment: str, token: str
    ) -> PrComment | None:
        """Comment on a pull request. Resolves to None if GitHub refuses the comment."""
        info = await self.lookup_scm_uri(scm_uri, token)
        try:
            data = await self.executor.run(
                action="create_comment",
                token=token,
                params={
                    "owner": info.owner,
                    "repo": info.repo,
                    "number": pr_num,
                    "body": comment,
                },
                scope_type="issues",
            )
        except RemoteError as e:
            logger.warning(
                "Failed to add pull request comment",
                repo=info.full_name,
                pr_num=pr_num,
                error=e.message,
            )
            return None

        return PrComment(
            comment_id=str(data["id"]),
            create_time=data["created_at"],
            username=data["user"]["login"],
        )

    async def get_branch_list(self, scm_uri: str, token: str) -> list[str]:
        info = await self.lookup_scm_uri(scm_uri, token)
        branches: list[str] = []
        page = 1
        while True:
            data = await self.executor.run(
                action="get_branches",
                token=token,
                params={
                    "owner": info.owner,
                    "repo": info.repo,
                    "page": page,
                    "per_page": BRANCH_PAGE_SIZE,
                },
            )
            branches.extend(b["name"] for b in data)
            if len(data) < BRANCH_PAGE_SIZE:
                return branches
            page += 1

    # --- Decoration ---

    async def decorate_author(self, username: str, token: str) -> AuthorInfo:
        data = await self.executor.run(
            action="get_for_user",
            token=token,
            params={"username": username},
            scope_type="users",
        )
        return AuthorInfo(
            avatar=data["avatar_url"],
            name=data.get("name") or data["login"],
            username=data["login"],
            url=data["html_url"],
        )

    async def decorate_commit(self, scm_uri: str, sha: str, token: str) -> CommitInfo:
        async def fetch_commit() -> dict[str, Any]:
            info = await self.lookup_scm_uri(scm_uri, token)
            return await self.executor.run(
                action="get_commit",
                token=token,
                params={"owner": info.owner, "repo": info.repo, "sha": sha},
            )

        async def fetch_author(commit_lookup: asyncio.Future) -> AuthorInfo:
            login = reach(await commit_lookup, "author.login")
            if not login:
                return UNKNOWN_AUTHOR
            return await self.decorate_author(login, token)

        commit_lookup = asyncio.ensure_future(fetch_commit())
        author_lookup = asyncio.ensure_future(fetch_author(commit_lookup))
        commit, author = await asyncio.gather(commit_lookup, author_lookup)

        return CommitInfo(
            author=author,
            message=commit["commit"]["message"],
            url=commit["html_url"],
        )

    async def decorate_url(self, scm_uri: str, token: str) -> UrlInfo:
        info = await self.lookup_scm_uri(scm_uri, token)
        return UrlInfo(
            branch=info.branch,
            name=info.full_name,
            url=f"https://{info.host}/{info.full_name}/tree/{info.branch}",
        )

    # --- Descriptors ---

    def get_scm_contexts(self) -> list[str]:
        return [self.scm_context]

    def get_bell_configuration(self) -> dict[str, dict[str, Any]]:
        scope = list(OAUTH_SCOPES)
        if self.config.private_repo:
            scope.append("repo")

        bell: dict[str, Any] = {
            "provider": "github",
            "clientId": self.config.oauth_client_id,
            "clientSecret": self.config.oauth_client_secret,
            "scope": scope,
            "isSecure": self.config.https,
            "forceHttps": self.config.https,
            "cookie": f"github-{self.host}",
        }
        if self.config.ghe_host:
            bell["config"] = {"uri": f"{self.config.ghe_protocol}://{self.config.ghe_host}"}

        return {self.scm_context: bell}

    def stats(self) -> dict[str, dict[str, Any]]:
        return {self.scm_context: self.executor.stats().to_dict()}
