"""Repository identifier codec.

An scmUri packs the host, GitHub's numeric repository id and a branch into
one opaque string (``github.com:920414:master``). Ids survive repository
renames and transfers, so the owner/name pair is looked up again on use.

Checkout URLs accepted:
  - git@github.com:owner/repo.git
  - git@github.com:owner/repo.git#branch
  - https://github.com/owner/repo.git#branch
  - https://user@github.com/owner/repo.git
"""

from scm_github.errors import (
    HostMismatchError,
    InvalidUrlError,
    MalformedIdentifierError,
    NotFoundError,
)
from scm_github.logging_config import get_logger
from scm_github.models import CheckoutUrlInfo, RepoIdentifier
from scm_github.services.executor import Executor

logger = get_logger(__name__)

DEFAULT_BRANCH = "master"
BRANCH_DELIMITER = "#"


def _valid_segment(value: str, forbidden: str = "") -> bool:
    return bool(value) and not any(c.isspace() or c in forbidden for c in value)


def parse_checkout_url(url: str) -> CheckoutUrlInfo:
    """Split a checkout URL into host, owner, repo and branch.

    The branch comes from the ``#`` fragment with the delimiter stripped
    once; without a fragment it defaults to master.
    """
    location, _, branch = url.partition(BRANCH_DELIMITER)

    if location.startswith("git@"):
        host, colon, path = location.removeprefix("git@").partition(":")
        if not colon:
            raise InvalidUrlError(url)
    elif location.startswith("https://"):
        authority, slash, path = location.removeprefix("https://").partition("/")
        if not slash:
            raise InvalidUrlError(url)
        # Drop any user@ credentials prefix
        host = authority.rpartition("@")[2]
    else:
        raise InvalidUrlError(url)

    if not path.endswith(".git"):
        raise InvalidUrlError(url)
    owner, slash, repo = path.removesuffix(".git").partition("/")

    if not (
        slash
        and _valid_segment(host, "/:@")
        and _valid_segment(owner, ":")
        and _valid_segment(repo, ":")
        and not any(c.isspace() for c in branch)
    ):
        raise InvalidUrlError(url)

    return CheckoutUrlInfo(
        host=host,
        owner=owner,
        repo=repo,
        branch=branch or DEFAULT_BRANCH,
    )


def encode_identifier(host: str, repo_id: str | int, branch: str) -> str:
    """Build an scmUri string."""
    return str(RepoIdentifier(host=host, repo_id=str(repo_id), branch=branch))


def decode_identifier(scm_uri: str) -> RepoIdentifier:
    """Split an scmUri into its host, remote repository id and branch."""
    parts = scm_uri.split(":", 2)
    if len(parts) < 3 or not all(parts):
        raise MalformedIdentifierError(scm_uri)
    host, repo_id, branch = parts
    return RepoIdentifier(host=host, repo_id=repo_id, branch=branch)


async def lookup_repo_full_name(
    executor: Executor, remote_id: str, token: str
) -> tuple[str, str]:
    """Resolve a repository id to its current (owner, repo)."""
    data = await executor.run(
        action="get_by_id",
        token=token,
        params={"id": remote_id},
    )
    owner, _, repo = data["full_name"].partition("/")
    return owner, repo


async def resolve_identifier(
    executor: Executor, host: str, checkout_url: str, token: str
) -> str:
    """Turn a checkout URL into an scmUri for the adapter's host.

    Costs one GitHub call to obtain the stable repository id.
    """
    info = parse_checkout_url(checkout_url)
    if info.host != host:
        raise HostMismatchError(info.host)

    try:
        repo_data = await executor.run(
            action="get",
            token=token,
            params={"owner": info.owner, "repo": info.repo},
        )
    except NotFoundError as e:
        raise NotFoundError(f"Cannot find repository {info.owner}/{info.repo}") from e

    scm_uri = encode_identifier(info.host, repo_data["id"], info.branch)
    logger.debug("Resolved checkout URL", checkout_url=checkout_url, scm_uri=scm_uri)
    return scm_uri
