"""Keep a local working copy in step with its ``origin`` remote.

``fetch`` and ``merge`` are blocking libgit2 calls made through ``pygit2``.
``GitSyncer`` runs them in a worker thread for the async pipeline, and
``InMemorySyncer`` stands in for it in tests.

The deploy host's checkout mirrors the remote: a fast-forward force-checks
out the new tip, discarding local working-tree edits.  A diverged history is
merged three-way; conflicts are left checked out for manual resolution and
reported as ``MergeResult.CONFLICTED`` rather than raised.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygit2
import structlog
from pygit2.enums import CheckoutStrategy, CredentialType, MergeAnalysis

from deployhook.errors import GitError

logger = structlog.get_logger()

REMOTE_NAME = "origin"

_FALLBACK_SIGNATURE = ("deployhook", "deployhook@localhost")


class MergeResult(enum.Enum):
    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    MERGED = "merged"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class FetchedCommit:
    """Tip of the remote branch as retrieved by ``fetch``."""

    id: str
    branch: str


class SshKeyCallbacks(pygit2.RemoteCallbacks):
    """Remote callbacks that authenticate with a passphrase-less private key."""

    def __init__(self, ssh_key_path: Path) -> None:
        super().__init__()
        self._ssh_key_path = ssh_key_path

    def credentials(
        self,
        url: str,
        username_from_url: str | None,
        allowed_types: CredentialType,
    ) -> pygit2.Username | pygit2.Keypair:
        username = username_from_url or "git"
        if allowed_types & CredentialType.USERNAME:
            return pygit2.Username(username)
        if allowed_types & CredentialType.SSH_KEY:
            return pygit2.Keypair(username, None, str(self._ssh_key_path), "")
        msg = f"Remote {url} does not accept SSH key authentication"
        raise pygit2.GitError(msg)


def _open(local_repo_path: Path) -> pygit2.Repository:
    try:
        return pygit2.Repository(str(local_repo_path))
    except (pygit2.GitError, KeyError) as exc:
        msg = f"Failed to open repository at {local_repo_path}: {exc}"
        raise GitError(msg) from exc


def fetch(local_repo_path: Path, branch: str, ssh_key_path: Path) -> FetchedCommit:
    """Fetch ``branch`` and all tags from ``origin``.

    Returns:
        The fetched tip of ``refs/remotes/origin/<branch>``.

    Raises:
        GitError: If the repository or remote is missing, or the fetch fails.
    """
    repo = _open(local_repo_path)
    try:
        remote = repo.remotes[REMOTE_NAME]
    except (KeyError, pygit2.GitError):
        msg = f"Repository at {local_repo_path} has no remote named {REMOTE_NAME!r}"
        raise GitError(msg) from None

    tracking_ref = f"refs/remotes/{REMOTE_NAME}/{branch}"
    refspecs = [f"+refs/heads/{branch}:{tracking_ref}", "+refs/tags/*:refs/tags/*"]
    logger.debug("fetch_started", remote=REMOTE_NAME, refspecs=refspecs)

    try:
        stats = remote.fetch(refspecs, callbacks=SshKeyCallbacks(ssh_key_path))
        commit = repo.lookup_reference(tracking_ref).peel(pygit2.Commit)
    except (pygit2.GitError, KeyError) as exc:
        msg = f"Failed to fetch {branch} from {REMOTE_NAME}: {exc}"
        raise GitError(msg) from exc

    logger.info(
        "fetch_finished",
        indexed_objects=stats.indexed_objects,
        total_objects=stats.total_objects,
        local_objects=stats.local_objects,
        received_bytes=stats.received_bytes,
    )
    return FetchedCommit(id=str(commit.id), branch=branch)


def merge(local_repo_path: Path, branch: str, fetched: FetchedCommit) -> MergeResult:
    """Bring ``refs/heads/<branch>`` up to ``fetched``.

    Raises:
        GitError: If any libgit2 operation fails.
    """
    repo = _open(local_repo_path)
    refname = f"refs/heads/{branch}"
    try:
        fetched_oid = pygit2.Oid(hex=fetched.id)
        local_ref = repo.references.get(refname)

        if local_ref is None:
            # First deployment into an empty clone: point the branch at the
            # fetched commit directly.
            logger.debug("branch_created", refname=refname, target=fetched.id)
            repo.references.create(refname, fetched_oid, force=True)
            repo.set_head(refname)
            repo.checkout_head(
                strategy=CheckoutStrategy.FORCE
                | CheckoutStrategy.ALLOW_CONFLICTS
                | CheckoutStrategy.CONFLICT_STYLE_MERGE
            )
            return MergeResult.FAST_FORWARD

        analysis, _ = repo.merge_analysis(fetched_oid, refname)

        if analysis & MergeAnalysis.UP_TO_DATE:
            logger.debug("merge_up_to_date", refname=refname)
            return MergeResult.UP_TO_DATE

        if analysis & MergeAnalysis.FASTFORWARD:
            logger.debug("merge_fast_forward", refname=refname, target=fetched.id)
            repo.set_head(refname)
            local_ref.set_target(
                fetched_oid, f"Fast-Forward: Setting {refname} to id: {fetched.id}"
            )
            repo.checkout_head(strategy=CheckoutStrategy.FORCE)
            return MergeResult.FAST_FORWARD

        if analysis & MergeAnalysis.NORMAL:
            return _normal_merge(repo, refname, local_ref.target, fetched_oid)
    except (pygit2.GitError, KeyError) as exc:
        msg = f"Failed to merge {fetched.id} into {refname}: {exc}"
        raise GitError(msg) from exc

    msg = f"Cannot merge {fetched.id} into {refname} (analysis: {analysis!r})"
    raise GitError(msg)


def _normal_merge(
    repo: pygit2.Repository,
    refname: str,
    local_oid: pygit2.Oid,
    remote_oid: pygit2.Oid,
) -> MergeResult:
    local_commit = repo.get(local_oid).peel(pygit2.Commit)
    remote_commit = repo.get(remote_oid).peel(pygit2.Commit)
    base_oid = repo.merge_base(local_oid, remote_oid)
    if base_oid is None:
        msg = f"{local_oid} and {remote_oid} share no history"
        raise GitError(msg)
    ancestor_tree = repo.get(base_oid).peel(pygit2.Commit).tree

    index = repo.merge_trees(ancestor_tree, local_commit.tree, remote_commit.tree)

    if index.conflicts is not None:
        logger.warning(
            "merge_conflicts",
            local_id=str(local_oid),
            remote_id=str(remote_oid),
        )
        repo.set_head(refname)
        repo.checkout_index(
            index=index,
            strategy=CheckoutStrategy.FORCE
            | CheckoutStrategy.ALLOW_CONFLICTS
            | CheckoutStrategy.CONFLICT_STYLE_MERGE,
        )
        return MergeResult.CONFLICTED

    tree_oid = index.write_tree(repo)
    signature = _signature(repo)
    repo.create_commit(
        refname,
        signature,
        signature,
        f"Merge: {remote_oid} into {local_oid}",
        tree_oid,
        [local_oid, remote_oid],
    )
    repo.set_head(refname)
    repo.checkout_head(strategy=CheckoutStrategy.FORCE)
    logger.info("merge_commit_created", refname=refname)
    return MergeResult.MERGED


def _signature(repo: pygit2.Repository) -> pygit2.Signature:
    try:
        return repo.default_signature
    except (KeyError, pygit2.GitError):
        return pygit2.Signature(*_FALLBACK_SIGNATURE)


class Syncer(Protocol):
    """Protocol for bringing a working copy up to date with its remote."""

    async def sync(self, local_repo_path: Path, branch: str, ssh_key_path: Path) -> MergeResult:
        """Fetch then merge ``branch``.

        Raises:
            GitError: If fetching or merging fails.
        """
        ...


class GitSyncer:
    """Production syncer running libgit2 calls off the event loop."""

    async def sync(self, local_repo_path: Path, branch: str, ssh_key_path: Path) -> MergeResult:
        fetched = await asyncio.to_thread(fetch, local_repo_path, branch, ssh_key_path)
        return await asyncio.to_thread(merge, local_repo_path, branch, fetched)


class InMemorySyncer:
    """Test double that records sync calls and returns a scripted result."""

    def __init__(self, result: MergeResult = MergeResult.FAST_FORWARD, error: GitError | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[Path, str, Path]] = []

    async def sync(self, local_repo_path: Path, branch: str, ssh_key_path: Path) -> MergeResult:
        self.calls.append((local_repo_path, branch, ssh_key_path))
        if self.error is not None:
            raise self.error
        return self.result
