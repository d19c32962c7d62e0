import datetime
import logging
from dataclasses import dataclass

from .config import RemoteConfig, SyncStrategy
from .constants import APP_NAME, COMMIT_MESSAGE_PREFIX, COMMIT_TIMESTAMP_FORMAT
from .git_wrapper import GitError, VersionControlClient

logger = logging.getLogger(APP_NAME)


@dataclass
class SyncResult:
    """Outcome of one reconciliation.

    Attributes:
        committed (bool): A new commit was created.
        rebased (bool | None): Whether the pull-rebase succeeded; None when the
            strategy does not pull.
        pushed (bool): The remote branch was updated.
    """

    committed: bool
    rebased: bool | None
    pushed: bool


def commit_message(now: datetime.datetime) -> str:
    return f"{COMMIT_MESSAGE_PREFIX} {now.strftime(COMMIT_TIMESTAMP_FORMAT)}"


def ensure_repository(
    repo: VersionControlClient, url: str, remote_name: str, branch: str
) -> None:
    """Makes the working copy a repository with `remote_name` pointing at `url`.

    An existing remote pointing elsewhere is rewritten, so a changed URL in
    the config takes effect on the next cycle.

    Args:
        repo (VersionControlClient): The working copy.
        url (str): The remote URL.
        remote_name (str): The remote to create or update.
        branch (str): Initial branch name for a fresh repository.
    """
    if not repo.is_repository():
        logger.info(f"INIT: Initializing git repository in {repo.path}")
        repo.init(branch)

    if remote_name in repo.list_remotes():
        if repo.remote_url(remote_name) != url:
            logger.info(f"REMOTE: Updating {remote_name} -> {url}")
            repo.set_remote_url(remote_name, url)
    else:
        logger.info(f"REMOTE: Adding {remote_name} -> {url}")
        repo.add_remote(remote_name, url)


def reconcile(
    repo: VersionControlClient,
    remote: RemoteConfig,
    now: datetime.datetime | None = None,
) -> SyncResult:
    """Commits the working copy and publishes it to the remote.

    Steps:
    1. Ensures the repository and remote exist.
    2. Stages everything and commits (nothing to commit is fine).
       A repository with no commits at all has nothing to publish, so the
       sync step is skipped.
    3. REBASE: pull --rebase (failure only warns), then push --set-upstream.
       FORCE: checkout -B <branch>, then push --force.

    Args:
        repo (VersionControlClient): The working copy.
        remote (RemoteConfig): Remote URL, name, branch and strategy.
        now (datetime.datetime | None): Timestamp for the commit message.

    Returns:
        SyncResult: What happened.

    Raises:
        GitError: If any step other than the tolerated ones fails. The error
            names the failed git operation.
    """
    ensure_repository(repo, remote.url, remote.name, remote.branch)

    repo.add_all()
    message = commit_message(now or datetime.datetime.now())
    committed = repo.commit(message)
    if committed:
        logger.info(f"COMMIT: {message}")
    else:
        logger.info("COMMIT: Nothing to commit.")
        if not repo.has_commits():
            logger.info(
                f"PUSH: Skipped, {remote.branch} has no commits yet "
                "(nothing was mirrored)."
            )
            return SyncResult(committed=False, rebased=None, pushed=False)

    rebased: bool | None = None
    if remote.strategy is SyncStrategy.REBASE:
        try:
            repo.pull_rebase(remote.name, remote.branch)
            rebased = True
        except GitError as e:
            rebased = False
            logger.warning(
                f"WARNING: pull --rebase from {remote.name}/{remote.branch} failed. "
                f"Check the repository for conflicts manually. ({e})"
            )
        repo.push(remote.name, remote.branch, set_upstream=True)
    else:
        repo.checkout_branch(remote.branch)
        repo.push(remote.name, remote.branch, force=True)

    logger.info(f"PUSH: Backup pushed to {remote.url} ({remote.strategy.value})")
    return SyncResult(committed=committed, rebased=rebased, pushed=True)
