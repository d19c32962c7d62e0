import logging
import subprocess
from pathlib import Path
from typing import Protocol

from .constants import APP_NAME, GIT_NOTHING_TO_COMMIT

logger = logging.getLogger(APP_NAME)


class GitError(RuntimeError):
    """A git subprocess exited with a status the caller does not tolerate.

    Attributes:
        operation (str): The git subcommand that failed (e.g. 'push').
        git_args (list[str]): The full argument list passed to git.
        returncode (int | None): The exit status, or None on timeout.
        stderr (str): Captured error output, if any.
    """

    def __init__(
        self,
        operation: str,
        args: list[str],
        returncode: int | None,
        stderr: str = "",
    ):
        self.operation = operation
        self.git_args = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        status = "timed out" if returncode is None else f"exit {returncode}"
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"git {operation} failed ({status}){detail}")


class VersionControlClient(Protocol):
    """The operations the reconciler needs from a version-control working copy."""

    path: Path

    def is_repository(self) -> bool: ...

    def init(self, branch: str) -> None: ...

    def list_remotes(self) -> list[str]: ...

    def remote_url(self, name: str) -> str | None: ...

    def has_commits(self) -> bool: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def set_remote_url(self, name: str, url: str) -> None: ...

    def add_all(self) -> None: ...

    def commit(self, message: str) -> bool: ...

    def pull_rebase(self, remote: str, branch: str) -> None: ...

    def checkout_branch(self, branch: str) -> None: ...

    def push(
        self, remote: str, branch: str, set_upstream: bool = False, force: bool = False
    ) -> None: ...


class GitRepo:
    """A wrapper around the Git command-line interface for the backup working copy.

    Every command runs with the working copy as its working directory. Exit
    status is the only feedback channel apart from `list_remotes` and
    `remote_url`, which read stdout.

    Attributes:
        path (Path): The file system path to the working copy root.
        timeout (int | None): Seconds before a git command is killed; None waits forever.
    """

    def __init__(self, path: Path, timeout: int | None = None):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The working copy root. It does not need to be a
                repository yet; see `is_repository` and `init`.
            timeout (int | None, optional): Per-command timeout in seconds.
        """
        self.path = path
        self.timeout = timeout

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the working copy.

        Args:
            args (list[str]): Arguments passed to git; args[0] names the operation.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            GitError: If git exits non-zero or times out.
        """
        # `remote add` and `remote set-url` are distinct operations.
        operation = args[0]
        if operation == "remote" and len(args) > 1:
            operation = " ".join(args[:2])
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
                timeout=self.timeout,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise GitError(operation, args, e.returncode, e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise GitError(operation, args, None) from e

    def is_repository(self) -> bool:
        """Checks for git metadata at the working copy root."""
        return (self.path / ".git").exists()

    def init(self, branch: str) -> None:
        """Creates an empty repository whose first branch is `branch`."""
        self._run(["init", f"--initial-branch={branch}"], capture=False)

    def list_remotes(self) -> list[str]:
        """Returns the configured remote names."""
        output = self._run(["remote"])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def remote_url(self, name: str) -> str | None:
        """Returns the URL of remote `name`, or None if it is not configured."""
        try:
            return self._run(["remote", "get-url", name])
        except GitError as e:
            logger.debug(f"remote get-url failed for '{name}': {e}")
            return None

    def has_commits(self) -> bool:
        """Checks whether HEAD points at a commit (False on an unborn branch)."""
        try:
            self._run(["rev-parse", "--verify", "--quiet", "HEAD"])
        except GitError:
            return False
        return True

    def add_remote(self, name: str, url: str) -> None:
        self._run(["remote", "add", name, url], capture=False)

    def set_remote_url(self, name: str, url: str) -> None:
        self._run(["remote", "set-url", name, url], capture=False)

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "."], capture=False)

    def commit(self, message: str) -> bool:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.

        Returns:
            bool: True if a commit was created, False if there was nothing to commit.

        Raises:
            GitError: For any failure other than "nothing to commit".
        """
        try:
            self._run(["commit", "-m", message])
        except GitError as e:
            if e.returncode == GIT_NOTHING_TO_COMMIT:
                return False
            raise
        return True

    def pull_rebase(self, remote: str, branch: str) -> None:
        """Fetches `remote/branch` and replays local commits on top of it."""
        self._run(["pull", "--rebase", remote, branch], capture=False)

    def checkout_branch(self, branch: str) -> None:
        """Creates `branch` or resets it to HEAD, then switches to it."""
        self._run(["checkout", "-B", branch], capture=False)

    def push(
        self, remote: str, branch: str, set_upstream: bool = False, force: bool = False
    ) -> None:
        """Pushes `branch` to `remote`.

        Args:
            remote (str): The remote name.
            branch (str): The local and remote branch name.
            set_upstream (bool, optional): Record `remote/branch` as upstream.
            force (bool, optional): Overwrite divergent remote history.
        """
        cmd = ["push"]
        if set_upstream:
            cmd.append("--set-upstream")
        if force:
            cmd.append("--force")
        cmd.extend([remote, branch])
        self._run(cmd, capture=False)
