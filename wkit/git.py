"""Running git commands and interpreting their output."""

from __future__ import annotations

import subprocess


class GitError(Exception):
    """A git command could not be started or exited with a failure status."""

    def __init__(
        self,
        message: str,
        *,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


class Executor:
    """Runs git commands, optionally inside a given working directory."""

    def __init__(self, work_dir: str = "") -> None:
        self.work_dir = work_dir

    def _run(self, args: tuple[str, ...]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.work_dir or None,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise GitError(f"git {' '.join(args)} failed: {exc}") from exc

    def execute(self, *args: str) -> str:
        """Run git with ``args`` and return its stripped standard output."""
        result = self._run(args)
        if result.returncode != 0:
            raise GitError(
                f"git {' '.join(args)} failed: exit status {result.returncode}\n"
                f"Stderr: {result.stderr}",
                stdout=result.stdout,
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return result.stdout.strip()

    def execute_with_stderr(self, *args: str) -> tuple[str, str]:
        """Run git and return ``(stripped stdout, stderr)``.

        On failure the raised :class:`GitError` carries the raw output.
        """
        result = self._run(args)
        if result.returncode != 0:
            raise GitError(
                f"git {' '.join(args)} failed: exit status {result.returncode}",
                stdout=result.stdout,
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return result.stdout.strip(), result.stderr

    def worktree_list(self) -> str:
        """Return the output of ``git worktree list --porcelain``."""
        return self.execute("worktree", "list", "--porcelain")

    def worktree_add(self, *args: str) -> None:
        """Add a worktree, passing ``args`` on to ``git worktree add``."""
        self.execute("worktree", "add", *args)

    def worktree_remove(self, path: str, force: bool = False) -> None:
        """Remove the worktree at ``path``."""
        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        args.append(path)
        self.execute(*args)

    def status(self) -> str:
        """Return ``git status`` output in porcelain format."""
        return self.execute("status", "--porcelain", "--ahead-behind")

    def branch_exists(self, branch: str) -> bool:
        """Tell whether a local branch of that name exists."""
        try:
            self.execute("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        except GitError:
            return False
        return True

    def branch_merged(self, branch: str) -> list[str]:
        """Return the branches merged into ``branch``."""
        output = self.execute("branch", "--merged", branch)
        return [
            line.removeprefix("* ")
            for line in (raw.strip() for raw in output.split("\n"))
            if line
        ]

    def remote_branches(self, remote: str) -> list[str]:
        """Return the names of the branch heads on ``remote``."""
        output = self.execute("ls-remote", "--heads", remote)
        branches = []
        for line in output.split("\n"):
            parts = line.split()
            if len(parts) > 1:
                branches.append(parts[1].removeprefix("refs/heads/"))
        return branches

    def fetch(self, remote: str) -> None:
        """Fetch from ``remote``."""
        self.execute("fetch", remote)

    def merge(self, branch: str) -> None:
        """Merge ``branch`` into the current branch."""
        self.execute("merge", branch)

    def rebase(self, branch: str) -> None:
        """Rebase the current branch onto ``branch``."""
        self.execute("rebase", branch)


def get_repository_root() -> str:
    """Return the absolute path of the top level of the current repository."""
    return Executor("").execute("rev-parse", "--show-toplevel")