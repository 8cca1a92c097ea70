"""Listing, creating, inspecting and removing git worktrees."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass

_AHEAD = re.compile(r"ahead\s*([+-]?\d+)")
_BEHIND = re.compile(r"behind\s*([+-]?\d+)")


class WorktreeError(Exception):
    """A worktree operation failed."""


@dataclass
class Worktree:
    """One git worktree."""

    path: str
    branch: str = ""
    head: str = ""


@dataclass
class WorktreeStatus:
    """Counts of changes in a worktree."""

    is_clean: bool = True
    modified: int = 0
    added: int = 0
    deleted: int = 0
    untracked: int = 0
    ahead: int = 0
    behind: int = 0


@dataclass
class UnnecessaryWorktree:
    """A worktree that can be removed, and why."""

    worktree: Worktree
    reason: str


def _git(description: str, *args: str, cwd: str | None = None, combined: bool = False) -> str:
    """Run git and return its output, raising WorktreeError on failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combined else subprocess.PIPE,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise WorktreeError(f"failed to execute {description}: {exc}") from exc
    if result.returncode != 0:
        message = f"failed to execute {description}: exit status {result.returncode}"
        if combined:
            message += f": {(result.stdout or '').strip()}"
        raise WorktreeError(message)
    return result.stdout or ""


def parse_worktree_list(output: str) -> list[Worktree]:
    """Parse the output of ``git worktree list --porcelain``."""
    worktrees: list[Worktree] = []
    current: Worktree | None = None
    for raw in output.split("\n"):
        line = raw.strip()
        if not line:
            if current is not None:
                worktrees.append(current)
                current = None
            continue
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = Worktree(path=line.removeprefix("worktree "))
        elif current is None:
            continue
        elif line.startswith("HEAD "):
            current.head = line.removeprefix("HEAD ")
        elif line.startswith("branch "):
            current.branch = line.removeprefix("branch ").removeprefix("refs/heads/")
    if current is not None:
        worktrees.append(current)
    return worktrees


def parse_git_status(output: str) -> WorktreeStatus:
    """Count the changes listed in ``git status --porcelain`` output."""
    status = WorktreeStatus()
    for line in output.split("\n"):
        if len(line) < 2:
            continue
        staged, unstaged = line[0], line[1]
        if staged == "A":
            status.added += 1
        elif staged == "M" or unstaged == "M":
            status.modified += 1
        elif staged == "D" or unstaged == "D":
            status.deleted += 1
        elif staged == "?" and unstaged == "?":
            status.untracked += 1

        if line.startswith("##"):
            for part in line.split():
                if part.startswith("ahead"):
                    match = _AHEAD.match(part)
                    if match:
                        status.ahead = int(match.group(1))
                elif part.startswith("behind"):
                    match = _BEHIND.match(part)
                    if match:
                        status.behind = int(match.group(1))

    status.is_clean = not (status.modified or status.added or status.deleted or status.untracked)
    return status


def get_repository_root() -> str:
    """Return the root of the main repository, even from a linked worktree."""
    git_dir = _git("git rev-parse --git-common-dir", "rev-parse", "--git-common-dir").strip()
    if git_dir.endswith("/.git"):
        return git_dir.removesuffix("/.git")
    return _git("git rev-parse --show-toplevel", "rev-parse", "--show-toplevel").strip()


def _non_empty_lines(output: str) -> list[str]:
    return [line for line in (raw.strip() for raw in output.split("\n")) if line]


class Manager:
    """Performs worktree operations on the repository in the current directory."""

    def list_worktrees(self) -> list[Worktree]:
        """Return every worktree of the repository."""
        output = _git("git worktree list", "worktree", "list", "--porcelain")
        return parse_worktree_list(output)

    def add_worktree(self, branch: str, path: str, main_branch: str) -> None:
        """Create a worktree at ``path`` for ``branch``.

        A branch that does not exist locally is created from
        ``origin/<main_branch>``.
        """
        if self.branch_exists(branch):
            args = ["worktree", "add", path, branch]
        else:
            args = ["worktree", "add", "-b", branch, path, f"origin/{main_branch}"]
        _git("git worktree add", *args, combined=True)

    def branch_exists(self, branch: str) -> bool:
        """Tell whether a local branch of that name exists."""
        try:
            result = subprocess.run(
                ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            return False
        return result.returncode == 0

    def find_worktree_path(self, name: str) -> str:
        """Find a worktree by exact branch name, else by a part of its path."""
        worktrees = self.list_worktrees()
        for wt in worktrees:
            if wt.branch == name:
                return wt.path
        for wt in worktrees:
            if name in wt.path:
                return wt.path
        raise WorktreeError(f"worktree '{name}' not found")

    def get_worktree_status(self, worktree_path: str) -> WorktreeStatus:
        """Return the change counts of the worktree at ``worktree_path``."""
        output = _git(
            f"git status for {worktree_path}",
            "status",
            "--porcelain",
            "--ahead-behind",
            cwd=worktree_path,
        )
        return parse_git_status(output)

    def find_unnecessary_worktrees(self, main_branch: str) -> list[UnnecessaryWorktree]:
        """Return worktrees whose branch is merged, whose path is gone, or
        whose branch no longer exists on ``origin``."""
        worktrees = self.list_worktrees()
        try:
            merged = set(self._merged_branches(main_branch))
        except WorktreeError as exc:
            raise WorktreeError(f"failed to get merged branches: {exc}") from exc
        try:
            remote = set(self._remote_branches())
        except WorktreeError as exc:
            raise WorktreeError(f"failed to get remote branches: {exc}") from exc

        unnecessary: list[UnnecessaryWorktree] = []
        for wt in worktrees:
            if wt.branch == main_branch:
                continue
            if wt.branch in merged:
                unnecessary.append(
                    UnnecessaryWorktree(wt, f"Branch merged into {main_branch}")
                )
                continue
            if not _path_exists(wt.path):
                unnecessary.append(UnnecessaryWorktree(wt, "Worktree path does not exist"))
                continue
            if wt.branch not in remote:
                unnecessary.append(UnnecessaryWorktree(wt, "Branch deleted remotely"))
        return unnecessary

    def _merged_branches(self, main_branch: str) -> list[str]:
        output = _git("git branch --merged", "branch", "--merged", main_branch)
        return [line.removeprefix("* ") for line in _non_empty_lines(output)]

    def _remote_branches(self) -> list[str]:
        output = _git("git ls-remote", "ls-remote", "--heads", "origin")
        branches = []
        for line in _non_empty_lines(output):
            parts = line.split()
            if len(parts) > 1:
                branches.append(parts[1].removeprefix("refs/heads/"))
        return branches

    def sync_worktree_with_branch(
        self, worktree_path: str, main_branch: str, use_rebase: bool
    ) -> None:
        """Fetch ``origin`` and merge or rebase onto ``origin/<main_branch>``."""
        _git("git fetch", "fetch", "origin", cwd=worktree_path, combined=True)
        action = "rebase" if use_rebase else "merge"
        _git(
            f"git {action}",
            action,
            f"origin/{main_branch}",
            cwd=worktree_path,
            combined=True,
        )

    def remove_worktree(self, worktree_path: str) -> None:
        """Remove the worktree at ``worktree_path``, discarding local changes."""
        _git(
            "git worktree remove",
            "worktree",
            "remove",
            "--force",
            worktree_path,
            combined=True,
        )


def _path_exists(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True