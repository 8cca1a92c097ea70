"""The ``wkit`` command: convenient management of git worktrees."""

from __future__ import annotations

import argparse
import functools
import json
import os
import sys
from collections.abc import Iterable, Sequence

from wkit import config as config_store
from wkit.config import Config, ConfigError
from wkit.git import GitError
from wkit.worktree import Manager, Worktree, WorktreeError, get_repository_root

DESCRIPTION = "wkit is a CLI tool for convenient Git worktree management."

_COMMAND_NAMES = ("list", "add", "remove", "switch", "config", "status", "clean", "sync")
_SYNC_STRATEGIES = ("merge", "rebase")


class CommandError(Exception):
    """A command could not do its work."""


class _UsageError(Exception):
    """The command line could not be parsed."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


def parse_bool(value: str) -> bool:
    """Interpret ``true``/``t``/``1`` and ``false``/``f``/``0``, in any case."""
    lowered = value.lower()
    if lowered in ("true", "t", "1"):
        return True
    if lowered in ("false", "f", "0"):
        return False
    raise ValueError(f"invalid boolean value: {value}")


def relative_worktree_path(path: str, repo_root: str) -> str:
    """Return ``path`` relative to ``repo_root``, or ``(root)`` for the root itself."""
    if path == repo_root:
        return "(root)"
    if os.path.isabs(path) != os.path.isabs(repo_root):
        return path
    try:
        relative = os.path.relpath(path, repo_root)
    except ValueError:
        return path
    return "(root)" if relative == "." else relative


def _go_list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


def render_list(worktrees: Iterable[Worktree], repo_root: str, output_format: str = "") -> str:
    """Render worktrees as JSON or as an aligned table."""
    entries = [
        {
            "path": relative_worktree_path(wt.path, repo_root),
            "branch": wt.branch,
            "head": wt.head,
        }
        for wt in worktrees
    ]
    if output_format == "json":
        return json.dumps(entries, indent=2, ensure_ascii=False) + "\n"

    rows = [("PATH", "HEAD", "BRANCH"), ("----", "----", "------")]
    rows.extend((e["path"], e["head"][:7], e["branch"]) for e in entries)
    path_width = max(len(row[0]) for row in rows) + 2
    head_width = max(len(row[1]) for row in rows) + 2
    return "".join(
        f"{path.ljust(path_width)}{head.ljust(head_width)}{branch}\n"
        for path, head, branch in rows
    )


def _load_config() -> Config:
    try:
        return config_store.load()
    except ConfigError as exc:
        raise CommandError(f"failed to load config: {exc}") from exc


def _repository_root() -> str:
    try:
        return get_repository_root()
    except WorktreeError as exc:
        raise CommandError(f"failed to get repository root: {exc}") from exc


def _list_worktrees(manager: Manager) -> list[Worktree]:
    try:
        return manager.list_worktrees()
    except WorktreeError as exc:
        raise CommandError(f"failed to list worktrees: {exc}") from exc


def _find_worktree_path(manager: Manager, name: str) -> str:
    try:
        return manager.find_worktree_path(name)
    except WorktreeError as exc:
        raise CommandError(f"failed to find worktree path: {exc}") from exc


def _show_help(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    parser.print_help()
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    manager = Manager()
    worktrees = _list_worktrees(manager)
    repo_root = _repository_root()
    sys.stdout.write(render_list(worktrees, repo_root, args.format))
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    branch = args.branch
    manager = Manager()
    if args.path is not None:
        worktree_path = args.path
    else:
        cfg = _load_config()
        worktree_path = cfg.resolve_worktree_path(branch, "", _repository_root())

    cfg = _load_config()
    try:
        manager.add_worktree(branch, worktree_path, cfg.main_branch)
    except WorktreeError as exc:
        raise CommandError(f"failed to add worktree: {exc}") from exc
    print(f"✓ Created worktree for branch '{branch}' at '{worktree_path}'")

    repo_root = _repository_root()
    try:
        copied = cfg.copy_files_to_worktree(repo_root, worktree_path)
    except (ConfigError, OSError) as exc:
        print(f"Warning: Failed to copy files: {exc}", file=sys.stderr)
    else:
        if copied:
            print(f"✓ Copied files: {_go_list(copied)}")

    if not args.no_switch:
        print(worktree_path)
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    manager = Manager()
    worktree_path = _find_worktree_path(manager, args.worktree)
    try:
        manager.remove_worktree(worktree_path)
    except WorktreeError as exc:
        raise CommandError(f"failed to remove worktree: {exc}") from exc
    print(f"✓ Removed worktree '{args.worktree}'")
    return 0


def _cmd_switch(args: argparse.Namespace) -> int:
    print(_find_worktree_path(Manager(), args.worktree))
    return 0


def _cmd_config_show(args: argparse.Namespace) -> int:
    cfg = _load_config()
    print("Current configuration:")
    print(f"  default_worktree_path: {cfg.default_worktree_path}")
    print(f"  auto_cleanup: {str(cfg.auto_cleanup).lower()}")
    print(f"  default_sync_strategy: {cfg.default_sync_strategy}")
    print(f"  main_branch: {cfg.main_branch}")
    print(f"  copy_files.enabled: {str(cfg.copy_files.enabled).lower()}")
    print(f"  copy_files.files: {_go_list(cfg.copy_files.files)}")
    return 0


def _parse_bool_setting(key: str, value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise CommandError(f"invalid boolean value for {key}: {exc}") from exc


def _cmd_config_set(args: argparse.Namespace) -> int:
    key, value = args.key, args.value
    cfg = _load_config()
    match key:
        case "default_worktree_path":
            cfg.default_worktree_path = value
        case "auto_cleanup":
            cfg.auto_cleanup = _parse_bool_setting(key, value)
        case "default_sync_strategy":
            if value not in _SYNC_STRATEGIES:
                raise CommandError(
                    f"invalid sync strategy: {value}. Valid values: merge, rebase"
                )
            cfg.default_sync_strategy = value
        case "main_branch":
            cfg.main_branch = value
        case "copy_files.enabled":
            cfg.copy_files.enabled = _parse_bool_setting(key, value)
        case "copy_files.files":
            cfg.copy_files.files = value.split(",")
        case _:
            raise CommandError(f"unknown configuration key: {key}")

    try:
        config_store.save_global(cfg)
    except ConfigError as exc:
        raise CommandError(f"failed to save config: {exc}") from exc
    print(f"✓ Configuration updated: {key} = {value}")
    return 0


def _cmd_config_init(args: argparse.Namespace) -> int:
    try:
        config_store.init_local()
    except ConfigError as exc:
        raise CommandError(f"failed to create local config file: {exc}") from exc
    print("✓ Created local configuration file: .wkit.toml")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    manager = Manager()
    worktrees = _list_worktrees(manager)
    repo_root = _repository_root()

    print(f"{'PATH':<30} {'BRANCH':<20} {'HEAD':<12} {'STATUS':<15}")
    print("-" * 80)
    for wt in worktrees:
        relative = relative_worktree_path(wt.path, repo_root)
        try:
            status = manager.get_worktree_status(wt.path)
        except WorktreeError as exc:
            print(f"Error getting status for {relative}: {exc}", file=sys.stderr)
            continue

        if status.is_clean:
            summary = "Clean"
        else:
            summary = f"{status.modified}M {status.added}A {status.deleted}D"
        print(f"{relative:<30} {wt.branch:<20} {wt.head:<12} {summary:<15}")

        if not status.is_clean:
            if status.modified > 0:
                print(f"  📝 {status.modified} modified files")
            if status.added > 0:
                print(f"  ➕ {status.added} added files")
            if status.deleted > 0:
                print(f"  ❌ {status.deleted} deleted files")
            if status.untracked > 0:
                print(f"  ❓ {status.untracked} untracked files")
    return 0


def _confirm() -> bool:
    print("\nRemove these worktrees? (y/N): ", end="", flush=True)
    try:
        answer = input()
    except EOFError:
        answer = ""
    tokens = answer.split()
    return bool(tokens) and tokens[0].lower() == "y"


def _cmd_clean(args: argparse.Namespace) -> int:
    manager = Manager()
    cfg = _load_config()
    try:
        unnecessary = manager.find_unnecessary_worktrees(cfg.main_branch)
    except WorktreeError as exc:
        raise CommandError(f"failed to find unnecessary worktrees: {exc}") from exc

    if not unnecessary:
        print("No unnecessary worktrees found.")
        return 0

    print(f"Found {len(unnecessary)} unnecessary worktree(s):")
    for item in unnecessary:
        print(f"  {item.worktree.path} - {item.reason}")

    if not args.force and not _confirm():
        print("Cancelled.")
        return 0

    for item in unnecessary:
        path = item.worktree.path
        try:
            manager.remove_worktree(path)
        except WorktreeError as exc:
            print(f"Error removing worktree {path}: {exc}", file=sys.stderr)
            continue
        print(f"✓ Removed worktree at '{path}'")
    return 0


def _cmd_sync(args: argparse.Namespace) -> int:
    manager = Manager()
    cfg = _load_config()

    if args.worktree is not None:
        target = _find_worktree_path(manager, args.worktree)
    else:
        try:
            current_dir = os.getcwd()
        except OSError as exc:
            raise CommandError(f"failed to get current directory: {exc}") from exc
        if not any(wt.path == current_dir for wt in _list_worktrees(manager)):
            raise CommandError("current directory is not a worktree")
        target = current_dir

    use_rebase = args.rebase or cfg.default_sync_strategy == "rebase"
    strategy = "rebase" if use_rebase else "merge"
    print(f"Syncing worktree '{target}' with {cfg.main_branch} branch using {strategy}...")
    try:
        manager.sync_worktree_with_branch(target, cfg.main_branch, use_rebase)
    except WorktreeError as exc:
        raise CommandError(f"failed to sync worktree: {exc}") from exc
    print(f"✓ Successfully synced worktree '{target}'")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = _Parser(prog="wkit", description=DESCRIPTION)
    parser.set_defaults(handler=functools.partial(_show_help, parser))
    commands = parser.add_subparsers(dest="command", metavar="<command>")

    list_parser = commands.add_parser(
        "list",
        help="List all worktrees",
        description="List all Git worktrees associated with the current repository.",
    )
    list_parser.add_argument("--format", default="", help="Output format (json)")
    list_parser.set_defaults(handler=_cmd_list)

    add_parser = commands.add_parser("add", help="Add a new worktree")
    add_parser.add_argument("branch")
    add_parser.add_argument("path", nargs="?")
    add_parser.add_argument(
        "--no-switch",
        action="store_true",
        help="Skip automatic switching to new worktree",
    )
    add_parser.set_defaults(handler=_cmd_add)

    remove_parser = commands.add_parser("remove", help="Remove a worktree")
    remove_parser.add_argument("worktree")
    remove_parser.set_defaults(handler=_cmd_remove)

    switch_parser = commands.add_parser("switch", help="Switch to a worktree")
    switch_parser.add_argument("worktree")
    switch_parser.set_defaults(handler=_cmd_switch)

    config_parser = commands.add_parser(
        "config",
        help="Configuration management",
        description="Manage wkit configuration.",
    )
    config_parser.set_defaults(handler=functools.partial(_show_help, config_parser))
    config_commands = config_parser.add_subparsers(dest="config_command", metavar="<command>")
    show_parser = config_commands.add_parser("show", help="Show current configuration")
    show_parser.set_defaults(handler=_cmd_config_show)
    set_parser = config_commands.add_parser("set", help="Set a configuration value")
    set_parser.add_argument("key")
    set_parser.add_argument("value")
    set_parser.set_defaults(handler=_cmd_config_set)
    init_parser = config_commands.add_parser("init", help="Initialize a local configuration file")
    init_parser.set_defaults(handler=_cmd_config_init)

    status_parser = commands.add_parser("status", help="Show git status of all worktrees")
    status_parser.set_defaults(handler=_cmd_status)

    clean_parser = commands.add_parser("clean", help="Clean up unnecessary worktrees")
    clean_parser.add_argument(
        "-f", "--force", action="store_true", help="Skip confirmation prompt"
    )
    clean_parser.set_defaults(handler=_cmd_clean)

    sync_parser = commands.add_parser("sync", help="Sync worktree with main branch")
    sync_parser.add_argument("worktree", nargs="?")
    sync_parser.add_argument(
        "-r", "--rebase", action="store_true", help="Use rebase instead of merge"
    )
    sync_parser.set_defaults(handler=_cmd_sync)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    if arguments and not arguments[0].startswith("-") and arguments[0] not in _COMMAND_NAMES:
        print(f'Error: unknown command "{arguments[0]}" for "wkit"', file=sys.stderr)
        return 1

    parser = build_parser()
    try:
        args = parser.parse_args(arguments)
    except _UsageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        return args.handler(args)
    except (CommandError, ConfigError, WorktreeError, GitError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1