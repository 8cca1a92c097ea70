"""Loading, saving and applying the tool's configuration."""

from __future__ import annotations

import os
import stat
import sys
import tomllib
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

GLOBAL_CONFIG_NAME = "config.toml"
LOCAL_CONFIG_NAME = ".wkit.toml"

DEFAULT_COPY_FILES = (".envrc", "compose.override.yaml", ".env.local", "config/local.yaml")

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class ConfigError(Exception):
    """The configuration could not be read, written or interpreted."""


@dataclass
class CopyFiles:
    """Which files are copied into a freshly created worktree."""

    enabled: bool = False
    files: list[str] = field(default_factory=lambda: list(DEFAULT_COPY_FILES))


@dataclass
class Config:
    """Application configuration."""

    default_worktree_path: str = ".git/.wkit-worktrees"
    auto_cleanup: bool = False
    z_integration: bool = False
    default_sync_strategy: str = "merge"
    main_branch: str = "main"
    copy_files: CopyFiles = field(default_factory=CopyFiles)

    def resolve_worktree_path(
        self, branch: str, provided_path: str = "", repository_root: str = ""
    ) -> str:
        """Return where the worktree for ``branch`` goes."""
        if provided_path:
            return provided_path
        if os.path.isabs(self.default_worktree_path):
            joined = os.path.join(self.default_worktree_path, branch)
        else:
            joined = os.path.join(repository_root, self.default_worktree_path, branch)
        return os.path.normpath(joined)

    def copy_files_to_worktree(self, source_dir: str, target_dir: str) -> list[str]:
        """Copy the configured files from ``source_dir`` into ``target_dir``.

        Patterns with a path separator name one file relative to the source;
        bare names match every file of that name in the tree, ``.git`` aside.
        Files already present in the target are left alone. Returns the
        relative paths that were copied; failures are reported as warnings.
        """
        if not self.copy_files.enabled:
            return []

        copied: list[str] = []
        for pattern in self.copy_files.files:
            if "/" in pattern or "\\" in pattern:
                if not os.path.exists(os.path.join(source_dir, pattern)):
                    continue
                candidates = [pattern]
            else:
                try:
                    candidates = find_files_by_name(source_dir, pattern)
                except ConfigError as exc:
                    _warn(f"  Warning: Failed to find files for pattern {pattern}: {exc}")
                    continue

            for relative in candidates:
                try:
                    if _copy_single_file(
                        os.path.join(source_dir, relative),
                        os.path.join(target_dir, relative),
                    ):
                        copied.append(relative)
                except OSError as exc:
                    _warn(f"  Warning: Failed to copy {relative}: {exc}")
        return copied


def _warn(message: str) -> None:
    print(message, file=sys.stderr)


def _copy_single_file(source: str, target: str) -> bool:
    """Copy one file; return False when the target already exists."""
    Path(target).parent.mkdir(parents=True, exist_ok=True)
    if os.path.exists(target):
        return False
    Path(target).write_bytes(Path(source).read_bytes())
    return True


def _walk_files(root: str) -> Iterator[str]:
    """Yield file paths under ``root`` in lexical order, skipping ``.git``."""
    info = os.lstat(root)
    if not stat.S_ISDIR(info.st_mode):
        yield root
        return
    if os.path.basename(root) == ".git":
        return
    yield from _walk_directory(root)


def _walk_directory(directory: str) -> Iterator[str]:
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            if entry.name != ".git":
                yield from _walk_directory(entry.path)
        else:
            yield entry.path


def find_files_by_name(base_dir: str, filename: str) -> list[str]:
    """Return paths, relative to ``base_dir``, of every file named ``filename``."""
    base = os.fspath(base_dir)
    try:
        return [
            os.path.relpath(path, base)
            for path in _walk_files(base)
            if os.path.basename(path) == filename
        ]
    except OSError as exc:
        raise ConfigError(f"failed to walk directory {base}: {exc}") from exc


def _default_settings() -> dict[str, Any]:
    return dict(_flatten(_as_document(Config())))


def _flatten(table: Mapping[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    for key, value in table.items():
        name = prefix + key.lower()
        if isinstance(value, Mapping):
            yield from _flatten(value, name + ".")
        else:
            yield name, value


def _read_settings(path: Path, label: str) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            document = tomllib.load(fh)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"failed to read {label} config file: {exc}") from exc
    return dict(_flatten(document))


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value == "" or value in _FALSE_STRINGS:
            return False
        if value in _TRUE_STRINGS:
            return True
        raise ValueError(f"cannot parse {value!r} as bool")
    raise TypeError(f"expected a bool, got {type(value).__name__}")


def _as_str(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"expected a string, got {type(value).__name__}")


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return value.split(",") if value else []
    if isinstance(value, list):
        return [_as_str(item) for item in value]
    raise TypeError(f"expected a list of strings, got {type(value).__name__}")


def _config_from_settings(settings: Mapping[str, Any]) -> Config:
    try:
        return Config(
            default_worktree_path=_as_str(settings["default_worktree_path"]),
            auto_cleanup=_as_bool(settings["auto_cleanup"]),
            z_integration=_as_bool(settings["z_integration"]),
            default_sync_strategy=_as_str(settings["default_sync_strategy"]),
            main_branch=_as_str(settings["main_branch"]),
            copy_files=CopyFiles(
                enabled=_as_bool(settings["copy_files.enabled"]),
                files=_as_list(settings["copy_files.files"]),
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"failed to unmarshal config: {exc}") from exc


def _as_document(cfg: Config) -> dict[str, Any]:
    return {
        "default_worktree_path": cfg.default_worktree_path,
        "auto_cleanup": cfg.auto_cleanup,
        "z_integration": cfg.z_integration,
        "default_sync_strategy": cfg.default_sync_strategy,
        "main_branch": cfg.main_branch,
        "copy_files": {
            "enabled": cfg.copy_files.enabled,
            "files": list(cfg.copy_files.files),
        },
    }


def _global_config_dir() -> Path | None:
    try:
        return Path.home() / ".config" / "wkit"
    except (RuntimeError, KeyError):
        return None


def load() -> Config:
    """Load defaults, then the global file, then ``.wkit.toml`` in the current directory."""
    settings = _default_settings()
    global_dir = _global_config_dir()
    if global_dir is not None:
        settings.update(_read_settings(global_dir / GLOBAL_CONFIG_NAME, "global"))
    settings.update(_read_settings(Path(LOCAL_CONFIG_NAME), "local"))
    return _config_from_settings(settings)


def save_global(cfg: Config) -> None:
    """Write ``cfg`` to the global configuration file."""
    config_dir = _global_config_dir()
    if config_dir is None:
        raise ConfigError("failed to get user home directory")
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"failed to create config directory: {exc}") from exc
    try:
        (config_dir / GLOBAL_CONFIG_NAME).write_text(
            tomli_w.dumps(_as_document(cfg)), encoding="utf-8"
        )
    except OSError as exc:
        raise ConfigError(f"failed to write global config file: {exc}") from exc


def init_local() -> None:
    """Create ``.wkit.toml`` with default values; refuse to overwrite one."""
    path = Path(LOCAL_CONFIG_NAME)
    try:
        with path.open("x", encoding="utf-8") as fh:
            fh.write(tomli_w.dumps(_as_document(Config())))
    except FileExistsError as exc:
        raise ConfigError(
            f"failed to create local config file: config file {path} already exists"
        ) from exc
    except OSError as exc:
        raise ConfigError(f"failed to create local config file: {exc}") from exc