import io
import json
import os
import subprocess
from pathlib import Path

import pytest

from wkit.cli import main, parse_bool, relative_worktree_path, render_list
from wkit.worktree import Worktree


def _git(cwd, *args):
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout


@pytest.fixture
def home(tmp_path, monkeypatch):
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture
def workdir(tmp_path, home, monkeypatch):
    directory = tmp_path / "work"
    directory.mkdir()
    monkeypatch.chdir(directory)
    return directory


@pytest.fixture
def repo(tmp_path, home, monkeypatch):
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    _git(repo_dir, "init")
    _git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/main")
    (repo_dir / "README.md").write_text("hello\n")
    _git(repo_dir, "add", "README.md")
    _git(repo_dir, "commit", "-m", "init")
    _git(repo_dir, "branch", "feature")
    monkeypatch.chdir(repo_dir)
    return repo_dir


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("true", True),
        ("false", False),
        ("t", True),
        ("f", False),
        ("1", True),
        ("0", False),
        ("TRUE", True),
        ("FALSE", False),
    ],
)
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_parse_bool_invalid():
    with pytest.raises(ValueError, match="invalid boolean value: invalid"):
        parse_bool("invalid")


@pytest.mark.parametrize(
    ("path", "root", "expected"),
    [
        ("/home/user/myrepo", "/home/user/myrepo", "(root)"),
        ("/home/user/myrepo/.git/.wkit-worktrees/feature", "/home/user/myrepo",
         ".git/.wkit-worktrees/feature"),
        ("/home/user/myrepo/.git/.wkit-worktrees/deep/nested/feature", "/home/user/myrepo",
         ".git/.wkit-worktrees/deep/nested/feature"),
    ],
)
def test_relative_worktree_path(path, root, expected):
    assert relative_worktree_path(path, root) == expected


def test_relative_worktree_path_trailing_separator_is_root():
    assert relative_worktree_path("/repo/", "/repo") == "(root)"


def test_render_list_standard_table():
    worktrees = [
        Worktree("/path/to/repo", "main", "1234567890abcdef"),
        Worktree("/path/to/repo/.git/.wkit-worktrees/feature-branch", "feature-branch",
                 "abcdef1234567890"),
    ]
    output = render_list(worktrees, "/path/to/repo", "")
    assert output.splitlines() == [
        "PATH" + " " * 33 + "HEAD" + " " * 5 + "BRANCH",
        "----" + " " * 33 + "----" + " " * 5 + "------",
        "(root)" + " " * 31 + "1234567" + " " * 2 + "main",
        ".git/.wkit-worktrees/feature-branch" + " " * 2 + "abcdef1" + " " * 2 + "feature-branch",
    ]


def test_render_list_long_branch_aligns_columns():
    worktrees = [
        Worktree("/path/to/repo", "main", "1234567890abcdef"),
        Worktree("/path/to/repo/.git/.wkit-worktrees/very-long-feature-branch-name",
                 "very-long-feature-branch-name", "abcdef1234567890"),
    ]
    lines = render_list(worktrees, "/path/to/repo").splitlines()
    assert [line.split() for line in lines] == [
        ["PATH", "HEAD", "BRANCH"],
        ["----", "----", "------"],
        ["(root)", "1234567", "main"],
        [".git/.wkit-worktrees/very-long-feature-branch-name", "abcdef1",
         "very-long-feature-branch-name"],
    ]
    assert {line.index(line.split()[1]) for line in lines} == {52}


def test_render_list_json():
    worktrees = [
        Worktree("/path/to/repo", "main", "1234567890abcdef"),
        Worktree("/path/to/repo/.git/.wkit-worktrees/feature", "feature", "abcdef1234567890"),
    ]
    output = render_list(worktrees, "/path/to/repo", "json")
    assert output.endswith("\n")
    assert json.loads(output) == [
        {"path": "(root)", "branch": "main", "head": "1234567890abcdef"},
        {"path": ".git/.wkit-worktrees/feature", "branch": "feature",
         "head": "abcdef1234567890"},
    ]


def test_render_list_json_empty():
    assert render_list([], "/repo", "json") == "[]\n"


def test_help_shows_description(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0
    assert "wkit is a CLI tool for convenient Git worktree management" in capsys.readouterr().out


def test_no_arguments_prints_help(capsys):
    assert main([]) == 0
    assert "wkit is a CLI tool for convenient Git worktree management" in capsys.readouterr().out


def test_invalid_command(capsys):
    assert main(["nonexistent-command"]) == 1
    err = capsys.readouterr().err
    assert "Error:" in err
    assert "unknown command" in err


def test_missing_argument_is_error(capsys):
    assert main(["switch"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_config_show_defaults(workdir, capsys):
    assert main(["config", "show"]) == 0
    out = capsys.readouterr().out
    assert "Current configuration:" in out
    assert "  default_worktree_path: .git/.wkit-worktrees\n" in out
    assert "  auto_cleanup: false\n" in out
    assert "  default_sync_strategy: merge\n" in out
    assert "  main_branch: main\n" in out
    assert "  copy_files.enabled: false\n" in out
    assert "  copy_files.files: [.envrc compose.override.yaml .env.local config/local.yaml]\n" in out


def test_config_set_then_show(workdir, home, capsys):
    assert main(["config", "set", "main_branch", "develop"]) == 0
    assert main(["config", "set", "copy_files.files", "a,b"]) == 0
    assert main(["config", "set", "auto_cleanup", "T"]) == 0
    out = capsys.readouterr().out
    assert "✓ Configuration updated: main_branch = develop" in out
    assert (home / ".config" / "wkit" / "config.toml").exists()

    assert main(["config", "show"]) == 0
    shown = capsys.readouterr().out
    assert "  main_branch: develop\n" in shown
    assert "  copy_files.files: [a b]\n" in shown
    assert "  auto_cleanup: true\n" in shown


@pytest.mark.parametrize(
    ("key", "value", "message"),
    [
        ("nope", "x", "Error: unknown configuration key: nope"),
        ("default_sync_strategy", "squash",
         "Error: invalid sync strategy: squash. Valid values: merge, rebase"),
        ("auto_cleanup", "maybe",
         "Error: invalid boolean value for auto_cleanup: invalid boolean value: maybe"),
        ("copy_files.enabled", "yes",
         "Error: invalid boolean value for copy_files.enabled: invalid boolean value: yes"),
    ],
)
def test_config_set_rejects_bad_input(workdir, home, capsys, key, value, message):
    assert main(["config", "set", key, value]) == 1
    assert message in capsys.readouterr().err
    assert not (home / ".config" / "wkit" / "config.toml").exists()


def test_config_init_creates_file_once(workdir, capsys):
    assert main(["config", "init"]) == 0
    assert "✓ Created local configuration file: .wkit.toml" in capsys.readouterr().out
    assert (workdir / ".wkit.toml").exists()
    assert main(["config", "init"]) == 1
    assert "failed to create local config file" in capsys.readouterr().err


def test_list_in_repository(repo, capsys):
    assert main(["list"]) == 0
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0].split() == ["PATH", "HEAD", "BRANCH"]
    assert lines[2].split()[0] == "(root)"
    assert lines[2].split()[2] == "main"


def test_list_json_in_repository(repo, capsys):
    assert main(["list", "--format", "json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 1
    assert data[0]["path"] == "(root)"
    assert data[0]["branch"] == "main"
    assert len(data[0]["head"]) == 40


def test_status_clean_and_dirty(repo, capsys):
    assert main(["status"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0].split() == ["PATH", "BRANCH", "HEAD", "STATUS"]
    assert out.splitlines()[1] == "-" * 80
    root_line = out.splitlines()[2]
    assert root_line.split()[0] == "(root)"
    assert root_line.split()[-1] == "Clean"

    (repo / "scratch.txt").write_text("x")
    assert main(["status"]) == 0
    dirty = capsys.readouterr().out
    assert "0M 0A 0D" in dirty
    assert "  ❓ 1 untracked files" in dirty


def test_add_copies_configured_files(repo, tmp_path, capsys):
    (repo / ".envrc").write_text("export TEST_VAR=value")
    (repo / "config").mkdir()
    (repo / "config" / "local.yaml").write_text("env: test")
    (repo / ".wkit.toml").write_text(
        '[copy_files]\nenabled = true\nfiles = [".envrc", "config/local.yaml"]\n'
    )
    target = tmp_path / "wt"

    assert main(["add", "feature", str(target)]) == 0
    out = capsys.readouterr().out
    assert f"✓ Created worktree for branch 'feature' at '{target}'" in out
    assert "✓ Copied files: [.envrc config/local.yaml]" in out
    assert out.splitlines()[-1] == str(target)
    assert (target / ".envrc").read_text() == "export TEST_VAR=value"
    assert (target / "config" / "local.yaml").read_text() == "env: test"


def test_add_without_copy_and_no_switch(repo, tmp_path, capsys):
    (repo / ".envrc").write_text("export TEST_VAR=value")
    target = tmp_path / "wt"

    assert main(["add", "feature", str(target), "--no-switch"]) == 0
    out = capsys.readouterr().out
    assert "Copied files" not in out
    assert out.splitlines()[-1].startswith("✓ Created worktree")
    assert (target / "README.md").exists()
    assert not (target / ".envrc").exists()


def test_switch_and_remove(repo, tmp_path, capsys):
    target = tmp_path / "wt"
    assert main(["add", "feature", str(target), "--no-switch"]) == 0
    capsys.readouterr()

    assert main(["switch", "feature"]) == 0
    printed = capsys.readouterr().out.strip()
    assert os.path.realpath(printed) == os.path.realpath(target)

    assert main(["remove", "feature"]) == 0
    assert "✓ Removed worktree 'feature'" in capsys.readouterr().out
    assert not target.exists()


def test_switch_unknown_worktree(repo, capsys):
    assert main(["switch", "does-not-exist"]) == 1
    assert "worktree 'does-not-exist' not found" in capsys.readouterr().err


def test_sync_outside_worktree_root(repo, monkeypatch, capsys):
    sub = repo / "docs"
    sub.mkdir()
    monkeypatch.chdir(sub)
    assert main(["sync"]) == 1
    assert "Error: current directory is not a worktree" in capsys.readouterr().err


@pytest.fixture
def repo_with_origin(repo, tmp_path):
    origin = tmp_path / "origin.git"
    _git(tmp_path, "init", "--bare", str(origin))
    _git(repo, "remote", "add", "origin", str(origin))
    _git(repo, "push", "origin", "main")
    return repo


def test_clean_cancelled(repo_with_origin, tmp_path, monkeypatch, capsys):
    target = tmp_path / "wt"
    assert main(["add", "feature", str(target), "--no-switch"]) == 0
    capsys.readouterr()

    monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
    assert main(["clean"]) == 0
    out = capsys.readouterr().out
    assert "Found 1 unnecessary worktree(s):" in out
    assert "Branch merged into main" in out
    assert out.rstrip().endswith("Cancelled.")
    assert target.exists()


def test_clean_force_removes(repo_with_origin, tmp_path, capsys):
    target = tmp_path / "wt"
    assert main(["add", "feature", str(target), "--no-switch"]) == 0
    capsys.readouterr()

    assert main(["clean", "--force"]) == 0
    out = capsys.readouterr().out
    assert "✓ Removed worktree at" in out
    assert not target.exists()

    assert main(["clean"]) == 0
    assert "No unnecessary worktrees found." in capsys.readouterr().out


def test_sync_merges_origin_main(repo_with_origin, capsys):
    assert main(["sync", "main"]) == 0
    out = capsys.readouterr().out
    assert "with main branch using merge..." in out
    assert "✓ Successfully synced worktree" in out
    assert Path(repo_with_origin, "README.md").read_text() == "hello\n"