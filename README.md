# wkit

wkit is a command-line tool for managing Git worktrees. It places new
worktrees in one predictable location. It can copy local-only files, such as
`.envrc` or `.env.local`, into each new worktree. It also helps you sync
worktrees with the main branch and remove the ones you no longer need.

## Installation

```
pip install .
```

This installs the `wkit` command. Git must be available on your `PATH`,
because every operation runs `git`.

To install the test dependencies as well:

```
pip install ".[test]"
```

## Usage

Run every command from inside a Git repository.

```
wkit list                      # list all worktrees (PATH, HEAD, BRANCH)
wkit list --format json        # the same, as JSON
wkit add <branch> [path]       # create a worktree
wkit add <branch> --no-switch  # create it without printing its path at the end
wkit switch <worktree>         # print the path of a worktree
wkit remove <worktree>         # remove a worktree (local changes are discarded)
wkit status                    # show the git status of every worktree
wkit sync [worktree]           # fetch origin and merge origin/<main_branch>
wkit sync -r [worktree]        # fetch origin and rebase onto origin/<main_branch>
wkit clean                     # remove worktrees that are no longer needed, after asking
wkit clean -f                  # remove them without asking
```

The commands behave as follows.

- **`list`** shows each worktree's path relative to the repository root. The
  root itself appears as `(root)`. The commit hash is shortened to seven
  characters in the table but given in full in the JSON output.
- **`add`** checks out the branch if it exists locally. Otherwise it creates
  the branch from `origin/<main_branch>`. Without a `path`, the worktree goes
  to `<default_worktree_path>/<branch>`.
- **`switch`, `remove` and `sync`** find a worktree by its exact branch name
  first. If no branch matches, they take the first worktree whose path
  contains the given text.
- **`sync` without an argument** works on the current directory, which must be
  the top directory of a worktree. It uses rebase when `-r` is given or when
  `default_sync_strategy` is `rebase`.
- **`clean`** selects a worktree, other than the one on the main branch, when
  any of these holds:
  - its branch is merged into the main branch;
  - its directory no longer exists;
  - its branch no longer exists on `origin`.

`switch` prints only the path. `add` prints the path on its last line unless
`--no-switch` is given. A shell function can therefore change into the
worktree:

```
wsw() { cd "$(wkit switch "$1")"; }
```

## Configuration

```
wkit config show               # show the effective configuration
wkit config set <key> <value>  # change a value and save it in the global file
wkit config init               # create .wkit.toml with default values here
```

Configuration is read from three sources, in this order, with later sources
overriding earlier ones:

1. the built-in defaults;
2. `~/.config/wkit/config.toml`;
3. `.wkit.toml` in the current directory.

`config set` writes the complete configuration to the global file.
`config init` refuses to overwrite an existing `.wkit.toml`.

| Key                     | Default                                                     |
|-------------------------|-------------------------------------------------------------|
| `default_worktree_path` | `.git/.wkit-worktrees`                                      |
| `auto_cleanup`          | `false`                                                     |
| `default_sync_strategy` | `merge` (or `rebase`)                                       |
| `main_branch`           | `main`                                                      |
| `copy_files.enabled`    | `false`                                                     |
| `copy_files.files`      | `.envrc,compose.override.yaml,.env.local,config/local.yaml` |

A relative `default_worktree_path` is resolved against the repository root.

When `copy_files.enabled` is true, `add` copies the listed files from the
repository root into the new worktree:

- An entry containing a slash names one exact path.
- A bare file name matches every file of that name in the repository, outside
  `.git`.
- Files that already exist in the new worktree are left alone.

`config set copy_files.files` takes a comma-separated list.

Boolean values accept `true`, `t`, `1`, `false`, `f` and `0`, in any case.

## Using it from Python

The modules can also be used directly:

- **`wkit.worktree`**
  - `Manager` provides `list_worktrees`, `add_worktree`, `find_worktree_path`,
    `get_worktree_status`, `find_unnecessary_worktrees`,
    `sync_worktree_with_branch` and `remove_worktree`.
  - `parse_worktree_list` and `parse_git_status` parse git's porcelain output.
  - `get_repository_root` returns the repository root.
- **`wkit.config`**
  - `load`, `save_global` and `init_local` handle the configuration files.
  - `Config.resolve_worktree_path` and `Config.copy_files_to_worktree` apply
    the settings.
- **`wkit.git`**
  - `Executor` is a thin runner for individual git commands.

Failures are raised as `WorktreeError`, `ConfigError` or `GitError`.

## Limitations

- The `auto_cleanup` setting is stored and shown, but no command acts on it.
  Cleanup happens only when you run `wkit clean`.
- `wkit switch` and `wkit add` cannot change your shell's directory
  themselves. They print the path for a shell function to use.