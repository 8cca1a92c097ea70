"""Git worktree management: listing, creating, syncing and cleaning worktrees."""

__version__ = "0.1.0"