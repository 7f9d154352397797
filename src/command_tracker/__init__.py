"""Command tracker: a personal command/prompt document kept in sync
through a git remote and merged with documents published by peers."""

__version__ = "0.4.0"
