"""API routers."""

from pointwise.api import cron, tasks, users

__all__ = [
    "cron",
    "tasks",
    "users",
]
