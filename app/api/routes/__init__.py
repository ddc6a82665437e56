"""Route modules exposed by the API package."""

from . import auth, metrics, notifications, ping, projects, teams, tickets, users

__all__ = ["auth", "metrics", "notifications", "ping", "projects", "teams", "tickets", "users"]
