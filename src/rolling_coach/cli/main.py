"""
CLI entry point using Typer.

Commands:
- init: Create the coach home directory
- plan: Plan the next 7 days
- week: Show the weekly projection
- reconcile: Daily status pass over the calendar
- calendar-sync: Follow edits made in the external calendar
- events: Show the adaptation log
- signals: Show recent load, ACWR, readiness and phase
- status: Show, set or clear the illness/travel window
"""

from .app import app
from .commands import planning, reconcile, status  # noqa: F401  registers commands

__all__ = ["app"]


if __name__ == "__main__":
    app()
