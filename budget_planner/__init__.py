"""Budget Planner package."""

__all__ = [
    "analytics",
    "cli",
    "config",
    "db",
    "entities",
    "errors",
    "models",
    "ordering",
    "recurrence",
    "reports",
    "service",
    "store",
    "webapp",
]

__version__ = "0.1.0"
