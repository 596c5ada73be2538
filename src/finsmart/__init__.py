"""Personal budgeting dashboard package."""

__all__ = [
    "ai",
    "app",
    "config",
    "models",
    "storage",
    "viewmodels",
]
