"""Helpers shared by the window: report formatting, settings and the background worker."""

__all__ = [
    "formatting",
    "settings",
    "worker",
]
