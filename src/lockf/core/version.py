"""Version information for lockf."""

__version__ = "1.0.0"
