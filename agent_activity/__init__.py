"""Agent Activity - live view of what AI coding assistants are doing."""

__version__ = "0.1.0"
