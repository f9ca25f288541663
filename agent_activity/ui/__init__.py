"""UI components for Agent Activity."""

from .widgets import (
    PrimaryPanel,
    SessionItem,
    sparkline,
    state_style,
    timeline_bar,
)
from .styles import APP_CSS

__all__ = [
    "PrimaryPanel",
    "SessionItem",
    "sparkline",
    "state_style",
    "timeline_bar",
    "APP_CSS",
]
