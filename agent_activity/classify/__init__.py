"""Tool event classification."""

from .flavor import add_flavor, glitch_text
from .outcome import (
    classify_end,
    detect_error,
    error_detail,
    extract_exit_code,
    is_merge_conflict,
    looks_like_error,
    looks_like_rate_limit,
)
from .tools import classify_start, truncate

__all__ = [
    "classify_start",
    "classify_end",
    "detect_error",
    "error_detail",
    "extract_exit_code",
    "is_merge_conflict",
    "looks_like_error",
    "looks_like_rate_limit",
    "truncate",
    "add_flavor",
    "glitch_text",
]
