"""Glob pattern matching shared by every authorization component."""
from __future__ import annotations

from appproject_governance.matching.glob import (
    glob_match,
    is_deny_pattern,
    is_valid_pattern,
    match_any,
    normalize_git_url,
)

__all__ = [
    "glob_match",
    "is_deny_pattern",
    "is_valid_pattern",
    "match_any",
    "normalize_git_url",
]
