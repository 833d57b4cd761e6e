"""
Review subsystem - apply the checklist to a diff and report findings.
"""

from __future__ import annotations

from pyreview.review.diff import DiffLine, FileDiff, Hunk, parse_unified_diff
from pyreview.review.engine import Finding, ReviewEngine, ReviewReport
from pyreview.review.report import render_json, render_markdown
from pyreview.review.rules import CATEGORIES, RULES, SEVERITIES, Rule

__all__ = [
    "CATEGORIES",
    "DiffLine",
    "FileDiff",
    "Finding",
    "Hunk",
    "RULES",
    "ReviewEngine",
    "ReviewReport",
    "Rule",
    "SEVERITIES",
    "parse_unified_diff",
    "render_json",
    "render_markdown",
]
