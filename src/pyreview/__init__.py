"""
pyreview - Python code review skill.

Ships a review checklist and best-practices guide as an assistant skill,
routes natural-language requests to it, and applies the checklist's
automated rules to unified diffs.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
