"""
Exception types raised by pyreview.

Manager mutations (enable/disable/install) report failures through result
dicts; lookups and parsing raise one of these.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class PyReviewError(Exception):
    """Base class for all pyreview errors."""


class ManifestError(PyReviewError):
    """A skill manifest could not be read or validated."""


class SkillNotFoundError(PyReviewError):
    def __init__(self, skill_id: str) -> None:
        super().__init__(f"skill not found: {skill_id}")
        self.skill_id = skill_id


class SkillDisabledError(PyReviewError):
    def __init__(self, skill_id: str) -> None:
        super().__init__(f"skill is disabled: {skill_id}")
        self.skill_id = skill_id


class ReferenceNotFoundError(PyReviewError, FileNotFoundError):
    """A document declared by a skill manifest is missing on disk."""

    def __init__(self, skill_id: str, path: Path) -> None:
        super().__init__(f"reference document for skill '{skill_id}' not found: {path}")
        self.skill_id = skill_id
        self.path = path


class DiffParseError(PyReviewError):
    def __init__(self, message: str, line_no: Optional[int] = None) -> None:
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no
