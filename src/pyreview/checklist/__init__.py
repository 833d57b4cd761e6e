"""Review checklist parsing."""

from pyreview.checklist.parser import (
    Checklist,
    ChecklistCategory,
    ChecklistItem,
    load_checklist,
    parse_checklist,
    slugify,
)

__all__ = [
    "Checklist",
    "ChecklistCategory",
    "ChecklistItem",
    "load_checklist",
    "parse_checklist",
    "slugify",
]
