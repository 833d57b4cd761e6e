"""
Skills models (Pydantic).

These models define the on-disk skill manifest schema (skill.yaml / skill.json).
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

_SKILL_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _relative_doc_path(value: str) -> str:
    v = (value or "").strip().replace("\\", "/")
    if not v:
        raise ValueError("document path cannot be empty")
    p = PurePosixPath(v)
    if p.is_absolute() or ".." in p.parts:
        raise ValueError(f"document path must stay inside the skill directory: {v}")
    return v


class SkillTriggers(BaseModel):
    keywords: List[str] = Field(default_factory=list)
    regex: List[str] = Field(default_factory=list)


class SkillReference(BaseModel):
    """A document shipped with a skill, relative to the skill directory."""

    path: str
    title: str = ""
    kind: str = "reference"

    @field_validator("path")
    @classmethod
    def _validate_path(cls, v: str) -> str:
        return _relative_doc_path(v)


class SkillManifest(BaseModel):
    id: str
    name: str
    version: str = "0.1.0"
    description: str = ""

    enabled_by_default: bool = False
    depends_on: List[str] = Field(default_factory=list)

    triggers: SkillTriggers = Field(default_factory=SkillTriggers)
    instructions_file: str = "SKILL.md"
    references: List[SkillReference] = Field(default_factory=list)

    # Runtime metadata (not part of manifest file)
    source_dir: Optional[Path] = None
    source_file: Optional[Path] = None
    source_kind: Optional[Literal["builtin", "user"]] = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("skill id cannot be empty")
        if not _SKILL_ID_RE.match(v):
            raise ValueError(f"skill id may only contain letters, digits, '-' and '_': {v}")
        return v

    @field_validator("instructions_file")
    @classmethod
    def _validate_instructions_file(cls, v: str) -> str:
        return _relative_doc_path((v or "").strip() or "SKILL.md")

    def document_entries(self) -> List[SkillReference]:
        """Instructions file first, then declared references (deduplicated)."""
        out = [SkillReference(path=self.instructions_file, title=self.name, kind="instructions")]
        seen = {out[0].path}
        for ref in self.references:
            if ref.path in seen:
                continue
            seen.add(ref.path)
            out.append(ref)
        return out
