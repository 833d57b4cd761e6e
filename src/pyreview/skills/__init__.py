"""
Skills subsystem - skill bundles, trigger routing and document dispatch.

Skills are discovered from:
- Built-in skills: <package>/data/skills/<id>/skill.yaml
- User skills:     ~/.pyreview/skills/<id>/skill.yaml
"""

from __future__ import annotations

from pyreview.skills.dispatcher import DispatchResult, SkillDispatcher
from pyreview.skills.manager import SkillManager
from pyreview.skills.router import SkillRouteDecision, SkillRouter

__all__ = [
    "DispatchResult",
    "SkillDispatcher",
    "SkillManager",
    "SkillRouteDecision",
    "SkillRouter",
]
