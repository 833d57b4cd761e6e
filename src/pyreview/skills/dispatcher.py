"""
SkillDispatcher - turn a trigger phrase into the documents to load.

Routes the phrase to a skill id, then resolves the skill's instructions
file and reference documents on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from pyreview.errors import SkillDisabledError, SkillNotFoundError
from pyreview.skills.manager import SkillManager
from pyreview.skills.router import SkillRouteDecision, SkillRouter


@dataclass
class DispatchResult:
    skill_id: Optional[str]
    confidence: float
    reason: str
    documents: List[Path] = field(default_factory=list)
    contents: Dict[str, str] = field(default_factory=dict)

    @property
    def matched(self) -> bool:
        return self.skill_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "confidence": round(self.confidence, 3),
            "reason": self.reason,
            "documents": [str(p) for p in self.documents],
        }


class SkillDispatcher:
    def __init__(self, skill_manager: SkillManager, router: Optional[SkillRouter] = None) -> None:
        self._skills = skill_manager
        self._router = router or SkillRouter(skill_manager)

    async def dispatch(self, phrase: str, *, load: bool = False) -> DispatchResult:
        decision = await self._router.route(phrase)
        if decision.skill_id is None:
            logger.debug(f"No skill matched ({decision.reason})")
            return DispatchResult(skill_id=None, confidence=0.0, reason=decision.reason)

        await self._check_routable(decision)
        documents = await self._skills.reference_paths(decision.skill_id)

        result = DispatchResult(
            skill_id=decision.skill_id,
            confidence=decision.confidence,
            reason=decision.reason,
            documents=documents,
        )
        if load:
            for p in documents:
                if p.name in result.contents:
                    logger.warning(
                        f"Skill '{decision.skill_id}' has several documents named '{p.name}'; "
                        f"keeping the contents of {p}"
                    )
                result.contents[p.name] = p.read_text(encoding="utf-8")

        logger.info(
            f"Dispatched to skill '{decision.skill_id}' ({decision.reason}, "
            f"confidence={decision.confidence:.2f}, {len(documents)} document(s))"
        )
        return result

    async def _check_routable(self, decision: SkillRouteDecision) -> None:
        sid = decision.skill_id or ""
        if await self._skills.get_manifest(sid) is None:
            raise SkillNotFoundError(sid)
        # An explicit directive may load a disabled skill; auto-detection may not.
        if not decision.explicit and not await self._skills.is_enabled(sid):
            raise SkillDisabledError(sid)
