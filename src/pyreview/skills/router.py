"""
SkillRouter - choose which skill a natural-language request triggers.

Selection order:
1) Explicit directive: "@skill <id>" or "/skill <id>"
2) Keyword/regex triggers across enabled skills
3) Optional LLM tie-breaker when ambiguous (best-effort)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger

from pyreview.skills.manager import SkillManager
from pyreview.skills.models import SkillManifest

_DIRECTIVE_RE = re.compile(r"(?:^|\s)(?:@skill|/skill)\s+([a-zA-Z0-9_-]+)\b")

KEYWORD_WEIGHT = 0.7
REGEX_WEIGHT = 0.3
MAX_REGEX_PATTERNS = 10
# Scores are sums of float fractions; thresholds compare with this slack.
_SCORE_EPSILON = 1e-9


@dataclass(frozen=True)
class SkillRouteDecision:
    skill_id: Optional[str]
    confidence: float
    reason: str
    cleaned_message: str

    @property
    def explicit(self) -> bool:
        return self.reason == "explicit directive"


def score_manifest(manifest: SkillManifest, message: str) -> Tuple[float, List[str]]:
    """Score one manifest's triggers against a message."""
    score = 0.0
    reasons: List[str] = []
    msg_lower = message.lower()

    keywords = [k for k in manifest.triggers.keywords if isinstance(k, str) and k.strip()]
    if keywords:
        hits = sum(1 for k in keywords if k.strip().lower() in msg_lower)
        if hits:
            score += min(hits / len(keywords), 1.0) * KEYWORD_WEIGHT
            reasons.append(f"keyword_hits={hits}")

    regexes = [r for r in manifest.triggers.regex if isinstance(r, str) and r.strip()]
    if regexes:
        rhits = 0
        for pat in regexes[:MAX_REGEX_PATTERNS]:
            try:
                if re.search(pat, message, flags=re.IGNORECASE):
                    rhits += 1
            except re.error:
                logger.debug(f"Ignoring invalid trigger regex in skill '{manifest.id}': {pat}")
                continue
        if rhits:
            score += min(rhits / len(regexes), 1.0) * REGEX_WEIGHT
            reasons.append(f"regex_hits={rhits}")

    return score, reasons


class SkillRouter:
    def __init__(
        self,
        skill_manager: SkillManager,
        llm_provider: Any = None,
        *,
        config: Any = None,
    ) -> None:
        self._skills = skill_manager
        self._llm_provider = llm_provider
        self._min_confidence = 0.6
        self._min_margin = 0.2
        if config is not None and hasattr(config, "get"):
            self._min_confidence = float(config.get("router.min_confidence", 0.6))
            self._min_margin = float(config.get("router.min_margin", 0.2))

    @staticmethod
    def _extract_directive(message: str) -> Tuple[Optional[str], str]:
        text = str(message or "")
        m = _DIRECTIVE_RE.search(text)
        if not m:
            return None, text.strip()
        sid = m.group(1).strip()
        cleaned = (text[: m.start()].rstrip() + " " + text[m.end() :].lstrip()).strip()
        return sid, cleaned

    async def route(self, message: str) -> SkillRouteDecision:
        requested, cleaned = self._extract_directive(message)
        if requested:
            return SkillRouteDecision(
                skill_id=requested,
                confidence=1.0,
                reason="explicit directive",
                cleaned_message=cleaned,
            )

        # Enabled skills only for auto-detect
        enabled_manifests = await self._skills.enabled_skill_manifests()
        if not enabled_manifests:
            return SkillRouteDecision(
                skill_id=None, confidence=0.0, reason="no enabled skills", cleaned_message=cleaned
            )

        scored: List[Tuple[str, float, str]] = []
        for manifest in enabled_manifests:
            score, reasons = score_manifest(manifest, cleaned)
            if score > 0:
                scored.append((manifest.id, score, ", ".join(reasons) or "matched"))

        if not scored:
            return SkillRouteDecision(
                skill_id=None, confidence=0.0, reason="no trigger matches", cleaned_message=cleaned
            )

        # Stable on ties: higher score first, then id
        scored.sort(key=lambda t: (-t[1], t[0]))
        best_id, best_score, best_reason = scored[0]

        # Clear winner?
        second_score = scored[1][1] if len(scored) > 1 else 0.0
        if (
            best_score >= self._min_confidence - _SCORE_EPSILON
            and (best_score - second_score) >= self._min_margin - _SCORE_EPSILON
        ):
            return SkillRouteDecision(
                skill_id=best_id, confidence=best_score, reason=best_reason, cleaned_message=cleaned
            )

        # Ambiguous: best-effort LLM tie-breaker
        skill_id = await self._llm_pick(cleaned, enabled_manifests)
        if skill_id:
            return SkillRouteDecision(
                skill_id=skill_id,
                confidence=0.55,
                reason="llm_tiebreak",
                cleaned_message=cleaned,
            )

        return SkillRouteDecision(
            skill_id=best_id,
            confidence=best_score,
            reason=f"ambiguous_fallback: {best_reason}",
            cleaned_message=cleaned,
        )

    async def _llm_pick(self, message: str, skills: List[SkillManifest]) -> Optional[str]:
        llm = getattr(self._llm_provider, "llm", None) if self._llm_provider else None
        if llm is None:
            return None

        known = {s.id for s in skills}
        items = [{"id": s.id, "name": s.name, "description": s.description} for s in skills]
        prompt = {
            "task": "Pick the single best skill_id for the user request, or null if none apply.",
            "skills": items,
            "request": message,
            "output_json_schema": {"skill_id": "string|null"},
        }

        try:
            resp = await llm.ainvoke(
                [
                    SystemMessage(
                        content=(
                            "You are an intent router for assistant skills. "
                            "Return ONLY valid JSON matching the schema."
                        )
                    ),
                    HumanMessage(content=json.dumps(prompt, ensure_ascii=False)),
                ]
            )
            text = resp.content if hasattr(resp, "content") else str(resp)
            start = text.find("{")
            end = text.rfind("}") + 1
            if start < 0 or end <= start:
                return None
            sid = json.loads(text[start:end]).get("skill_id")
        except Exception as e:
            # Tie-breaking is optional; fall back to trigger scores.
            logger.debug(f"SkillRouter LLM pick failed: {e}")
            return None

        sid = str(sid).strip() if sid is not None else ""
        if sid not in known:
            if sid:
                logger.debug(f"SkillRouter LLM picked unknown skill '{sid}', ignoring")
            return None
        return sid
