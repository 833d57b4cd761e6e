"""
Review checklist parser.

Parses `CHECKLIST.md` into categories and items. `## <Category>` headings
open a category, list items under it become checklist items. An item can
name the automated rules that cover it with a trailing HTML comment:

    - [ ] No bare `except:` clauses <!-- rules: error-bare-except -->
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

_HEADING_RE = re.compile(r"^(?P<hashes>#{1,6})\s+(?P<title>.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_ITEM_RE = re.compile(r"^\s{0,3}[-*+]\s+(?:\[(?P<mark>[ xX])\]\s+)?(?P<text>.+?)\s*$")
_RULES_RE = re.compile(r"<!--\s*rules?\s*:\s*(?P<ids>[^>]*?)\s*-->", re.IGNORECASE)


def _tokens(text: str) -> set[str]:
    return {t for t in re.findall(r"[a-z0-9]+", (text or "").lower()) if len(t) > 2}


def slugify(title: str) -> str:
    """`Error Handling` -> `error_handling`."""
    slug = re.sub(r"[^a-z0-9]+", "_", (title or "").lower()).strip("_")
    return slug or "general"


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    category: str
    text: str
    rule_ids: Tuple[str, ...] = ()

    @property
    def automated(self) -> bool:
        return bool(self.rule_ids)


@dataclass
class ChecklistCategory:
    key: str
    title: str
    items: List[ChecklistItem] = field(default_factory=list)


class Checklist:
    def __init__(self, categories: List[ChecklistCategory], title: str = ""):
        self.title = title
        self._categories: Dict[str, ChecklistCategory] = {c.key: c for c in categories}

    @classmethod
    def parse_markdown(cls, text: str) -> "Checklist":
        title = ""
        categories: List[ChecklistCategory] = []
        current: Optional[ChecklistCategory] = None
        in_code = False

        for line in (text or "").splitlines():
            if _FENCE_RE.match(line):
                in_code = not in_code
                continue
            if in_code:
                continue

            m = _HEADING_RE.match(line)
            if m:
                level = len(m.group("hashes"))
                heading = m.group("title").strip()
                if level == 1:
                    title = title or heading
                elif level == 2:
                    key = slugify(heading)
                    existing = next((c for c in categories if c.key == key), None)
                    if existing is None:
                        existing = ChecklistCategory(key=key, title=heading)
                        categories.append(existing)
                    current = existing
                # Deeper headings group items visually but stay in the category
                continue

            if current is None:
                continue

            mi = _ITEM_RE.match(line)
            if not mi:
                continue

            raw = mi.group("text")
            rule_ids: Tuple[str, ...] = ()
            mr = _RULES_RE.search(raw)
            if mr:
                rule_ids = tuple(r.strip() for r in mr.group("ids").split(",") if r.strip())
                raw = _RULES_RE.sub("", raw).strip()
            if not raw:
                continue

            current.items.append(
                ChecklistItem(
                    id=f"{current.key}.{len(current.items) + 1}",
                    category=current.key,
                    text=raw,
                    rule_ids=rule_ids,
                )
            )

        return cls(categories, title=title)

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def get(self, category: str) -> Optional[ChecklistCategory]:
        return self._categories.get(slugify(category))

    def title_of(self, category: str) -> str:
        cat = self.get(category)
        return cat.title if cat else category.replace("_", " ").title()

    def items(self, category: Optional[str] = None) -> List[ChecklistItem]:
        if category is not None:
            cat = self.get(category)
            return list(cat.items) if cat else []
        return [item for cat in self._categories.values() for item in cat.items]

    def items_for_rule(self, rule_id: str) -> List[ChecklistItem]:
        return [item for item in self.items() if rule_id in item.rule_ids]

    def manual_items(self, category: Optional[str] = None) -> List[ChecklistItem]:
        """Items no automated rule covers."""
        return [item for item in self.items(category) if not item.automated]

    def search(self, query: str, top_k: int = 5) -> List[ChecklistItem]:
        q_tokens = _tokens(query)
        if not q_tokens:
            return []

        scored: List[tuple[float, ChecklistItem]] = []
        for item in self.items():
            hay = _tokens(f"{item.category} {item.text}")
            score = len(q_tokens & hay) / len(q_tokens)
            if score > 0:
                scored.append((score, item))

        scored.sort(key=lambda x: x[0], reverse=True)
        return [item for _, item in scored[:top_k]]


def parse_checklist(text: str) -> Checklist:
    return Checklist.parse_markdown(text)


def load_checklist(path: Path) -> Checklist:
    return Checklist.parse_markdown(Path(path).read_text(encoding="utf-8"))
