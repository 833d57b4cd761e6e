"""
ReviewEngine - apply the checklist's automated rules to a diff.

Only added lines are reviewed. Findings carry the checklist category of
the rule that produced them so reports can be grouped the same way the
checklist is.
"""

from __future__ import annotations

import fnmatch
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from pyreview.checklist import Checklist
from pyreview.review.diff import FileDiff, parse_unified_diff
from pyreview.review.rules import LineContext, Rule, rules_by_id, severity_rank
from pyreview.review.secrets import redact_secrets

_SUPPRESS_RE = re.compile(r"#\s*(?:noqa\b|pyreview:\s*ignore(?:\[(?P<ids>[^\]]*)\])?)", re.IGNORECASE)


def suppressed_rules(text: str) -> Optional[set[str]]:
    """
    Rules silenced by an inline marker.

    Returns None when nothing is suppressed, an empty set when every rule is.
    """
    m = _SUPPRESS_RE.search(text)
    if not m:
        return None
    ids = m.group("ids")
    if not ids:
        return set()
    return {i.strip() for i in ids.split(",") if i.strip()}


@dataclass(frozen=True)
class Finding:
    rule_id: str
    category: str
    severity: str
    message: str
    path: str
    line: int
    snippet: str = ""
    checklist_items: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "category": self.category,
            "severity": self.severity,
            "message": self.message,
            "path": self.path,
            "line": self.line,
            "snippet": self.snippet,
            "checklist_items": list(self.checklist_items),
        }


@dataclass
class ReviewReport:
    findings: List[Finding] = field(default_factory=list)
    files_reviewed: List[str] = field(default_factory=list)
    files_skipped: List[str] = field(default_factory=list)
    checklist: Optional[Checklist] = None
    truncated: bool = False

    def by_category(self) -> Dict[str, List[Finding]]:
        out: Dict[str, List[Finding]] = {}
        for f in self.findings:
            out.setdefault(f.category, []).append(f)
        return out

    def counts(self) -> Dict[str, int]:
        c = Counter(f.severity for f in self.findings)
        return {"error": c.get("error", 0), "warning": c.get("warning", 0), "info": c.get("info", 0)}

    @property
    def has_errors(self) -> bool:
        return any(f.severity == "error" for f in self.findings)

    def at_or_above(self, severity: str) -> List[Finding]:
        floor = severity_rank(severity)
        return [f for f in self.findings if severity_rank(f.severity) >= floor]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "files_reviewed": len(self.files_reviewed),
                "findings": len(self.findings),
                "truncated": self.truncated,
                **self.counts(),
            },
            "files_reviewed": list(self.files_reviewed),
            "files_skipped": list(self.files_skipped),
            "findings": [f.to_dict() for f in self.findings],
        }


class ReviewEngine:
    def __init__(
        self,
        checklist: Optional[Checklist] = None,
        rules: Optional[Sequence[Rule]] = None,
        config: Any = None,
    ) -> None:
        self._checklist = checklist
        self._include: List[str] = ["*.py"]
        self._exclude: List[str] = []
        self._max_findings = 500
        self._max_line_length = 100
        min_severity = "info"
        disabled: Iterable[str] = ()

        if config is not None and hasattr(config, "get"):
            self._include = list(config.get("review.include", self._include))
            self._exclude = list(config.get("review.exclude", self._exclude))
            self._max_findings = int(config.get("review.max_findings", self._max_findings))
            self._max_line_length = int(config.get("review.max_line_length", self._max_line_length))
            min_severity = config.get("review.min_severity", min_severity)
            disabled = config.get("review.disabled_rules", disabled)

        self._min_rank = severity_rank(min_severity)
        disabled_ids = set(disabled)
        known = rules_by_id(rules)
        self._rules = [
            r
            for r in known.values()
            if r.id not in disabled_ids and severity_rank(r.severity) >= self._min_rank
        ]
        unknown = disabled_ids - set(known)
        if unknown:
            logger.warning(f"Unknown rule id(s) in review.disabled_rules: {', '.join(sorted(unknown))}")

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def wants(self, path: str) -> bool:
        name = path.rsplit("/", 1)[-1]
        if any(fnmatch.fnmatch(path, p) or fnmatch.fnmatch(name, p) for p in self._exclude):
            return False
        return any(fnmatch.fnmatch(path, p) or fnmatch.fnmatch(name, p) for p in self._include)

    def review_diff(self, diff_text: str) -> ReviewReport:
        """
        Review the added lines of a unified diff.

        Raises:
            DiffParseError: when the diff is malformed
        """
        return self.review_files(parse_unified_diff(diff_text))

    def review_files(self, files: Iterable[FileDiff]) -> ReviewReport:
        report = ReviewReport(checklist=self._checklist)
        findings: List[Finding] = []

        for fd in files:
            if fd.is_deleted or fd.is_binary or not self.wants(fd.path):
                report.files_skipped.append(fd.path)
                continue
            report.files_reviewed.append(fd.path)
            for hunk in fd.hunks:
                new_side = [ln for ln in hunk.lines if ln.kind != "-"]
                for i, ln in enumerate(new_side):
                    if not ln.added or ln.new_lineno is None:
                        continue
                    nxt = new_side[i + 1].text if i + 1 < len(new_side) else None
                    findings.extend(self._check_line(fd.path, ln.new_lineno, ln.text, nxt))

        return self._finish(report, findings)

    def review_source(self, path: str, text: str) -> ReviewReport:
        """Review every line of a whole file as if it had just been added."""
        report = ReviewReport(checklist=self._checklist)
        if not self.wants(path):
            report.files_skipped.append(path)
            return report

        report.files_reviewed.append(path)
        lines = (text or "").splitlines()
        findings: List[Finding] = []
        for i, line in enumerate(lines):
            nxt = lines[i + 1] if i + 1 < len(lines) else None
            findings.extend(self._check_line(path, i + 1, line, nxt))
        return self._finish(report, findings)

    def _check_line(self, path: str, lineno: int, text: str, next_text: Optional[str]) -> List[Finding]:
        silenced = suppressed_rules(text)
        if silenced is not None and not silenced:
            return []

        ctx = LineContext(path=path, lineno=lineno, next_text=next_text, max_line_length=self._max_line_length)
        out: List[Finding] = []
        for rule in self._rules:
            if silenced and rule.id in silenced:
                continue
            if not rule.applies(path) or not rule.matches(text, ctx):
                continue
            items: Tuple[str, ...] = ()
            if self._checklist is not None:
                items = tuple(item.id for item in self._checklist.items_for_rule(rule.id))
            out.append(
                Finding(
                    rule_id=rule.id,
                    category=rule.category,
                    severity=rule.severity,
                    message=rule.message,
                    path=path,
                    line=lineno,
                    snippet=redact_secrets(text.strip())[:200],
                    checklist_items=items,
                )
            )
        return out

    def _finish(self, report: ReviewReport, findings: List[Finding]) -> ReviewReport:
        findings.sort(key=lambda f: (f.path, f.line, f.rule_id))
        if len(findings) > self._max_findings:
            logger.warning(f"Review produced {len(findings)} findings, keeping the first {self._max_findings}")
            findings = findings[: self._max_findings]
            report.truncated = True
        report.findings = findings
        logger.debug(
            f"Reviewed {len(report.files_reviewed)} file(s), skipped {len(report.files_skipped)}, "
            f"{len(findings)} finding(s)"
        )
        return report
