"""Render review reports as markdown or JSON."""

from __future__ import annotations

import json
from typing import List

from pyreview.review.engine import Finding, ReviewReport
from pyreview.review.rules import CATEGORIES

_SEVERITY_LABEL = {"error": "ERROR", "warning": "WARN", "info": "INFO"}


def _category_order(report: ReviewReport) -> List[str]:
    order: List[str] = []
    if report.checklist is not None:
        order.extend(report.checklist.categories)
    for key in list(CATEGORIES) + [f.category for f in report.findings]:
        if key not in order:
            order.append(key)
    return order


def _title(report: ReviewReport, category: str) -> str:
    if report.checklist is not None:
        return report.checklist.title_of(category)
    return category.replace("_", " ").title()


def _finding_line(f: Finding) -> str:
    line = f"- **{_SEVERITY_LABEL.get(f.severity, f.severity.upper())}** `{f.path}:{f.line}` {f.message} (`{f.rule_id}`)"
    if f.snippet:
        snippet = f.snippet.replace("`", "'")
        line += f"\n  `{snippet}`"
    return line


def render_markdown(report: ReviewReport, *, include_manual: bool = True) -> str:
    counts = report.counts()
    out = [
        "# Python code review",
        "",
        f"Reviewed {len(report.files_reviewed)} file(s): "
        f"{counts['error']} error(s), {counts['warning']} warning(s), {counts['info']} info.",
    ]
    if report.truncated:
        out.append("")
        out.append("_Findings were truncated; raise `review.max_findings` to see all of them._")

    grouped = report.by_category()
    for category in _category_order(report):
        findings = grouped.get(category, [])
        manual = report.checklist.manual_items(category) if (include_manual and report.checklist) else []
        if not findings and not manual:
            continue

        out.append("")
        out.append(f"## {_title(report, category)}")
        out.append("")
        if findings:
            out.extend(_finding_line(f) for f in findings)
        else:
            out.append("No automated findings.")
        if manual:
            out.append("")
            out.append("Manual checks:")
            out.extend(f"- [ ] {item.text}" for item in manual)

    return "\n".join(out) + "\n"


def render_json(report: ReviewReport) -> str:
    data = report.to_dict()
    data["by_category"] = {k: len(v) for k, v in report.by_category().items()}
    return json.dumps(data, indent=2, ensure_ascii=False)
