"""
Unified diff parser.

Understands `git diff` output and plain `diff -u` output: file headers,
hunks, added/removed/context lines and the "No newline" marker.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from pyreview.errors import DiffParseError

_GIT_HEADER_RE = re.compile(r"^diff --git a/(?P<old>.+?) b/(?P<new>.+)$")
_HUNK_RE = re.compile(
    r"^@@ -(?P<os>\d+)(?:,(?P<oc>\d+))? \+(?P<ns>\d+)(?:,(?P<nc>\d+))? @@(?P<section>.*)$"
)
DEV_NULL = "/dev/null"


def _strip_prefix(path: str) -> str:
    # `+++ b/pkg/mod.py\t2024-01-01 ...` -> `pkg/mod.py`
    path = path.split("\t", 1)[0].strip()
    if path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    if path[:2] in ("a/", "b/"):
        path = path[2:]
    return path


@dataclass(frozen=True)
class DiffLine:
    kind: str  # "+", "-" or " "
    text: str
    new_lineno: Optional[int] = None
    old_lineno: Optional[int] = None

    @property
    def added(self) -> bool:
        return self.kind == "+"


@dataclass
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""
    lines: List[DiffLine] = field(default_factory=list)


@dataclass
class FileDiff:
    path: str
    old_path: Optional[str] = None
    is_new: bool = False
    is_deleted: bool = False
    is_binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)

    def added_lines(self) -> Iterator[DiffLine]:
        for hunk in self.hunks:
            for line in hunk.lines:
                if line.added:
                    yield line


def parse_unified_diff(text: str) -> List[FileDiff]:
    """
    Parse unified diff text into per-file diffs.

    Raises:
        DiffParseError: on a malformed hunk header or hunk lines outside a file
    """
    files: List[FileDiff] = []
    current: Optional[FileDiff] = None
    hunk: Optional[Hunk] = None
    # True between a `diff --git` line and its `+++` header
    awaiting_headers = False
    old_no = new_no = 0
    old_left = new_left = 0

    for idx, line in enumerate((text or "").splitlines(), start=1):
        if hunk is not None and (old_left > 0 or new_left > 0) and (line == "" or line[0] in "+- "):
            kind = line[:1] or " "
            body = line[1:]
            if kind == "+":
                hunk.lines.append(DiffLine("+", body, new_lineno=new_no))
                new_no += 1
                new_left -= 1
            elif kind == "-":
                hunk.lines.append(DiffLine("-", body, old_lineno=old_no))
                old_no += 1
                old_left -= 1
            else:
                hunk.lines.append(DiffLine(" ", body, new_lineno=new_no, old_lineno=old_no))
                new_no += 1
                old_no += 1
                new_left -= 1
                old_left -= 1
            continue

        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue

        m = _GIT_HEADER_RE.match(line)
        if m:
            current = FileDiff(path=m.group("new"), old_path=m.group("old"))
            files.append(current)
            hunk = None
            awaiting_headers = True
            continue

        if line.startswith("--- "):
            old = _strip_prefix(line[4:])
            if current is None or not awaiting_headers:
                # plain `diff -u` output has no `diff --git` line
                current = FileDiff(path=old, old_path=old)
                files.append(current)
                awaiting_headers = True
            if old == DEV_NULL:
                current.is_new = True
                current.old_path = None
            else:
                current.old_path = old
            hunk = None
            continue

        if line.startswith("+++ "):
            if current is None or not awaiting_headers:
                raise DiffParseError("'+++' header without a preceding '---' header", idx)
            new = _strip_prefix(line[4:])
            if new == DEV_NULL:
                current.is_deleted = True
                current.path = current.old_path or current.path
            else:
                current.path = new
            awaiting_headers = False
            continue

        if line.startswith("@@"):
            if current is None:
                raise DiffParseError("hunk header outside of a file diff", idx)
            mh = _HUNK_RE.match(line)
            if not mh:
                raise DiffParseError(f"malformed hunk header: {line!r}", idx)
            hunk = Hunk(
                old_start=int(mh.group("os")),
                old_count=int(mh.group("oc")) if mh.group("oc") is not None else 1,
                new_start=int(mh.group("ns")),
                new_count=int(mh.group("nc")) if mh.group("nc") is not None else 1,
                section=mh.group("section").strip(),
            )
            current.hunks.append(hunk)
            awaiting_headers = False
            old_no, new_no = hunk.old_start, hunk.new_start
            old_left, new_left = hunk.old_count, hunk.new_count
            continue

        if current is not None and awaiting_headers:
            if line.startswith("new file mode"):
                current.is_new = True
            elif line.startswith("deleted file mode"):
                current.is_deleted = True
            elif line.startswith("Binary files") or line.startswith("GIT binary patch"):
                current.is_binary = True
            elif line.startswith("rename from "):
                current.old_path = line[len("rename from "):].strip()
            elif line.startswith("rename to "):
                current.path = line[len("rename to "):].strip()
        # index lines, commit headers and prose are ignored

    return files
