"""
Line-level review rules, grouped by checklist category.

Each rule looks at one source line (plus the line after it) and never
parses Python; anything needing real analysis is left to the manual part
of the checklist and to the external tools the guide recommends.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional

from pyreview.review.secrets import contains_secret

SEVERITIES = ("info", "warning", "error")

CATEGORIES = (
    "style",
    "naming",
    "error_handling",
    "security",
    "performance",
    "testing",
    "documentation",
)


def severity_rank(severity: str) -> int:
    try:
        return SEVERITIES.index(str(severity).strip().lower())
    except ValueError:
        raise ValueError(f"unknown severity: {severity!r} (expected one of {', '.join(SEVERITIES)})") from None


def is_test_path(path: str) -> bool:
    p = PurePosixPath(str(path).replace("\\", "/"))
    name = p.name
    if name == "conftest.py" or name.startswith("test_") or name.endswith("_test.py"):
        return True
    return any(part in ("tests", "test") for part in p.parts[:-1])


_STRING_RE = re.compile(r"""(?P<q>'''|\"\"\"|'|")(?:\\.|(?!(?P=q)).)*(?P=q)""")


def code_only(text: str) -> str:
    """Blank out string literal contents and drop a trailing comment."""
    masked = _STRING_RE.sub(lambda m: m.group("q") * 2, text)
    hash_at = masked.find("#")
    if hash_at >= 0:
        masked = masked[:hash_at]
    return masked.rstrip()


@dataclass(frozen=True)
class LineContext:
    path: str
    lineno: int
    next_text: Optional[str] = None
    max_line_length: int = 100

    @property
    def in_tests(self) -> bool:
        return is_test_path(self.path)


LineCheck = Callable[[str, LineContext], bool]


@dataclass(frozen=True)
class Rule:
    id: str
    category: str
    severity: str
    message: str
    pattern: Optional[re.Pattern[str]] = None
    check: Optional[LineCheck] = None
    # "code": match against the line with strings and comments blanked out
    target: str = "code"
    tests: Optional[bool] = None  # True: test files only, False: never in tests

    def applies(self, path: str) -> bool:
        if self.tests is None:
            return True
        return is_test_path(path) == self.tests

    def matches(self, text: str, ctx: LineContext) -> bool:
        subject = code_only(text) if self.target == "code" else text
        if self.pattern is not None and not self.pattern.search(subject):
            return False
        if self.check is not None and not self.check(subject, ctx):
            return False
        return self.pattern is not None or self.check is not None


def _too_long(text: str, ctx: LineContext) -> bool:
    return len(text) > ctx.max_line_length


_UNITTEST_HOOKS = {"setUp", "tearDown", "setUpClass", "tearDownClass", "setUpModule", "tearDownModule"}
_CAMEL_DEF_RE = re.compile(r"^\s*(?:async\s+)?def\s+(?P<name>_*[a-z]+[A-Z]\w*)\s*\(")


def _camel_def(text: str, ctx: LineContext) -> bool:
    m = _CAMEL_DEF_RE.search(text)
    return bool(m) and m.group("name") not in _UNITTEST_HOOKS


def _swallowed(text: str, ctx: LineContext) -> bool:
    # `except ...: pass` on one line, or `except ...:` followed by `pass`
    if re.search(r":\s*(pass|\.\.\.)\s*$", text):
        return True
    return ctx.next_text is not None and re.match(r"^\s*(pass|\.\.\.)\s*(#.*)?$", ctx.next_text) is not None


_PUBLIC_DEF_RE = re.compile(r"^\s*(?:async\s+)?def\s+[A-Za-z]\w*\s*\(.*\)\s*(?:->.+)?:\s*$")


def _missing_docstring(text: str, ctx: LineContext) -> bool:
    if ctx.next_text is None or not _PUBLIC_DEF_RE.match(text):
        return False
    return not re.match(r"""^\s*[rbuRBU]?('''|\"\"\"|'|")""", ctx.next_text)


def _unsafe_yaml_load(text: str, ctx: LineContext) -> bool:
    return "SafeLoader" not in text and "CSafeLoader" not in text


def _secret(text: str, ctx: LineContext) -> bool:
    return contains_secret(text)


RULES: List[Rule] = [
    # style
    Rule(
        "style-line-too-long", "style", "info",
        "Line exceeds the configured maximum length",
        check=_too_long, target="raw",
    ),
    Rule(
        "style-trailing-whitespace", "style", "info",
        "Trailing whitespace",
        pattern=re.compile(r"\S[ \t]+$"), target="raw",
    ),
    Rule(
        "style-tab-indent", "style", "warning",
        "Indent with spaces, not tabs",
        pattern=re.compile(r"^\t"), target="raw",
    ),
    Rule(
        "style-wildcard-import", "style", "warning",
        "Wildcard import hides where names come from",
        pattern=re.compile(r"^\s*from\s+\S+\s+import\s+\*"),
    ),
    Rule(
        "style-multiple-imports", "style", "info",
        "Put each import on its own line",
        pattern=re.compile(r"^\s*import\s+[\w.]+(?:\s+as\s+\w+)?\s*,"),
    ),
    Rule(
        "style-none-comparison", "style", "warning",
        "Compare to None with `is` / `is not`",
        pattern=re.compile(r"[=!]=\s*None\b|\bNone\s*[=!]="),
    ),
    Rule(
        "style-bool-comparison", "style", "info",
        "Do not compare booleans to True/False with ==",
        pattern=re.compile(r"[=!]=\s*(?:True|False)\b"),
    ),
    Rule(
        "style-type-comparison", "style", "info",
        "Use isinstance() instead of comparing type()",
        pattern=re.compile(r"\btype\([^()]*\)\s*(?:==|!=|is\b)"),
    ),
    Rule(
        "style-mutable-default", "style", "warning",
        "Mutable default argument is shared between calls",
        pattern=re.compile(r"\bdef\s+\w+\s*\(.*=\s*(?:\[\]|\{\}|set\(\)|list\(\)|dict\(\))\s*[,)]"),
    ),
    Rule(
        "style-print-call", "style", "info",
        "Use logging instead of print() outside scripts and tests",
        pattern=re.compile(r"(?<![\w.])print\s*\("), tests=False,
    ),
    # naming
    Rule(
        "naming-camelcase-function", "naming", "warning",
        "Function names should be snake_case",
        check=_camel_def,
    ),
    Rule(
        "naming-lowercase-class", "naming", "warning",
        "Class names should be PascalCase",
        pattern=re.compile(r"^\s*class\s+_*[a-z]\w*\s*[(:]"),
    ),
    Rule(
        "naming-ambiguous-name", "naming", "info",
        "Avoid `l`, `O` and `I` as names",
        pattern=re.compile(r"(?:^|[\s,(])(?:l|O|I)\s*=(?!=)|\bfor\s+(?:l|O|I)\s+in\b|\blambda\s+(?:l|O|I)\s*:"),
    ),
    Rule(
        "naming-builtin-shadow", "naming", "info",
        "Assignment shadows a builtin name",
        pattern=re.compile(
            r"^\s*(?:list|dict|str|int|id|type|input|max|min|sum|filter|map|len|object|hash|set|format|iter|next|all|any)\s*=(?!=)"
        ),
    ),
    # error handling
    Rule(
        "error-bare-except", "error_handling", "error",
        "Bare `except:` also catches KeyboardInterrupt and SystemExit",
        pattern=re.compile(r"^\s*except\s*:"),
    ),
    Rule(
        "error-broad-except", "error_handling", "warning",
        "Catch specific exceptions instead of Exception/BaseException",
        pattern=re.compile(r"^\s*except\s+\(?\s*(?:Exception|BaseException)\b"),
    ),
    Rule(
        "error-swallowed-exception", "error_handling", "error",
        "Exception is silently swallowed",
        pattern=re.compile(r"^\s*except\b.*:"), check=_swallowed,
    ),
    Rule(
        "error-generic-raise", "error_handling", "info",
        "Raise a specific exception type instead of Exception",
        pattern=re.compile(r"\braise\s+(?:Exception|BaseException)\s*\("),
    ),
    Rule(
        "error-assert-validation", "error_handling", "warning",
        "assert is stripped under -O; raise an exception for validation",
        pattern=re.compile(r"^\s*assert\b"), tests=False,
    ),
    # security
    Rule(
        "security-eval-exec", "security", "error",
        "eval()/exec() on dynamic input allows code execution",
        pattern=re.compile(r"(?<![\w.])(?:eval|exec)\s*\("),
    ),
    Rule(
        "security-shell-true", "security", "error",
        "subprocess with shell=True is vulnerable to shell injection",
        pattern=re.compile(r"\bshell\s*=\s*True\b"),
    ),
    Rule(
        "security-os-system", "security", "warning",
        "os.system/os.popen run through the shell; use subprocess with a list",
        pattern=re.compile(r"\bos\.(?:system|popen)\s*\("),
    ),
    Rule(
        "security-pickle-load", "security", "warning",
        "Unpickling untrusted data allows code execution",
        pattern=re.compile(r"\b(?:pickle|cPickle|dill|marshal)\.loads?\s*\("),
    ),
    Rule(
        "security-yaml-load", "security", "warning",
        "yaml.load without SafeLoader; use yaml.safe_load",
        pattern=re.compile(r"\byaml\.(?:load|load_all)\s*\("), check=_unsafe_yaml_load,
    ),
    Rule(
        "security-hardcoded-secret", "security", "error",
        "Possible hardcoded credential",
        check=_secret, target="raw",
    ),
    Rule(
        "security-sql-formatting", "security", "warning",
        "SQL built with string formatting; use query parameters",
        pattern=re.compile(
            r"\.execute(?:many)?\s*\(\s*(?:f[\"']|[\"'].*[\"']\s*(?:%|\+)|[\"'].*[\"']\s*\.format\s*\()",
            re.IGNORECASE,
        ),
        target="raw",
    ),
    Rule(
        "security-weak-hash", "security", "info",
        "MD5/SHA1 are unsuitable for security purposes",
        pattern=re.compile(r"\bhashlib\.(?:md5|sha1)\s*\("),
    ),
    Rule(
        "security-tls-verify-disabled", "security", "error",
        "TLS certificate verification is disabled",
        pattern=re.compile(r"\bverify\s*=\s*False\b"),
    ),
    Rule(
        "security-insecure-tempfile", "security", "warning",
        "tempfile.mktemp is race-prone; use mkstemp or NamedTemporaryFile",
        pattern=re.compile(r"\btempfile\.mktemp\s*\("),
    ),
    # performance
    Rule(
        "perf-range-len", "performance", "info",
        "Iterate directly or use enumerate() instead of range(len(...))",
        pattern=re.compile(r"\bfor\s+\w+\s+in\s+range\s*\(\s*len\s*\("),
    ),
    Rule(
        "perf-dict-keys-iteration", "performance", "info",
        "Iterate the dict directly instead of .keys()",
        pattern=re.compile(r"\bin\s+[\w.\[\]]+\.keys\(\)\s*[:)\]]"),
    ),
    Rule(
        "perf-list-in-any-all", "performance", "info",
        "Pass a generator to any()/all() so they can short-circuit",
        pattern=re.compile(r"\b(?:any|all)\s*\(\s*\["),
    ),
    Rule(
        "perf-sorted-first", "performance", "info",
        "Use min()/max() instead of sorting to take one element",
        pattern=re.compile(r"\bsorted\s*\(.*\)\s*\[\s*-?[01]\s*\]"),
    ),
    # testing
    Rule(
        "testing-debugger-left", "testing", "error",
        "Debugger call left in code",
        pattern=re.compile(r"(?<![\w.])breakpoint\s*\(\)|\b(?:i?pdb)\.set_trace\s*\(|^\s*import\s+i?pdb\b"),
    ),
    Rule(
        "testing-skip-without-reason", "testing", "warning",
        "Skipped test without a reason",
        pattern=re.compile(r"@(?:pytest\.mark\.skip|unittest\.skip)\s*(?:\(\s*\))?\s*$"),
        tests=True,
    ),
    Rule(
        "testing-sleep-in-test", "testing", "warning",
        "time.sleep in tests makes them slow and flaky",
        pattern=re.compile(r"\btime\.sleep\s*\("), tests=True,
    ),
    Rule(
        "testing-unittest-assert", "testing", "info",
        "Prefer plain assert statements with pytest",
        pattern=re.compile(r"\bself\.assert(?:Equal|NotEqual|True|False|Is|IsNone|IsNotNone|In|NotIn)\s*\("),
        tests=True,
    ),
    Rule(
        "testing-assert-tuple", "testing", "error",
        "assert on a tuple is always true",
        pattern=re.compile(r"^\s*assert\s*\(.+,.+\)\s*$"),
    ),
    # documentation
    Rule(
        "docs-missing-docstring", "documentation", "info",
        "Public function without a docstring",
        check=_missing_docstring, target="raw", tests=False,
    ),
    Rule(
        "docs-todo-marker", "documentation", "info",
        "TODO/FIXME left in code; link an issue or resolve it",
        pattern=re.compile(r"#\s*(?:TODO|FIXME|XXX)\b(?!\s*\()"), target="raw",
    ),
    Rule(
        "docs-commented-out-code", "documentation", "info",
        "Commented-out code; delete it, version control remembers",
        pattern=re.compile(r"^\s*#\s*(?:import\s+\w|from\s+[\w.]+\s+import\s|def\s+\w+\s*\(|class\s+\w+\s*[(:]|return\s)"),
        target="raw",
    ),
]


def rules_by_id(rules: Optional[Iterable[Rule]] = None) -> Dict[str, Rule]:
    return {r.id: r for r in (RULES if rules is None else rules)}
