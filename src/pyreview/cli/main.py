"""
pyreview - command line entry point.

Routes trigger phrases to skills, manages installed skills, prints the
review checklist and reviews diffs.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from pyreview import __version__
from pyreview.checklist import Checklist, load_checklist
from pyreview.config import ConfigManager
from pyreview.errors import PyReviewError
from pyreview.review import ReviewEngine, SEVERITIES, render_json, render_markdown
from pyreview.skills import SkillDispatcher, SkillManager, SkillRouter

DEFAULT_SKILL = "python-code-review"
CHECKLIST_FILE = "CHECKLIST.md"

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging."""
    # Remove default handler
    logger.remove()

    # Console handler
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level="DEBUG" if debug else "WARNING",
        colorize=True,
    )

    # File handler
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyreview",
        description="Python code review skill: route requests, manage skills, review diffs",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"pyreview {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    p_route = sub.add_parser("route", help="Match a request to a skill and list its documents")
    p_route.add_argument("phrase", nargs="+", help="Natural-language request")
    p_route.add_argument("--load", action="store_true", help="Print document contents too")
    p_route.add_argument("--json", action="store_true", help="Print the result as JSON")

    p_skills = sub.add_parser("skills", help="List, show, enable or disable skills")
    skills_sub = p_skills.add_subparsers(dest="skills_command", required=True)
    skills_sub.add_parser("list", help="List installed skills")
    for name in ("show", "enable", "disable"):
        sp = skills_sub.add_parser(name, help=f"{name.capitalize()} a skill")
        sp.add_argument("skill_id")

    p_check = sub.add_parser("checklist", help="Print the review checklist")
    p_check.add_argument("--category", default=None, help="Only this category")
    p_check.add_argument("--search", default=None, help="Find checklist items by keywords")
    p_check.add_argument("--skill", default=DEFAULT_SKILL, help="Skill providing the checklist")

    p_review = sub.add_parser("review", help="Review a unified diff")
    p_review.add_argument("diff", nargs="?", default="-", help="Diff file, '-' for stdin")
    p_review.add_argument("--format", choices=["markdown", "json"], default="markdown")
    p_review.add_argument(
        "--fail-on",
        choices=list(SEVERITIES) + ["never"],
        default="error",
        help="Exit 1 when findings at or above this severity exist",
    )
    p_review.add_argument("--no-manual", action="store_true", help="Omit manual checklist items")
    p_review.add_argument("--skill", default=DEFAULT_SKILL, help="Skill providing the checklist")

    return parser


async def _load_checklist(manager: SkillManager, skill_id: str) -> Checklist:
    for path in await manager.reference_paths(skill_id):
        if path.name == CHECKLIST_FILE:
            return load_checklist(path)
    raise PyReviewError(f"skill '{skill_id}' does not ship a {CHECKLIST_FILE}")


async def _cmd_route(args: argparse.Namespace, config: ConfigManager, manager: SkillManager) -> int:
    dispatcher = SkillDispatcher(manager, SkillRouter(manager, config=config))
    result = await dispatcher.dispatch(" ".join(args.phrase), load=args.load)

    if args.json:
        data = result.to_dict()
        if args.load:
            data["contents"] = result.contents
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return EXIT_OK if result.matched else EXIT_FINDINGS

    if not result.matched:
        print(f"No skill matched ({result.reason})")
        return EXIT_FINDINGS

    print(f"skill: {result.skill_id}  confidence={result.confidence:.2f}  ({result.reason})")
    for path in result.documents:
        print(f"  {path}")
    for name, text in result.contents.items():
        print(f"\n===== {name} =====\n{text}")
    return EXIT_OK


async def _cmd_skills(args: argparse.Namespace, manager: SkillManager) -> int:
    if args.skills_command == "list":
        for s in await manager.list_skills():
            mark = "x" if s["enabled"] else " "
            print(f"[{mark}] {s['id']:<24} {s['version']:<8} {s['source_kind'] or '-':<8} {s['description']}")
        return EXIT_OK

    if args.skills_command == "show":
        manifest = await manager.get_manifest(args.skill_id)
        if manifest is None:
            print(f"skill not found: {args.skill_id}", file=sys.stderr)
            return EXIT_ERROR
        print(f"{manifest.name} ({manifest.id} {manifest.version})")
        if manifest.description:
            print(manifest.description)
        print(f"enabled: {await manager.is_enabled(manifest.id)}")
        if manifest.depends_on:
            print(f"depends on: {', '.join(manifest.depends_on)}")
        if manifest.triggers.keywords:
            print(f"keywords: {', '.join(manifest.triggers.keywords)}")
        print("documents:")
        for path in await manager.reference_paths(manifest.id):
            print(f"  {path}")
        return EXIT_OK

    if args.skills_command == "enable":
        result = await manager.enable(args.skill_id)
    else:
        result = await manager.disable(args.skill_id)

    if not result["success"]:
        print(result["error"], file=sys.stderr)
        return EXIT_ERROR
    state = "enabled" if result["enabled"] else "disabled"
    print(f"{result['skill_id']}: {state}")
    return EXIT_OK


async def _cmd_checklist(args: argparse.Namespace, manager: SkillManager) -> int:
    checklist = await _load_checklist(manager, args.skill)

    if args.search:
        for item in checklist.search(args.search, top_k=10):
            print(f"{item.id:<20} {item.text}")
        return EXIT_OK

    categories = checklist.categories
    if args.category:
        cat = checklist.get(args.category)
        if cat is None:
            print(
                f"unknown category: {args.category} (known: {', '.join(categories)})",
                file=sys.stderr,
            )
            return EXIT_ERROR
        categories = [cat.key]

    for key in categories:
        print(f"## {checklist.title_of(key)}")
        for item in checklist.items(key):
            auto = f"  [auto: {', '.join(item.rule_ids)}]" if item.automated else ""
            print(f"- [ ] {item.text}{auto}")
        print()
    return EXIT_OK


async def _cmd_review(args: argparse.Namespace, config: ConfigManager, manager: SkillManager) -> int:
    checklist = await _load_checklist(manager, args.skill)

    if args.diff == "-":
        diff_text = sys.stdin.read()
    else:
        diff_text = Path(args.diff).read_text(encoding="utf-8")

    engine = ReviewEngine(checklist, config=config)
    report = engine.review_diff(diff_text)

    if args.format == "json":
        print(render_json(report))
    else:
        print(render_markdown(report, include_manual=not args.no_manual), end="")

    if args.fail_on != "never" and report.at_or_above(args.fail_on):
        return EXIT_FINDINGS
    return EXIT_OK


async def run(args: argparse.Namespace, config: ConfigManager) -> int:
    manager = SkillManager(config)
    await manager.initialize()

    if args.command == "route":
        return await _cmd_route(args, config, manager)
    if args.command == "skills":
        return await _cmd_skills(args, manager)
    if args.command == "checklist":
        return await _cmd_checklist(args, manager)
    return await _cmd_review(args, config, manager)


def cli(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    config = ConfigManager(args.config)
    config.load()
    if args.debug:
        config.set("app.debug", True)
    setup_logging(bool(config.get("app.debug", False)), config.get("app.log_file"))

    try:
        return asyncio.run(run(args, config))
    except (PyReviewError, OSError, ValueError) as e:
        logger.debug(f"Command failed: {e!r}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
