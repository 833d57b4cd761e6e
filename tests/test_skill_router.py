import pytest

from conftest import write_skill
from pyreview.skills.manager import SkillManager
from pyreview.skills.router import SkillRouter


class FakeResponse:
    def __init__(self, content):
        self.content = content


class FakeLLM:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return FakeResponse(self.content)


class FakeProvider:
    def __init__(self, llm):
        self.llm = llm


async def _manager(skill_dirs, skills):
    builtin, user, state = skill_dirs
    for sid, lines in skills.items():
        write_skill(builtin, sid, [f"id: {sid}", f"name: {sid}", "enabled_by_default: true"] + lines)
    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()
    return mgr


@pytest.mark.asyncio
async def test_explicit_directive_wins(skill_dirs):
    mgr = await _manager(skill_dirs, {"python-review": ["triggers:", "  keywords: [review]"]})
    router = SkillRouter(mgr)

    decision = await router.route("please /skill docs-writer look at this review")
    assert decision.skill_id == "docs-writer"
    assert decision.confidence == 1.0
    assert decision.explicit
    assert decision.cleaned_message == "please look at this review"

    at = await router.route("@skill python-review")
    assert at.skill_id == "python-review"
    assert at.cleaned_message == ""


@pytest.mark.asyncio
async def test_keyword_clear_winner(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "python-review": ["triggers:", "  keywords: [review, python]"],
            "docs-writer": ["triggers:", "  keywords: [docs, readme]"],
        },
    )
    decision = await SkillRouter(mgr).route("Review my Python module")

    assert decision.skill_id == "python-review"
    assert decision.confidence == pytest.approx(0.7)
    assert decision.reason == "keyword_hits=2"
    assert not decision.explicit


@pytest.mark.asyncio
async def test_regex_triggers_add_score_and_bad_patterns_are_ignored(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "python-review": [
                "triggers:",
                "  keywords: [review]",
                "  regex: ['\\bpep ?8\\b', '([unclosed']",
            ],
        },
    )
    decision = await SkillRouter(mgr).route("review for pep8 issues")

    assert decision.skill_id == "python-review"
    # 1/1 keywords * 0.7 + 1/2 regexes * 0.3
    assert decision.confidence == pytest.approx(0.85)
    assert "regex_hits=1" in decision.reason


@pytest.mark.asyncio
async def test_no_match_and_no_enabled_skills(skill_dirs):
    mgr = await _manager(skill_dirs, {"python-review": ["triggers:", "  keywords: [review]"]})
    router = SkillRouter(mgr)

    miss = await router.route("what's the weather")
    assert miss.skill_id is None
    assert miss.reason == "no trigger matches"

    await mgr.disable("python-review")
    none_enabled = await router.route("review this")
    assert none_enabled.skill_id is None
    assert none_enabled.reason == "no enabled skills"


@pytest.mark.asyncio
async def test_ambiguous_falls_back_to_best_score(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "a-review": ["triggers:", "  keywords: [review]"],
            "b-review": ["triggers:", "  keywords: [review]"],
        },
    )
    decision = await SkillRouter(mgr).route("review it")

    assert decision.skill_id == "a-review"
    assert decision.reason.startswith("ambiguous_fallback")


@pytest.mark.asyncio
async def test_llm_breaks_ties(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "a-review": ["triggers:", "  keywords: [review]"],
            "b-review": ["triggers:", "  keywords: [review]"],
        },
    )
    llm = FakeLLM(content='Sure: {"skill_id": "b-review"}')
    decision = await SkillRouter(mgr, FakeProvider(llm)).route("review it")

    assert decision.skill_id == "b-review"
    assert decision.reason == "llm_tiebreak"
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_llm_unknown_pick_or_failure_is_ignored(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "a-review": ["triggers:", "  keywords: [review]"],
            "b-review": ["triggers:", "  keywords: [review]"],
        },
    )

    unknown = await SkillRouter(mgr, FakeProvider(FakeLLM(content='{"skill_id": "ghost"}'))).route("review")
    assert unknown.skill_id == "a-review"
    assert unknown.reason.startswith("ambiguous_fallback")

    failing = await SkillRouter(mgr, FakeProvider(FakeLLM(error=RuntimeError("boom")))).route("review")
    assert failing.skill_id == "a-review"


@pytest.mark.asyncio
async def test_min_confidence_from_config(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {"python-review": ["triggers:", "  keywords: [review, python, diff, checklist]"]},
    )

    class Cfg:
        def get(self, key, default=None):
            return {"router.min_confidence": 0.1, "router.min_margin": 0.1}.get(key, default)

    decision = await SkillRouter(mgr, config=Cfg()).route("review this")
    assert decision.skill_id == "python-review"
    assert decision.reason == "keyword_hits=1"

    default = await SkillRouter(mgr).route("review this")
    assert default.reason.startswith("ambiguous_fallback")


@pytest.mark.asyncio
async def test_margin_exactly_at_threshold_is_clear_winner(skill_dirs):
    mgr = await _manager(
        skill_dirs,
        {
            "a-lint": ["triggers:", "  keywords: [lint]"],
            "b-lint": ["triggers:", "  keywords: [lint, zzz]", "  regex: [lint, qqq]"],
        },
    )
    llm = FakeLLM(content='{"skill_id": "b-lint"}')

    # 0.7 vs 0.35 + 0.15: a 0.2 margin that float subtraction puts just below 0.2
    decision = await SkillRouter(mgr, FakeProvider(llm)).route("lint")

    assert decision.skill_id == "a-lint"
    assert decision.reason == "keyword_hits=1"
    assert decision.confidence == pytest.approx(0.7)
    assert llm.calls == []
