import json

import pytest

from conftest import write_skill
from pyreview.errors import ReferenceNotFoundError, SkillNotFoundError
from pyreview.skills.manager import BUILTIN_SKILLS_DIR, SkillManager


@pytest.mark.asyncio
async def test_skill_manager_defaults_and_dependency_block(skill_dirs):
    builtin, user, state = skill_dirs

    write_skill(
        builtin,
        "python-style",
        [
            "id: python-style",
            "name: Python Style",
            "enabled_by_default: true",
            "depends_on: []",
        ],
    )
    write_skill(
        builtin,
        "python-security",
        [
            "id: python-security",
            "name: Python Security",
            "enabled_by_default: false",
            "depends_on: [python-style]",
        ],
    )

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    skills = {s["id"]: s for s in await mgr.list_skills()}
    assert skills["python-style"]["enabled"] is True
    assert skills["python-security"]["enabled"] is False

    # State file should be created and include defaults.
    state_data = json.loads(state.read_text(encoding="utf-8"))
    assert state_data["enabled"]["python-style"] is True
    assert state_data["enabled"]["python-security"] is False

    # Enabling a skill enables its dependency chain.
    r = await mgr.enable("python-security")
    assert r["success"] is True
    assert await mgr.is_enabled("python-style") is True
    assert await mgr.is_enabled("python-security") is True

    # Disabling a dependency is blocked while a dependent is enabled.
    r2 = await mgr.disable("python-style")
    assert r2["success"] is False
    assert r2["blocked_by"] == ["python-security"]

    r3 = await mgr.disable("python-security")
    assert r3 == {"success": True, "skill_id": "python-security", "enabled": False}
    assert (await mgr.disable("python-style"))["success"] is True


@pytest.mark.asyncio
async def test_skill_manager_user_overrides_builtin(skill_dirs):
    builtin, user, state = skill_dirs

    write_skill(builtin, "demo", ["id: demo", "name: Demo Builtin", "enabled_by_default: true"])
    write_skill(user, "demo", ["id: demo", "name: Demo User", "enabled_by_default: false"])

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    skills = {s["id"]: s for s in await mgr.list_skills()}
    assert skills["demo"]["name"] == "Demo User"
    assert skills["demo"]["source_kind"] == "user"
    assert skills["demo"]["enabled"] is False


@pytest.mark.asyncio
async def test_enabled_state_survives_reload(skill_dirs):
    builtin, user, state = skill_dirs
    write_skill(builtin, "demo", ["id: demo", "name: Demo", "enabled_by_default: false"])

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()
    await mgr.enable("demo")

    fresh = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await fresh.initialize()
    assert await fresh.is_enabled("demo") is True


@pytest.mark.asyncio
async def test_invalid_manifests_are_skipped(skill_dirs):
    builtin, user, state = skill_dirs
    write_skill(builtin, "good", ["id: good", "name: Good"])
    write_skill(builtin, "no-id", ["name: Missing id"])
    write_skill(builtin, "escape", ["id: escape", "name: Escape", "references:", "  - path: ../../etc/passwd"])
    (builtin / "broken").mkdir(parents=True)
    (builtin / "broken" / "skill.yaml").write_text("id: [unclosed\n", encoding="utf-8")

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    assert [s["id"] for s in await mgr.list_skills()] == ["good"]


@pytest.mark.asyncio
async def test_json_manifest_is_discovered(skill_dirs):
    builtin, user, state = skill_dirs
    skill_dir = builtin / "from-json"
    skill_dir.mkdir(parents=True)
    (skill_dir / "skill.json").write_text(
        json.dumps({"id": "from-json", "name": "From JSON", "triggers": {"keywords": ["json"]}}),
        encoding="utf-8",
    )

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    manifest = await mgr.get_manifest("from-json")
    assert manifest is not None
    assert manifest.triggers.keywords == ["json"]
    assert manifest.source_file == skill_dir / "skill.json"


@pytest.mark.asyncio
async def test_reference_paths_in_manifest_order(skill_dirs):
    builtin, user, state = skill_dirs
    skill_dir = write_skill(
        builtin,
        "review",
        [
            "id: review",
            "name: Review",
            "references:",
            "  - path: docs/GUIDE.md",
            "  - path: CHECKLIST.md",
        ],
        docs={"SKILL.md": "# Review\n", "CHECKLIST.md": "## Style\n- [ ] ok\n"},
    )
    (skill_dir / "docs").mkdir()
    (skill_dir / "docs" / "GUIDE.md").write_text("guide\n", encoding="utf-8")

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    paths = await mgr.reference_paths("review")
    assert paths == [
        (skill_dir / "SKILL.md").resolve(),
        (skill_dir / "docs" / "GUIDE.md").resolve(),
        (skill_dir / "CHECKLIST.md").resolve(),
    ]
    assert await mgr.get_instructions("review") == "# Review\n"


@pytest.mark.asyncio
async def test_reference_paths_errors(skill_dirs):
    builtin, user, state = skill_dirs
    write_skill(
        builtin,
        "partial",
        ["id: partial", "name: Partial", "references:", "  - path: MISSING.md"],
        docs={"SKILL.md": "# Partial\n"},
    )

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    with pytest.raises(SkillNotFoundError):
        await mgr.reference_paths("nope")

    with pytest.raises(ReferenceNotFoundError) as exc_info:
        await mgr.reference_paths("partial")
    assert exc_info.value.path.name == "MISSING.md"
    assert isinstance(exc_info.value, FileNotFoundError)


@pytest.mark.asyncio
async def test_enable_unknown_skill_and_missing_dependency(skill_dirs):
    builtin, user, state = skill_dirs
    write_skill(builtin, "orphan", ["id: orphan", "name: Orphan", "depends_on: [ghost]"])

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    r = await mgr.enable("nope")
    assert r["success"] is False
    assert "not found" in r["error"]

    r2 = await mgr.enable("orphan")
    assert r2["success"] is False
    assert r2["missing"] == ["ghost"]
    assert await mgr.is_enabled("orphan") is False


@pytest.mark.asyncio
async def test_install_from_yaml_writes_user_skill(skill_dirs):
    builtin, user, state = skill_dirs

    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    result = await mgr.install_from_yaml(
        "\n".join(
            [
                "id: team-review",
                "name: Team Review",
                "references:",
                "  - path: TEAM.md",
            ]
        ),
        files={"SKILL.md": "# Team review", "TEAM.md": "Our rules"},
        enable=True,
    )
    assert result["success"] is True
    assert await mgr.is_enabled("team-review") is True

    paths = await mgr.reference_paths("team-review")
    assert [p.name for p in paths] == ["SKILL.md", "TEAM.md"]
    assert (user / "team-review" / "TEAM.md").read_text(encoding="utf-8") == "Our rules\n"


@pytest.mark.asyncio
async def test_install_from_yaml_rejects_bad_input(skill_dirs):
    builtin, user, state = skill_dirs
    mgr = SkillManager(builtin_dir=builtin, user_dir=user, state_path=state)
    await mgr.initialize()

    assert (await mgr.install_from_yaml(""))["success"] is False
    assert (await mgr.install_from_yaml("- just\n- a list\n"))["success"] is False
    assert (await mgr.install_from_yaml("name: no id\n"))["success"] is False

    escaped = await mgr.install_from_yaml("id: x\nname: X\n", files={"../evil.md": "nope"})
    assert escaped["success"] is False
    assert not (user / "x").exists()

    for bad_id in ("../escaped", "a/b", "has space"):
        r = await mgr.install_from_yaml(f"id: '{bad_id}'\nname: Bad\n")
        assert r["success"] is False
        assert "skill id" in r["error"]
    assert not (user.parent / "escaped").exists()
    assert not (user / "a").exists()
    assert [s["id"] for s in await mgr.list_skills()] == []


@pytest.mark.asyncio
async def test_bundled_skill_is_available(tmp_path):
    mgr = SkillManager(user_dir=tmp_path / "skills", state_path=tmp_path / "state.json")
    await mgr.initialize()

    assert (BUILTIN_SKILLS_DIR / "python-code-review" / "skill.yaml").is_file()
    assert await mgr.is_enabled("python-code-review") is True

    names = [p.name for p in await mgr.reference_paths("python-code-review")]
    assert names == ["SKILL.md", "CHECKLIST.md", "BEST_PRACTICES.md"]


@pytest.mark.asyncio
async def test_config_supplies_directories(skill_dirs):
    builtin, user, state = skill_dirs
    write_skill(builtin, "demo", ["id: demo", "name: Demo", "enabled_by_default: true"])

    class Cfg:
        def get(self, key, default=None):
            return {
                "skills.builtin_dir": str(builtin),
                "skills.user_dir": str(user),
                "skills.state_path": str(state),
            }.get(key, default)

    mgr = SkillManager(Cfg())
    await mgr.initialize()

    assert mgr.state_path == state
    assert state.exists()
    assert [s["id"] for s in await mgr.list_skills()] == ["demo"]
