import sys
from pathlib import Path

import pytest


def pytest_configure():
    # Ensure `src/` is on sys.path so `import pyreview` works without an editable install.
    root = Path(__file__).resolve().parent.parent
    src = root / "src"
    if src.exists():
        p = str(src)
        if p not in sys.path:
            sys.path.insert(0, p)


@pytest.fixture
def skill_dirs(tmp_path):
    """(builtin_dir, user_dir, state_path) under tmp_path."""
    return (
        tmp_path / "skills",
        tmp_path / "user" / "skills",
        tmp_path / "user" / "skills_state.json",
    )


def write_skill(root: Path, skill_id: str, manifest_lines, docs=None) -> Path:
    skill_dir = root / skill_id
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "skill.yaml").write_text("\n".join(list(manifest_lines) + [""]), encoding="utf-8")
    for name, text in (docs or {}).items():
        (skill_dir / name).write_text(text, encoding="utf-8")
    return skill_dir
