"""
SkillManager - discover skills, track enabled state, resolve their documents.

A skill is a directory holding a manifest (`skill.yaml` or `skill.json`),
an instructions file (`SKILL.md` by default) and any reference documents the
manifest declares.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from pyreview.errors import ManifestError, ReferenceNotFoundError, SkillNotFoundError
from pyreview.skills.models import SkillManifest, SkillReference

BUILTIN_SKILLS_DIR = Path(__file__).resolve().parent.parent / "data" / "skills"
STATE_DIR = Path.home() / ".pyreview"


class SkillManager:
    """
    Manage skills on disk and their enabled/disabled state.

    Discovery order:
    1) built-in: <package>/data/skills/<id>/skill.yaml
    2) user:     ~/.pyreview/skills/<id>/skill.yaml (overrides built-in by id)
    """

    def __init__(
        self,
        config: Any = None,
        *,
        builtin_dir: Optional[Path] = None,
        user_dir: Optional[Path] = None,
        state_path: Optional[Path] = None,
    ) -> None:
        self._config = config

        cfg_builtin = None
        cfg_user = None
        cfg_state = None
        if config is not None and hasattr(config, "get"):
            cfg_builtin = config.get("skills.builtin_dir")
            cfg_user = config.get("skills.user_dir")
            cfg_state = config.get("skills.state_path")

        self._builtin_dir = Path(builtin_dir or cfg_builtin or BUILTIN_SKILLS_DIR)
        self._user_dir = Path(user_dir or cfg_user or (STATE_DIR / "skills"))
        self._state_path = Path(state_path or cfg_state or (STATE_DIR / "skills_state.json"))

        self._lock = asyncio.Lock()
        self._manifests: Dict[str, SkillManifest] = {}
        self._enabled: Dict[str, bool] = {}

    @property
    def state_path(self) -> Path:
        return self._state_path

    async def initialize(self) -> None:
        await self.reload()

    async def reload(self) -> None:
        async with self._lock:
            manifests = self._discover_manifests()
            enabled = self._load_state_enabled()

            changed = False
            for sid, manifest in manifests.items():
                if sid not in enabled:
                    enabled[sid] = manifest.enabled_by_default
                    changed = True

            self._manifests = manifests
            self._enabled = enabled

            if changed or not self._state_path.exists():
                self._persist_state_enabled(enabled)

        logger.debug(f"Loaded {len(manifests)} skill(s): {', '.join(sorted(manifests)) or '-'}")

    def _discover_manifests(self) -> Dict[str, SkillManifest]:
        manifests = self._load_manifests_from_dir(self._builtin_dir, source_kind="builtin")
        manifests.update(self._load_manifests_from_dir(self._user_dir, source_kind="user"))
        return manifests

    def _load_manifests_from_dir(
        self, root: Path, *, source_kind: str
    ) -> Dict[str, SkillManifest]:
        manifests: Dict[str, SkillManifest] = {}
        if not root.exists():
            return manifests

        candidates: List[Path] = []
        for suffix in ("yaml", "yml", "json"):
            candidates.extend(root.glob(f"*/skill.{suffix}"))

        for manifest_path in sorted(candidates):
            try:
                manifest = self._parse_manifest(self._read_manifest_file(manifest_path))
            except ManifestError as e:
                logger.warning(f"Failed to load skill manifest {manifest_path}: {e}")
                continue
            manifest.source_dir = manifest_path.parent
            manifest.source_file = manifest_path
            manifest.source_kind = source_kind  # type: ignore[assignment]
            manifests[manifest.id] = manifest

        return manifests

    @staticmethod
    def _read_manifest_file(path: Path) -> Dict[str, Any]:
        try:
            content = path.read_text(encoding="utf-8")
            if path.suffix.lower() == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ManifestError(str(e)) from e
        if not isinstance(data, dict):
            raise ManifestError("skill manifest must be a mapping/object")
        return data

    @staticmethod
    def _parse_manifest(data: Dict[str, Any]) -> SkillManifest:
        try:
            return SkillManifest.model_validate(data)
        except ValueError as e:
            raise ManifestError(str(e)) from e

    def _load_state_enabled(self) -> Dict[str, bool]:
        path = self._state_path
        try:
            if path.exists():
                data = json.loads(path.read_text(encoding="utf-8"))
                enabled = data.get("enabled") if isinstance(data, dict) else None
                if isinstance(enabled, dict):
                    return {str(k): bool(v) for k, v in enabled.items()}
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read skills state file {path}: {e}")
        return {}

    def _persist_state_enabled(self, enabled: Dict[str, bool]) -> None:
        path = self._state_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = {"enabled": dict(sorted(enabled.items(), key=lambda kv: kv[0]))}
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to persist skills state file {path}: {e}")

    def _list_skills_unlocked(self) -> List[Dict[str, Any]]:
        skills = []
        for sid, manifest in sorted(self._manifests.items(), key=lambda kv: kv[0]):
            skills.append(
                {
                    "id": sid,
                    "name": manifest.name,
                    "version": manifest.version,
                    "description": manifest.description,
                    "enabled": bool(self._enabled.get(sid, False)),
                    "depends_on": list(manifest.depends_on),
                    "source_kind": manifest.source_kind,
                    "documents": [ref.path for ref in manifest.document_entries()],
                }
            )
        return skills

    async def list_skills(self) -> List[Dict[str, Any]]:
        async with self._lock:
            return self._list_skills_unlocked()

    async def get_manifest(self, skill_id: str) -> Optional[SkillManifest]:
        sid = str(skill_id or "").strip()
        if not sid:
            return None
        async with self._lock:
            return self._manifests.get(sid)

    async def is_enabled(self, skill_id: str) -> bool:
        sid = str(skill_id or "").strip()
        if not sid:
            return False
        async with self._lock:
            return bool(self._enabled.get(sid, False))

    async def enabled_skill_manifests(self) -> List[SkillManifest]:
        async with self._lock:
            return [m for sid, m in sorted(self._manifests.items()) if self._enabled.get(sid)]

    async def enable(self, skill_id: str) -> Dict[str, Any]:
        sid = str(skill_id or "").strip()
        if not sid:
            return {"success": False, "error": "missing skill id"}

        async with self._lock:
            if sid not in self._manifests:
                return {"success": False, "error": f"skill not found: {sid}"}

            missing = [d for d in self._dependency_chain(sid) if d not in self._manifests]
            if missing:
                return {
                    "success": False,
                    "error": f"Cannot enable '{sid}': missing dependencies: {', '.join(missing)}",
                    "missing": missing,
                }

            enabled_now: List[str] = []
            for dep in self._dependency_chain(sid):
                if not self._enabled.get(dep, False):
                    self._enabled[dep] = True
                    enabled_now.append(dep)

            if enabled_now:
                self._persist_state_enabled(self._enabled)

        if enabled_now:
            logger.info(f"Enabled skill(s): {', '.join(enabled_now)}")
        return {"success": True, "skill_id": sid, "enabled": True, "enabled_now": enabled_now}

    async def disable(self, skill_id: str) -> Dict[str, Any]:
        sid = str(skill_id or "").strip()
        if not sid:
            return {"success": False, "error": "missing skill id"}

        async with self._lock:
            if sid not in self._manifests:
                return {"success": False, "error": f"skill not found: {sid}"}

            # Block disabling if any enabled skill depends on this (transitively).
            dependents = self._enabled_dependents_of(sid)
            if dependents:
                return {
                    "success": False,
                    "error": f"Cannot disable '{sid}' because enabled skill(s) depend on it: {', '.join(sorted(dependents))}",
                    "blocked_by": sorted(dependents),
                }

            if not self._enabled.get(sid, False):
                return {"success": True, "skill_id": sid, "enabled": False}

            self._enabled[sid] = False
            self._persist_state_enabled(self._enabled)

        logger.info(f"Disabled skill: {sid}")
        return {"success": True, "skill_id": sid, "enabled": False}

    def _dependency_chain(self, skill_id: str) -> List[str]:
        """Return [deps..., skill_id] in dependency order (deps first)."""
        out: List[str] = []
        seen: set[str] = set()

        def visit(sid: str) -> None:
            if sid in seen:
                return
            seen.add(sid)
            manifest = self._manifests.get(sid)
            if manifest:
                for dep in manifest.depends_on:
                    visit(dep)
            out.append(sid)

        visit(skill_id)
        return out

    def _enabled_dependents_of(self, skill_id: str) -> set[str]:
        """Return enabled skills that (transitively) depend on skill_id."""
        return {
            sid
            for sid, on in self._enabled.items()
            if on and sid != skill_id and skill_id in self._dependency_chain(sid)[:-1]
        }

    async def install_from_yaml(
        self,
        yaml_text: str,
        *,
        files: Optional[Dict[str, str]] = None,
        enable: bool = False,
    ) -> Dict[str, Any]:
        """
        Write a user skill from manifest text plus optional documents.

        `files` maps paths relative to the skill directory to their text.
        """
        if not yaml_text or not str(yaml_text).strip():
            return {"success": False, "error": "manifest yaml is required"}

        try:
            data = yaml.safe_load(yaml_text)
        except yaml.YAMLError as e:
            return {"success": False, "error": f"Invalid YAML: {e}"}

        if not isinstance(data, dict):
            return {"success": False, "error": "manifest yaml must parse to a mapping/object"}

        try:
            manifest = self._parse_manifest(data)
            extra = [SkillReference(path=p) for p in (files or {})]
        except (ManifestError, ValueError) as e:
            return {"success": False, "error": f"Invalid manifest: {e}"}

        sid = manifest.id
        skill_dir = self._user_dir / sid
        try:
            skill_dir.mkdir(parents=True, exist_ok=True)
            (skill_dir / "skill.yaml").write_text(str(yaml_text).strip() + "\n", encoding="utf-8")
            for ref in extra:
                target = skill_dir / ref.path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(str((files or {})[ref.path]).rstrip() + "\n", encoding="utf-8")
        except OSError as e:
            return {"success": False, "error": f"Failed to write skill files: {e}"}

        logger.info(f"Installed skill '{sid}' into {skill_dir}")
        await self.reload()

        if enable:
            result = await self.enable(sid)
            if not result["success"]:
                return result

        return {"success": True, "skill_id": sid, "path": str(skill_dir)}

    async def get_instructions(self, skill_id: str) -> str:
        """Return the instructions file content for the skill (empty when absent)."""
        sid = str(skill_id or "").strip()
        if not sid:
            return ""

        async with self._lock:
            manifest = self._manifests.get(sid)

        if not manifest or not manifest.source_dir:
            return ""

        path = manifest.source_dir / manifest.instructions_file
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8")

    async def reference_paths(self, skill_id: str) -> List[Path]:
        """
        Absolute paths of the documents to load for a skill.

        The instructions file comes first, followed by the declared references
        in manifest order.

        Raises:
            SkillNotFoundError: unknown skill id
            ReferenceNotFoundError: a declared document is missing
        """
        sid = str(skill_id or "").strip()
        async with self._lock:
            manifest = self._manifests.get(sid)

        if manifest is None or manifest.source_dir is None:
            raise SkillNotFoundError(sid)

        paths: List[Path] = []
        for ref in manifest.document_entries():
            path = (manifest.source_dir / ref.path).resolve()
            if not path.is_file():
                raise ReferenceNotFoundError(sid, path)
            paths.append(path)
        return paths
