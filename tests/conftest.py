"""Shared fixtures for sync_agent_skills tests."""

from __future__ import annotations

import argparse
import importlib.util
import json
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# ---------------------------------------------------------------------------
# Load the script as a module (not in a package).
# Register in sys.modules so all test files share the SAME instance.
# ---------------------------------------------------------------------------

_SCRIPT = Path(__file__).parent.parent / "scripts" / "sync_agent_skills.py"

if "sync_agent_skills" not in sys.modules:
    _spec = importlib.util.spec_from_file_location("sync_agent_skills", _SCRIPT)
    _mod = importlib.util.module_from_spec(_spec)
    sys.modules["sync_agent_skills"] = _mod
    _spec.loader.exec_module(_mod)

mod = sys.modules["sync_agent_skills"]

_REAL_HOME = Path.home()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Redirect all module-level paths into a temp directory."""
    home = tmp_path / "home"
    config_dir = home / ".skill-sync"
    config_dir.mkdir(parents=True)

    monkeypatch.setattr(mod, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(mod, "CONFIG_PATH", config_dir / "config.json")
    monkeypatch.setattr(mod, "SKILLS_DIR", config_dir / "skills")
    monkeypatch.setattr(mod, "BACKUPS_DIR", config_dir / "backups")

    for key, info in mod.KNOWN_AGENTS.items():
        patched = dict(info)
        patched["skills_dir"] = home / info["skills_dir"].relative_to(_REAL_HOME)
        monkeypatch.setitem(mod.KNOWN_AGENTS, key, patched)

    monkeypatch.setattr(Path, "home", staticmethod(lambda: home))
    monkeypatch.setenv("HOME", str(home))

    return home


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "source"
    src.mkdir()
    return src


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_skill(
    source: Path,
    rel: str,
    name: Optional[str] = None,
    files: Optional[dict[str, str]] = None,
    targets: Optional[list[str]] = None,
) -> Path:
    """Create a skill directory with a SKILL.md (and optional extra files)."""
    skill_dir = source / rel
    skill_dir.mkdir(parents=True, exist_ok=True)
    lines = ["---", f"name: {name or rel.split('/')[-1]}"]
    if targets is not None:
        lines.append(f"targets: [{', '.join(targets)}]")
    lines += ["---", "", f"# {rel}", ""]
    (skill_dir / "SKILL.md").write_text("\n".join(lines))
    for fname, content in (files or {}).items():
        path = skill_dir / fname
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return skill_dir


def make_target(path: Path, mode: str = "merge", include: Optional[list[str]] = None,
                exclude: Optional[list[str]] = None) -> Any:
    return mod.Target(path=path, mode=mode, include=include or [], exclude=exclude or [])


def seed_config(
    home: Path,
    source: Optional[Path] = None,
    targets: Optional[dict[str, dict[str, Any]]] = None,
    mode: str = "merge",
) -> dict[str, Any]:
    """Write config.json under the fake home. Returns the config dict."""
    config_dir = home / ".skill-sync"
    src = source or config_dir / "skills"
    src.mkdir(parents=True, exist_ok=True)
    config: dict[str, Any] = {
        "version": "1.0",
        "updated": "2026-01-01",
        "source": str(src),
        "mode": mode,
        "targets": targets if targets is not None else {},
    }
    (config_dir / "config.json").write_text(json.dumps(config, indent=2) + "\n")
    return config


def make_args(**overrides: Any) -> argparse.Namespace:
    """Create an argparse.Namespace with sensible test defaults."""
    defaults: dict[str, Any] = {
        "dry_run": False,
        "verbose": False,
        "only": None,
        "yes": True,
        "force": False,
        "no_backup": True,
        "command": "sync",
    }
    defaults.update(overrides)
    return argparse.Namespace(**defaults)
