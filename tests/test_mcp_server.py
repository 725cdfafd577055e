"""Tests for the MCP tool wrappers."""

import importlib.util
import json
import sys
from pathlib import Path

import pytest

from tests.conftest import make_skill, seed_config

pytest.importorskip("mcp.server.fastmcp")

mod = sys.modules["sync_agent_skills"]

_SERVER = Path(__file__).parent.parent / "mcp" / "server.py"
_spec = importlib.util.spec_from_file_location("skill_sync_mcp_server", _SERVER)
server = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(server)


@pytest.fixture
def configured(fake_home, tmp_path):
    src = tmp_path / "src"
    make_skill(src, "alpha")
    seed_config(fake_home, source=src, targets={
        "cursor": {"path": str(tmp_path / "cursor")},
        "codex": {"path": str(tmp_path / "codex"), "mode": "copy"},
    })
    return tmp_path


class TestReadOnlyTools:
    def test_status(self, configured):
        result = server.skill_status()
        assert result["success"]
        assert result["skills"] == ["alpha"]
        assert set(result["targets"]) == {"cursor", "codex"}
        json.dumps(result)

    def test_status_without_config(self, fake_home):
        result = server.skill_status()
        assert not result["success"]
        assert "init" in result["error"]

    def test_diff(self, configured):
        result = server.skill_diff(only="cursor")
        assert result["targets"]["cursor"] == [
            {"action": "add", "name": "alpha", "detail": "missing"},
        ]

    def test_diff_unknown_target(self, configured):
        assert not server.skill_diff(only="nope")["success"]

    def test_collisions(self, configured):
        make_skill(configured / "src", "other", name="alpha")
        result = server.skill_collisions()
        assert result["global_collisions"][0]["name"] == "alpha"


class TestSyncTools:
    def test_sync(self, configured):
        result = server.skill_sync()
        assert result["success"]
        assert result["targets"]["cursor"]["result"]["linked"] == ["alpha"]
        assert result["targets"]["codex"]["result"]["copied"] == ["alpha"]
        assert (configured / "cursor" / "alpha").is_symlink()
        json.dumps(result)

    def test_sync_dry_run(self, configured):
        result = server.skill_sync(dry_run=True)
        assert result["success"]
        assert not (configured / "cursor").exists()

    def test_add_and_remove_target(self, configured):
        result = server.skill_add_target("gemini", str(configured / "gemini"), mode="symlink")
        assert result["success"]
        config = json.loads(mod.CONFIG_PATH.read_text())
        assert config["targets"]["gemini"]["mode"] == "symlink"

        assert server.skill_remove_target("gemini")["success"]
        assert "gemini" not in json.loads(mod.CONFIG_PATH.read_text())["targets"]

    def test_add_target_rejects_mode(self, configured):
        assert not server.skill_add_target("x", "/tmp/x", mode="hardlink")["success"]

    def test_collect(self, configured):
        make_skill(configured / "cursor", "handmade")
        result = server.skill_collect("cursor")
        assert result["success"]
        assert (configured / "src" / "handmade" / "SKILL.md").exists()
