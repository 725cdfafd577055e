"""Tests for skill discovery and include/exclude filters."""

import sys

from tests.conftest import make_skill, make_target

mod = sys.modules["sync_agent_skills"]


class TestDiscoverSkills:
    def test_nested_and_flat_names(self, source):
        make_skill(source, "alpha")
        make_skill(source, "group/beta")
        make_skill(source, "_team-repo/tools/gamma")
        (source / "not-a-skill").mkdir()

        skills = {s.flat_name: s for s in mod.discover_skills(source)}

        assert set(skills) == {"alpha", "group__beta", "_team-repo__tools__gamma"}
        assert skills["group__beta"].rel_path == "group/beta"
        assert skills["_team-repo__tools__gamma"].is_in_repo
        assert not skills["alpha"].is_in_repo

    def test_skips_git_and_root(self, source):
        (source / "SKILL.md").write_text("---\nname: root\n---\n")
        make_skill(source, ".git/hooks")
        make_skill(source, "real")
        assert [s.flat_name for s in mod.discover_skills(source)] == ["real"]

    def test_targets_frontmatter(self, source):
        make_skill(source, "only-cursor", targets=["cursor"])
        make_skill(source, "everywhere")
        skills = {s.flat_name: s for s in mod.discover_skills(source)}
        assert skills["only-cursor"].targets == ["cursor"]
        assert skills["everywhere"].targets is None

    def test_missing_source(self, tmp_path):
        assert mod.discover_skills(tmp_path / "nope") == []

    def test_absolute_paths(self, source):
        make_skill(source, "alpha")
        (skill,) = mod.discover_skills(source)
        assert skill.source_path.is_absolute()


class TestFilters:
    def test_no_filters_selects_all(self):
        assert mod.should_sync("anything", [], [])

    def test_include(self):
        assert mod.should_sync("team__review", ["team__*"], [])
        assert not mod.should_sync("other", ["team__*"], [])

    def test_exclude_wins(self):
        assert not mod.should_sync("team__draft", ["team__*"], ["*draft"])

    def test_case_sensitive(self):
        assert not mod.should_sync("Review", ["review"], [])

    def test_skills_for_target_respects_frontmatter(self, tmp_path, source):
        make_skill(source, "only-cursor", targets=["cursor"])
        make_skill(source, "everywhere")
        skills = mod.discover_skills(source)
        target = make_target(tmp_path / "t")

        cursor = [s.flat_name for s in mod.skills_for_target(skills, "cursor", target)]
        codex = [s.flat_name for s in mod.skills_for_target(skills, "codex", target)]

        assert sorted(cursor) == ["everywhere", "only-cursor"]
        assert codex == ["everywhere"]
