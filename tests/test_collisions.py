"""Tests for duplicate skill-name detection."""

import sys

from tests.conftest import make_args, make_skill, make_target

mod = sys.modules["sync_agent_skills"]


class TestCheckNameCollisions:
    def test_reports_duplicates(self, source):
        make_skill(source, "team-a/review", name="review")
        make_skill(source, "team-b/review", name="review")
        make_skill(source, "solo", name="solo")

        collisions = mod.check_name_collisions(mod.discover_skills(source))

        assert len(collisions) == 1
        assert collisions[0].name == "review"
        assert collisions[0].flat_names == ["team-a__review", "team-b__review"]

    def test_nameless_skills_ignored(self, source):
        for rel in ("a", "b"):
            (source / rel).mkdir()
            (source / rel / "SKILL.md").write_text("# no frontmatter\n")
        assert mod.check_name_collisions(mod.discover_skills(source)) == []


class TestCollisionsForTargets:
    def _duplicates(self, source):
        make_skill(source, "team-a/review", name="review")
        make_skill(source, "team-b/review", name="review")
        return mod.discover_skills(source)

    def test_prefix_filters_isolate_duplicates(self, tmp_path, source):
        make_skill(source, "codex-x", name="x")
        make_skill(source, "gemini-x", name="x")
        skills = mod.discover_skills(source)
        targets = {
            "codex": make_target(tmp_path / "c", include=["codex-*"]),
            "gemini": make_target(tmp_path / "g", include=["gemini-*"]),
        }
        report = mod.check_name_collisions_for_targets(skills, targets)
        assert len(report.global_collisions) == 1
        assert len(report.per_target) == 0

    def test_filters_isolate_duplicates(self, tmp_path, source):
        skills = self._duplicates(source)
        targets = {
            "cursor": make_target(tmp_path / "c", include=["team-a__*"]),
            "codex": make_target(tmp_path / "x", include=["team-b__*"]),
        }
        report = mod.check_name_collisions_for_targets(skills, targets)
        assert len(report.global_collisions) == 1
        assert report.per_target == []

    def test_filter_that_keeps_both_reports(self, tmp_path, source):
        skills = self._duplicates(source)
        targets = {"cursor": make_target(tmp_path / "c", include=["*review"])}
        report = mod.check_name_collisions_for_targets(skills, targets)
        assert [(c.target_name, c.name) for c in report.per_target] == [("cursor", "review")]

    def test_unfiltered_and_symlink_targets_skipped(self, tmp_path, source):
        skills = self._duplicates(source)
        targets = {
            "plain": make_target(tmp_path / "p"),
            "linked": make_target(tmp_path / "l", mode="symlink", include=["*"]),
        }
        report = mod.check_name_collisions_for_targets(skills, targets)
        assert len(report.global_collisions) == 1
        assert report.per_target == []

    def test_collisions_do_not_block_sync(self, tmp_path, source):
        skills = self._duplicates(source)
        target = make_target(tmp_path / "c", include=["*review"])
        report = mod.sync_target("cursor", target, source, skills, make_args())
        assert sorted(report.result.linked) == ["team-a__review", "team-b__review"]
