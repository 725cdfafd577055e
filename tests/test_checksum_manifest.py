"""Tests for directory checksums and the copy-mode manifest."""

import json
import sys

import pytest

mod = sys.modules["sync_agent_skills"]


class TestDirChecksum:
    def _tree(self, root, files):
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return root

    def test_same_content_same_digest(self, tmp_path):
        files = {"SKILL.md": "hi", "ref/a.txt": "a", "b.txt": "b"}
        a = self._tree(tmp_path / "a", files)
        b = self._tree(tmp_path / "b", dict(reversed(list(files.items()))))
        assert mod.dir_checksum(a) == mod.dir_checksum(b)

    def test_content_change_detected(self, tmp_path):
        root = self._tree(tmp_path / "a", {"SKILL.md": "one"})
        before = mod.dir_checksum(root)
        (root / "SKILL.md").write_text("two")
        assert mod.dir_checksum(root) != before

    def test_rename_detected(self, tmp_path):
        a = self._tree(tmp_path / "a", {"x.txt": "same"})
        b = self._tree(tmp_path / "b", {"y.txt": "same"})
        assert mod.dir_checksum(a) != mod.dir_checksum(b)

    def test_git_dir_ignored(self, tmp_path):
        root = self._tree(tmp_path / "a", {"SKILL.md": "hi"})
        before = mod.dir_checksum(root)
        self._tree(root, {".git/HEAD": "ref: refs/heads/main"})
        assert mod.dir_checksum(root) == before

    def test_missing_dir_raises(self, tmp_path):
        with pytest.raises(OSError):
            mod.dir_checksum(tmp_path / "nope")

    def test_hex_sha256(self, tmp_path):
        root = self._tree(tmp_path / "a", {"SKILL.md": "hi"})
        digest = mod.dir_checksum(root)
        assert len(digest) == 64
        int(digest, 16)


class TestManifest:
    def test_missing_is_empty(self, tmp_path):
        m = mod.read_manifest(tmp_path)
        assert m.managed == {}
        assert m.updated_at == ""

    def test_corrupt_is_empty(self, tmp_path):
        (tmp_path / mod.MANIFEST_FILE).write_text("{not json")
        assert mod.read_manifest(tmp_path).managed == {}

    def test_wrong_shape_is_empty(self, tmp_path):
        (tmp_path / mod.MANIFEST_FILE).write_text(json.dumps({"managed": ["a"]}))
        assert mod.read_manifest(tmp_path).managed == {}

    def test_write_then_read(self, tmp_path):
        mod.write_manifest(tmp_path, mod.Manifest(managed={"b": "2", "a": "1"}))
        data = json.loads((tmp_path / mod.MANIFEST_FILE).read_text())
        assert data["managed"] == {"a": "1", "b": "2"}
        assert data["updated_at"].endswith("Z")
        assert mod.read_manifest(tmp_path).managed == {"a": "1", "b": "2"}

    def test_remove_is_idempotent(self, tmp_path):
        mod.write_manifest(tmp_path, mod.Manifest())
        mod.remove_manifest(tmp_path)
        mod.remove_manifest(tmp_path)
        assert not (tmp_path / mod.MANIFEST_FILE).exists()
