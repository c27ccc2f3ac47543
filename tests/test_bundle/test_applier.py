"""Unit tests for bundle application (blueprint_writer.bundle).

Tests cover:
- Creating files and directories from a manifest
- Idempotence (second application writes nothing)
- The four overwrite policies
- Containment: parent segments and escaping targets write nothing
- Validation of malformed contents and unknown modes
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from pathlib import Path

import pytest

from blueprint_writer.bundle import (
    BundleFile,
    JobResultSummary,
    ManifestEntry,
    OverwriteMode,
    apply_bundle,
    unique_backup_path,
)
from blueprint_writer.config import Config
from blueprint_writer.errors import ConflictError, SecurityError, ValidationError
from blueprint_writer.utils import sha256_hex


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _bundle(path: str, data: bytes) -> tuple[list[dict], list[dict]]:
    return (
        [{"path": path, "mode": "file", "size": len(data)}],
        [{"path": path, "contentsBase64": _b64(data)}],
    )


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "out"


# ---------------------------------------------------------------------------
# Creation & idempotence
# ---------------------------------------------------------------------------


class TestApplyBundleCreate:
    @pytest.mark.unit
    def test_single_file_into_empty_target(self, root: Path, target: Path):
        manifest = [{"path": "a/b.txt", "mode": "file", "size": 5}]
        files = [{"path": "a/b.txt", "contentsBase64": "aGVsbG8="}]

        result = apply_bundle(target, manifest, files, "fail", allowed_roots=[root])

        assert result.created == ["a/b.txt"]
        assert result.updated == result.skipped == result.conflicts == []
        assert (target / "a" / "b.txt").read_bytes() == b"hello"
        assert result.changed

    @pytest.mark.unit
    def test_directories_created_first(self, root: Path, target: Path):
        manifest = [
            ManifestEntry(path="src/app/page.tsx"),
            ManifestEntry(path="public", mode="dir"),
            ManifestEntry(path="src/app", mode="dir"),
        ]
        files = [BundleFile(path="src/app/page.tsx", contents_base64=_b64(b"export {}"))]

        result = apply_bundle(target, manifest, files, OverwriteMode.FAIL, allowed_roots=[root])

        assert (target / "public").is_dir()
        assert result.created == ["src/app/page.tsx"]

    @pytest.mark.unit
    def test_paths_are_normalised(self, root: Path, target: Path):
        manifest = [{"path": "\\docs\\readme.md"}]
        files = [{"path": "/docs/readme.md", "contentsBase64": _b64(b"# hi")}]

        result = apply_bundle(target, manifest, files, "fail", allowed_roots=[root])

        assert result.created == ["docs/readme.md"]
        assert (target / "docs" / "readme.md").read_bytes() == b"# hi"

    @pytest.mark.unit
    def test_entry_without_content_is_skipped(self, root: Path, target: Path):
        result = apply_bundle(target, [{"path": "ghost.txt"}], [], "fail", allowed_roots=[root])
        assert result.skipped == ["ghost.txt"]
        assert not (target / "ghost.txt").exists()

    @pytest.mark.unit
    def test_second_application_is_noop(self, root: Path, target: Path):
        manifest, files = _bundle("a/b.txt", b"hello")
        apply_bundle(target, manifest, files, "fail", allowed_roots=[root])
        mtime = (target / "a" / "b.txt").stat().st_mtime_ns

        again = apply_bundle(target, manifest, files, "fail", allowed_roots=[root])

        assert again.skipped == ["a/b.txt"]
        assert not again.changed
        assert (target / "a" / "b.txt").stat().st_mtime_ns == mtime

    @pytest.mark.unit
    def test_supplied_hash_is_used(self, root: Path, target: Path):
        (target / "f.txt").parent.mkdir(parents=True)
        (target / "f.txt").write_bytes(b"hello")
        files = [{"path": "f.txt", "contentsBase64": _b64(b"hello"), "hash": sha256_hex(b"hello").upper()}]

        result = apply_bundle(target, [{"path": "f.txt"}], files, "fail", allowed_roots=[root])

        assert result.skipped == ["f.txt"]


# ---------------------------------------------------------------------------
# Overwrite policies
# ---------------------------------------------------------------------------


class TestOverwritePolicies:
    @pytest.fixture
    def existing(self, target: Path) -> Path:
        path = target / "f.txt"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"old")
        return path

    @pytest.mark.unit
    def test_fail_reports_conflict(self, root: Path, target: Path, existing: Path):
        manifest, files = _bundle("f.txt", b"new")
        result = apply_bundle(target, manifest, files, "fail", allowed_roots=[root])

        assert result.conflicts == ["f.txt"]
        assert existing.read_bytes() == b"old"
        with pytest.raises(ConflictError):
            result.raise_for_conflicts()

    @pytest.mark.unit
    def test_skip_leaves_file(self, root: Path, target: Path, existing: Path):
        manifest, files = _bundle("f.txt", b"new")
        result = apply_bundle(target, manifest, files, "skip", allowed_roots=[root])

        assert result.skipped == ["f.txt"]
        assert existing.read_bytes() == b"old"

    @pytest.mark.unit
    def test_backup_renames_then_writes(self, root: Path, target: Path, existing: Path):
        manifest, files = _bundle("f.txt", b"new")
        result = apply_bundle(target, manifest, files, "backup", allowed_roots=[root])

        assert result.updated == ["f.txt"]
        assert len(result.backups) == 1
        assert result.backups[0].startswith("f.txt.bak.")
        assert (target / result.backups[0]).read_bytes() == b"old"
        assert existing.read_bytes() == b"new"

    @pytest.mark.unit
    def test_overwrite_replaces(self, root: Path, target: Path, existing: Path):
        manifest, files = _bundle("f.txt", b"new")
        result = apply_bundle(target, manifest, files, OverwriteMode.OVERWRITE, allowed_roots=[root])

        assert result.updated == ["f.txt"]
        assert result.backups == []
        assert existing.read_bytes() == b"new"

    @pytest.mark.unit
    def test_unknown_mode(self, root: Path, target: Path):
        manifest, files = _bundle("f.txt", b"new")
        with pytest.raises(ValidationError, match="merge"):
            apply_bundle(target, manifest, files, "merge", allowed_roots=[root])
        assert not target.exists()

    @pytest.mark.unit
    def test_mode_and_roots_from_config(self, tmp_path: Path, existing: Path):
        config = Config(allowed_roots=[tmp_path], overwrite_mode=OverwriteMode.OVERWRITE)
        manifest, files = _bundle("f.txt", b"new")

        result = apply_bundle(existing.parent, manifest, files, config=config)

        assert result.updated == ["f.txt"]
        assert existing.read_bytes() == b"new"

    @pytest.mark.unit
    def test_explicit_mode_beats_config(self, tmp_path: Path, existing: Path):
        config = Config(allowed_roots=[tmp_path], overwrite_mode=OverwriteMode.OVERWRITE)
        manifest, files = _bundle("f.txt", b"new")

        result = apply_bundle(existing.parent, manifest, files, "skip", config=config)

        assert result.skipped == ["f.txt"]
        assert existing.read_bytes() == b"old"

    @pytest.mark.unit
    def test_mode_from_environment(self, tmp_path: Path, existing: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BLUEPRINT_ALLOWED_ROOTS", str(tmp_path))
        monkeypatch.setenv("BLUEPRINT_OVERWRITE_MODE", "backup")
        manifest, files = _bundle("f.txt", b"new")

        result = apply_bundle(existing.parent, manifest, files)

        assert result.updated == ["f.txt"]
        assert len(result.backups) == 1


class TestUniqueBackupPath:
    @pytest.mark.unit
    def test_collision_gets_counter(self, tmp_path: Path):
        original = tmp_path / "f.txt"
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        first = unique_backup_path(original, now)
        first.write_text("x", encoding="utf-8")

        second = unique_backup_path(original, now)

        assert second.name == f"{first.name}.1"


# ---------------------------------------------------------------------------
# Containment & validation
# ---------------------------------------------------------------------------


class TestContainment:
    @pytest.mark.unit
    def test_parent_segment_aborts_whole_call(self, root: Path, target: Path):
        manifest = [{"path": "ok.txt"}, {"path": "../escape.txt"}]
        files = [
            {"path": "ok.txt", "contentsBase64": _b64(b"ok")},
            {"path": "../escape.txt", "contentsBase64": _b64(b"bad")},
        ]

        with pytest.raises(SecurityError):
            apply_bundle(target, manifest, files, "overwrite", allowed_roots=[root])

        assert not (target / "ok.txt").exists()
        assert not (root / "escape.txt").exists()

    @pytest.mark.unit
    def test_target_outside_allowed_roots(self, tmp_path: Path):
        allowed = tmp_path / "allowed"
        allowed.mkdir()
        manifest, files = _bundle("a.txt", b"x")

        with pytest.raises(SecurityError):
            apply_bundle(tmp_path / "other", manifest, files, "fail", allowed_roots=[allowed])

        assert not (tmp_path / "other").exists()

    @pytest.mark.unit
    def test_roots_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        allowed = tmp_path / "allowed"
        monkeypatch.setenv("BLUEPRINT_ALLOWED_ROOTS", str(allowed))
        manifest, files = _bundle("a.txt", b"x")

        with pytest.raises(SecurityError):
            apply_bundle(tmp_path / "elsewhere", manifest, files, "fail")

        result = apply_bundle(allowed / "site", manifest, files, "fail")
        assert result.created == ["a.txt"]


class TestValidation:
    @pytest.mark.unit
    def test_bad_base64_writes_nothing(self, root: Path, target: Path):
        manifest = [{"path": "good.txt"}, {"path": "bad.txt"}]
        files = [
            {"path": "good.txt", "contentsBase64": _b64(b"good")},
            {"path": "bad.txt", "contentsBase64": "abc"},
        ]

        with pytest.raises(ValidationError):
            apply_bundle(target, manifest, files, "fail", allowed_roots=[root])

        assert not (target / "good.txt").exists()

    @pytest.mark.unit
    def test_invalid_manifest_entry(self, root: Path, target: Path):
        with pytest.raises(ValidationError):
            apply_bundle(target, [{"path": "x", "mode": "symlink"}], [], "fail", allowed_roots=[root])

    @pytest.mark.unit
    @pytest.mark.parametrize("path", ["/", "", "\\\\"])
    def test_file_entry_naming_the_target_itself(self, root: Path, target: Path, path: str):
        manifest = [{"path": "assets", "mode": "dir"}, {"path": path, "mode": "file"}]
        files = [{"path": path, "contentsBase64": _b64(b"x")}]

        with pytest.raises(ValidationError):
            apply_bundle(target, manifest, files, "overwrite", allowed_roots=[root])

        assert not target.exists()


class TestJobResultSummary:
    @pytest.mark.unit
    def test_no_conflicts_does_not_raise(self):
        JobResultSummary(created=["a"]).raise_for_conflicts()
