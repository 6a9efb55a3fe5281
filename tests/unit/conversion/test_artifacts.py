"""Tests for the artifact store."""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path

import pytest
from fakes import write_artifact

from hlsconv.conversion.artifacts import (
    ArtifactStore,
    DeleteOutcome,
    is_safe_name,
    sanitize_filename,
)


class TestSanitizeFilename:
    """Tests for sanitize_filename()."""

    def test_strips_unsafe_characters_and_extension(self) -> None:
        assert sanitize_filename("My Clip!!.mp4") == "MyClip"

    def test_extension_match_is_case_insensitive(self) -> None:
        assert sanitize_filename("clip.MP4") == "clip"

    def test_keeps_underscore_and_hyphen(self) -> None:
        assert sanitize_filename("a_b-c") == "a_b-c"

    def test_truncates_to_fifty_characters(self) -> None:
        assert len(sanitize_filename("x" * 80)) == 50

    def test_falls_back_when_nothing_survives(self) -> None:
        assert sanitize_filename("!!!") == "video"
        assert sanitize_filename(".mp4") == "video"

    def test_path_components_are_flattened(self) -> None:
        assert sanitize_filename("../../etc/passwd") == "etcpasswd"


class TestIsSafeName:
    def test_rejects_traversal_and_separators(self) -> None:
        assert not is_safe_name("../../etc/passwd")
        assert not is_safe_name("a/b.mp4")
        assert not is_safe_name("a\\b.mp4")
        assert not is_safe_name("..")
        assert not is_safe_name("")

    def test_accepts_plain_names(self) -> None:
        assert is_safe_name("clip_abc123.mp4")


class TestOutputName:
    """Tests for ArtifactStore.output_name()."""

    def test_appends_job_id_and_extension(self, store: ArtifactStore) -> None:
        name = store.output_name("My Clip!!.mp4", "abc123")
        assert name == "MyClip_abc123.mp4"
        assert re.fullmatch(r"[A-Za-z0-9_-]{1,50}_abc123\.mp4", name)

    def test_same_raw_name_never_collides(self, store: ArtifactStore) -> None:
        first = store.output_name("clip", "job-1")
        second = store.output_name("clip", "job-2")
        assert first != second

    def test_path_for_is_inside_directory(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        path = store.path_for("clip_1.mp4")
        assert path.is_absolute()
        assert path.parent == downloads_dir.absolute()


class TestFinalize:
    """Tests for ArtifactStore.finalize()."""

    def test_missing_file(self, store: ArtifactStore, downloads_dir: Path) -> None:
        check = store.finalize(downloads_dir / "missing.mp4")
        assert check.exists is False
        assert check.is_usable is False

    def test_empty_file(self, store: ArtifactStore, downloads_dir: Path) -> None:
        path = downloads_dir / "empty.mp4"
        path.touch()
        check = store.finalize(path)
        assert check.exists is True
        assert check.size == 0
        assert check.is_usable is False

    def test_non_empty_file(self, store: ArtifactStore, downloads_dir: Path) -> None:
        path = downloads_dir / "clip.mp4"
        write_artifact(path, 5_242_880)
        check = store.finalize(path)
        assert check.is_usable is True
        assert check.size == 5_242_880


class TestDownloadDescriptor:
    def test_builds_url_from_base(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        path = downloads_dir / "clip_abc.mp4"
        write_artifact(path, 10)
        descriptor = store.build_download_descriptor(
            path, "http://example.com:3000/", 10
        )
        assert descriptor.filename == "clip_abc.mp4"
        assert descriptor.download_url == "http://example.com:3000/downloads/clip_abc.mp4"
        assert descriptor.size == 10


class TestResolveDownload:
    def test_existing_file(self, store: ArtifactStore, downloads_dir: Path) -> None:
        write_artifact(downloads_dir / "clip.mp4", 1)
        assert store.resolve_download("clip.mp4") == downloads_dir / "clip.mp4"

    def test_missing_file(self, store: ArtifactStore) -> None:
        assert store.resolve_download("nope.mp4") is None

    def test_unsafe_name_raises(self, store: ArtifactStore) -> None:
        with pytest.raises(ValueError):
            store.resolve_download("../secret")


class TestDelete:
    """Tests for ArtifactStore.delete()."""

    def test_traversal_is_invalid(self, store: ArtifactStore) -> None:
        assert store.delete("../../etc/passwd") is DeleteOutcome.INVALID_NAME

    def test_separator_is_invalid(self, store: ArtifactStore) -> None:
        assert store.delete("a/b.mp4") is DeleteOutcome.INVALID_NAME

    def test_missing_is_not_found(self, store: ArtifactStore) -> None:
        assert store.delete("nonexistent.mp4") is DeleteOutcome.NOT_FOUND

    def test_directory_is_not_found(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        (downloads_dir / "subdir").mkdir()
        assert store.delete("subdir") is DeleteOutcome.NOT_FOUND

    def test_deletes_existing(self, store: ArtifactStore, downloads_dir: Path) -> None:
        path = downloads_dir / "clip.mp4"
        write_artifact(path, 1)
        assert store.delete("clip.mp4") is DeleteOutcome.OK
        assert not path.exists()

    def test_second_delete_is_not_found(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        write_artifact(downloads_dir / "clip.mp4", 1)
        store.delete("clip.mp4")
        assert store.delete("clip.mp4") is DeleteOutcome.NOT_FOUND


class TestSweep:
    """Tests for ArtifactStore.sweep()."""

    def _age(self, path: Path, seconds: float) -> None:
        old = time.time() - seconds
        os.utime(path, (old, old))

    def test_removes_files_older_than_an_hour(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        old = downloads_dir / "old.mp4"
        new = downloads_dir / "new.mp4"
        write_artifact(old, 1)
        write_artifact(new, 1)
        self._age(old, 3601)
        self._age(new, 3500)

        removed = store.sweep()

        assert removed == 1
        assert not old.exists()
        assert new.exists()

    def test_file_deleted_during_sweep_is_skipped(
        self,
        store: ArtifactStore,
        downloads_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        names = ["a.mp4", "b.mp4", "c.mp4"]
        for name in names:
            write_artifact(downloads_dir / name, 1)
            self._age(downloads_dir / name, 7200)

        original_unlink = Path.unlink

        def racing_unlink(path: Path, *args, **kwargs) -> None:
            if path.name == "b.mp4":
                # A DELETE request removes it between stat() and unlink()
                original_unlink(path)
                raise FileNotFoundError(path)
            original_unlink(path, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", racing_unlink)

        with caplog.at_level(logging.INFO, logger="hlsconv.conversion.artifacts"):
            removed = store.sweep()

        assert removed == 2
        assert list(downloads_dir.iterdir()) == []
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        removed_names = [r.getMessage() for r in caplog.records]
        assert "Removed expired artifact: b.mp4" not in removed_names

    def test_custom_max_age(self, store: ArtifactStore, downloads_dir: Path) -> None:
        path = downloads_dir / "clip.mp4"
        write_artifact(path, 1)
        self._age(path, 120)
        assert store.sweep(max_age_seconds=60) == 1

    def test_explicit_now(self, store: ArtifactStore, downloads_dir: Path) -> None:
        path = downloads_dir / "clip.mp4"
        write_artifact(path, 1)
        assert store.sweep(now=time.time() + 7200) == 1

    def test_ignores_subdirectories(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        sub = downloads_dir / "nested"
        sub.mkdir()
        self._age(sub, 7200)
        assert store.sweep() == 0
        assert sub.exists()

    def test_missing_directory(self, tmp_path: Path) -> None:
        store = ArtifactStore(tmp_path / "does-not-exist")
        assert store.sweep() == 0

    def test_ensure_directory_creates_it(self, tmp_path: Path) -> None:
        store = ArtifactStore(tmp_path / "a" / "b")
        store.ensure_directory()
        assert (tmp_path / "a" / "b").is_dir()
