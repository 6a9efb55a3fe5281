"""Tests for conversion job models."""

from datetime import datetime, timezone

from hlsconv.conversion.models import (
    DownloadDescriptor,
    Job,
    JobStatus,
    new_job,
    not_found_job,
)


class TestJobStatus:
    def test_terminal_states(self) -> None:
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.ERROR.is_terminal
        assert not JobStatus.STARTING.is_terminal
        assert not JobStatus.PROCESSING.is_terminal
        assert not JobStatus.NOT_FOUND.is_terminal


class TestJob:
    """Tests for Job records."""

    def test_new_job_starts_at_zero(self) -> None:
        job = new_job("abc")
        assert job.status is JobStatus.STARTING
        assert job.progress == 0
        assert job.download is None

    def test_not_found_placeholder(self) -> None:
        job = not_found_job("missing")
        data = job.to_dict()
        assert data.pop("updated_at") == job.updated_at.isoformat()
        assert data == {
            "job_id": "missing",
            "status": "not_found",
            "progress": 0,
            "message": "Job not found. It may have expired or never existed.",
        }

    def test_evolve_returns_new_record(self) -> None:
        job = new_job("abc")
        updated = job.evolve(status=JobStatus.PROCESSING, progress=5)
        assert job.status is JobStatus.STARTING
        assert updated.status is JobStatus.PROCESSING
        assert updated.job_id == "abc"
        assert updated.updated_at >= job.updated_at

    def test_to_dict_reports_last_update(self) -> None:
        stamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        job = new_job("abc").evolve(progress=40, updated_at=stamp)
        assert job.to_dict()["updated_at"] == "2024-05-01T12:30:00+00:00"

    def test_to_dict_flattens_download(self) -> None:
        job = Job(
            job_id="abc",
            status=JobStatus.COMPLETED,
            progress=100,
            message="done",
            download=DownloadDescriptor(
                filename="clip_abc.mp4",
                download_url="http://host/downloads/clip_abc.mp4",
                size=42,
            ),
        )
        data = job.to_dict()
        assert data["filename"] == "clip_abc.mp4"
        assert data["download_url"] == "http://host/downloads/clip_abc.mp4"
        assert data["size"] == 42
        assert "download" not in data
