"""
Unit tests for the generate_video RQ task.

The RQ job is replaced with an in-memory stand-in and the encoder with
the fake from conftest, so no Redis or FFmpeg is needed.
"""

import os
import time
import uuid
from unittest.mock import MagicMock, patch

import pytest

from worker.app.tasks.frame_engine import InvalidImage, StatusEvent
from worker.app.tasks.generate import (
    CANCEL_POLL_INTERVAL,
    GENERATION_TIMEOUT,
    JobStatusListener,
    cancel_key,
    enqueue_generation,
    generate_video,
    make_abort_check,
    purge_expired_outputs,
)


class FakeConnection:
    """Redis stand-in holding plain keys (set/exists/delete)."""

    def __init__(self):
        self.keys = {}
        self.exists_calls = 0

    def set(self, key, value, ex=None):
        self.keys[key] = value

    def exists(self, key):
        self.exists_calls += 1
        return int(key in self.keys)

    def delete(self, *keys):
        for key in keys:
            self.keys.pop(key, None)


class FakeJob:
    """
    Minimal RQ job.

    Like RQ, ``save_meta()`` writes the whole meta dict back to the store
    and ``get_meta(refresh=True)`` replaces local meta with the stored copy.
    """

    def __init__(self, job_id: str = "job-1", cancel_requested: bool = False):
        self.id = job_id
        self.connection = FakeConnection()
        self.meta = {}
        self.stored_meta = {}
        self.saved = []
        if cancel_requested:
            self.connection.set(cancel_key(job_id), 1)

    def save_meta(self):
        self.stored_meta = dict(self.meta)
        self.saved.append(dict(self.meta))

    def get_meta(self, refresh: bool = True):
        if refresh:
            self.meta = dict(self.stored_meta)
        return self.meta


def request_cancel_from_api(job: FakeJob) -> None:
    """What the backend does for a running job."""
    job.connection.set(cancel_key(job.id), 1, ex=GENERATION_TIMEOUT)


@pytest.fixture
def job():
    return FakeJob()


@pytest.fixture
def task_env(isolated_storage, job, encoder_factory):
    """Patch storage root, current job and encoder for generate_video."""
    with patch("worker.app.tasks.generate.STORAGE_ROOT", isolated_storage), \
         patch("worker.app.tasks.generate.get_current_job", return_value=job), \
         patch("worker.app.tasks.frame_engine.encoder.default_encoder_factory", encoder_factory):
        yield isolated_storage


def write_upload(storage_root, job_id: str, data: bytes) -> str:
    upload_dir = storage_root / "uploads" / job_id
    upload_dir.mkdir(parents=True)
    (upload_dir / "source.png").write_bytes(data)
    return f"uploads/{job_id}/source.png"


class TestGenerateVideo:
    """Tests for the full task flow."""

    def test_success(self, task_env, job, make_image_bytes):
        job_id = str(uuid.uuid4())
        image_path = write_upload(task_env, job_id, make_image_bytes(80, 60))

        result = generate_video(job_id, image_path, 1, "zoom-in", "a red square")

        assert result["status"] == "complete"
        assert result["output_path"] == f"outputs/{job_id}/video-generado.webm"
        assert result["frame_count"] == 30
        assert result["mime_type"] == "video/webm"
        assert result["filename"] == "video-generado.webm"

        output = task_env / result["output_path"]
        assert output.exists()
        assert result["file_size"] == output.stat().st_size

        assert not (task_env / image_path).exists()
        assert not (task_env / "uploads" / job_id).exists()

        assert job.meta["status"] == "complete"
        assert job.meta["progress_percent"] == 100
        percents = [m["progress_percent"] for m in job.saved]
        assert percents == sorted(percents)

    def test_cancel_requested(self, task_env, make_image_bytes):
        job_id = str(uuid.uuid4())
        job = FakeJob(job_id, cancel_requested=True)
        image_path = write_upload(task_env, job_id, make_image_bytes())

        with patch("worker.app.tasks.generate.get_current_job", return_value=job):
            result = generate_video(job_id, image_path, 2, "fade")

        assert result == {"status": "cancelled", "job_id": job_id}
        assert job.meta["status"] == "cancelled"
        assert job.connection.exists_calls == 1
        assert cancel_key(job_id) not in job.connection.keys
        assert not (task_env / "outputs" / job_id).exists()
        assert not (task_env / image_path).exists()

    def test_cancel_during_render(self, task_env, make_image_bytes):
        """A cancel that arrives mid-render stops the job despite progress writes."""
        job_id = str(uuid.uuid4())
        job = FakeJob(job_id)
        image_path = write_upload(task_env, job_id, make_image_bytes())
        frames_seen = []
        frame_progress = JobStatusListener.frame_progress

        def frame_progress_then_cancel(listener, current, total):
            frame_progress(listener, current, total)
            frames_seen.append(current)
            if current == 10:
                request_cancel_from_api(job)

        with patch("worker.app.tasks.generate.get_current_job", return_value=job), \
             patch.object(JobStatusListener, "frame_progress", frame_progress_then_cancel):
            result = generate_video(job_id, image_path, 10, "zoom-in")

        assert result == {"status": "cancelled", "job_id": job_id}
        assert max(frames_seen) < 2 * CANCEL_POLL_INTERVAL
        assert job.stored_meta["status"] == "cancelled"
        assert cancel_key(job_id) not in job.connection.keys

    def test_invalid_image(self, task_env, job):
        job_id = str(uuid.uuid4())
        image_path = write_upload(task_env, job_id, b"this is not a png")

        with pytest.raises(InvalidImage):
            generate_video(job_id, image_path, 5, "zoom-in")

        assert job.meta["status"] == "failed"
        assert job.meta["error"] == "invalid-image"
        assert not (task_env / image_path).exists()

    def test_missing_upload(self, task_env, job):
        with pytest.raises(FileNotFoundError):
            generate_video(str(uuid.uuid4()), "uploads/missing/source.png", 5, "zoom-in")
        assert job.meta["status"] == "failed"

    def test_runs_without_rq_job(self, isolated_storage, encoder_factory, make_image_bytes):
        job_id = str(uuid.uuid4())
        image_path = write_upload(isolated_storage, job_id, make_image_bytes())

        with patch("worker.app.tasks.generate.STORAGE_ROOT", isolated_storage), \
             patch("worker.app.tasks.generate.get_current_job", return_value=None), \
             patch("worker.app.tasks.frame_engine.encoder.default_encoder_factory", encoder_factory):
            result = generate_video(job_id, image_path, 1, "shake")

        assert result["status"] == "complete"


class TestAbortCheck:
    """Tests for cancellation polling."""

    def test_polls_every_interval(self):
        job = FakeJob(cancel_requested=True)
        should_abort = make_abort_check(job, interval=CANCEL_POLL_INTERVAL)

        answers = [should_abort() for _ in range(CANCEL_POLL_INTERVAL)]

        assert answers[:-1] == [False] * (CANCEL_POLL_INTERVAL - 1)
        assert answers[-1] is True
        assert job.connection.exists_calls == 1

    def test_no_cancel(self):
        job = FakeJob()
        should_abort = make_abort_check(job, interval=2)
        assert not any(should_abort() for _ in range(10))
        assert job.connection.exists_calls == 5

    def test_cancel_survives_progress_writes(self, job):
        """Progress saves rewrite job meta; the cancel request must still be seen."""
        with patch("worker.app.tasks.generate.get_current_job", return_value=job):
            listener = JobStatusListener()
            should_abort = make_abort_check(job, interval=CANCEL_POLL_INTERVAL)
            listener.notify(StatusEvent.RENDERING)

            for frame in range(1, 11):
                listener.frame_progress(frame, 300)
                assert should_abort() is False

            # Another writer flags the meta too; the next progress save drops it
            job.stored_meta["cancel_requested"] = True
            request_cancel_from_api(job)

            aborted_at = None
            for frame in range(11, 60):
                listener.frame_progress(frame, 300)
                if should_abort():
                    aborted_at = frame
                    break

        assert "cancel_requested" not in job.stored_meta
        assert aborted_at == CANCEL_POLL_INTERVAL

    def test_without_job(self):
        should_abort = make_abort_check(None, interval=1)
        assert should_abort() is False


class TestPurgeExpiredOutputs:
    """Tests for output retention."""

    def test_removes_only_expired(self, isolated_storage):
        old_dir = isolated_storage / "outputs" / "old"
        new_dir = isolated_storage / "outputs" / "new"
        for directory in (old_dir, new_dir):
            directory.mkdir()
            (directory / "video-generado.webm").write_bytes(b"webm")
        stale = time.time() - 7200
        os.utime(old_dir, (stale, stale))

        with patch("worker.app.tasks.generate.STORAGE_ROOT", isolated_storage):
            removed = purge_expired_outputs(max_age_seconds=3600)

        assert removed == 1
        assert not old_dir.exists()
        assert new_dir.exists()

    def test_missing_outputs_dir(self, tmp_path):
        with patch("worker.app.tasks.generate.STORAGE_ROOT", tmp_path):
            assert purge_expired_outputs() == 0

    def test_task_purges_before_running(self, task_env, job, make_image_bytes):
        old_dir = task_env / "outputs" / str(uuid.uuid4())
        old_dir.mkdir()
        stale = time.time() - 10 * 24 * 3600
        os.utime(old_dir, (stale, stale))
        job_id = str(uuid.uuid4())
        image_path = write_upload(task_env, job_id, make_image_bytes())

        result = generate_video(job_id, image_path, 1, "fade")

        assert result["status"] == "complete"
        assert not old_dir.exists()
        assert (task_env / result["output_path"]).exists()


class TestJobStatusListener:
    """Tests for mapping pipeline events onto job metadata."""

    def test_event_progress(self, job):
        with patch("worker.app.tasks.generate.get_current_job", return_value=job):
            listener = JobStatusListener()
            listener.notify(StatusEvent.STARTED)
            assert job.meta["status"] == "running"
            assert job.meta["stage"] == "started"

            listener.notify(StatusEvent.RENDERING)
            listener.frame_progress(15, 30)
            assert job.meta["progress_percent"] == 52
            assert job.meta["progress_message"] == "Rendering frame 15/30"

            listener.notify(StatusEvent.DONE)
            assert job.meta["progress_percent"] == 100
            assert job.meta["status"] == "complete"

    def test_frame_progress_only_saves_on_change(self, job):
        with patch("worker.app.tasks.generate.get_current_job", return_value=job):
            listener = JobStatusListener()
            for i in range(1, 301):
                listener.frame_progress(i, 300)

        # One save per percentage point from 15 through 90
        assert len(job.saved) == 76

    def test_failure_keeps_last_percent(self, job):
        with patch("worker.app.tasks.generate.get_current_job", return_value=job):
            listener = JobStatusListener()
            listener.notify(StatusEvent.RENDERING)
            listener.notify(StatusEvent.FAILED, "encoding-failure")

        assert job.meta["status"] == "failed"
        assert job.meta["error"] == "encoding-failure"
        assert job.meta["progress_percent"] == 15


def test_enqueue_generation():
    queue = MagicMock()
    with patch("worker.app.queues.generate_queue", queue):
        enqueue_generation("job-1", "uploads/job-1/source.png", 5, "rotate", None)

    queue.enqueue.assert_called_once_with(
        generate_video,
        "job-1",
        "uploads/job-1/source.png",
        5,
        "rotate",
        None,
        job_id="job-1",
        job_timeout=GENERATION_TIMEOUT,
    )
