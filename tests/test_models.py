"""Tests for models.py -- enums, constants, and data types."""

from image_enhance_pipeline.models import (
    IMAGE_EXTENSIONS,
    IMAGE_MODELS,
    OUTPUT_FORMATS,
    Entry,
    EntryKind,
    ImageEndpoint,
    ImageQuality,
    Job,
    RunSummary,
    SkipReason,
)


class TestEnums:
    def test_entry_kind_values(self):
        assert {k.value for k in EntryKind} == {"file", "folder", "deleted"}

    def test_entry_kind_compares_to_str(self):
        assert EntryKind.FILE == "file"

    def test_endpoints(self):
        assert [e.value for e in ImageEndpoint] == ["responses", "generate"]

    def test_quality(self):
        assert [q.value for q in ImageQuality] == ["auto", "low", "medium", "high"]


class TestConstants:
    def test_image_extensions(self):
        assert IMAGE_EXTENSIONS == {".png", ".jpg", ".jpeg", ".webp"}

    def test_default_model_first(self):
        assert IMAGE_MODELS[0] == "gpt-image-1.5"

    def test_output_formats(self):
        assert OUTPUT_FORMATS == ("png", "jpeg", "webp")


class TestJob:
    def test_from_entry(self):
        job = Job.from_entry(
            Entry(kind="file", path_lower="/input/sub/photo.jpg"),
            output_root="/output",
            suffix="_ENHANCED",
            output_format="png",
        )
        assert job.input_path == "/input/sub/photo.jpg"
        assert job.filename == "photo.jpg"
        assert job.output_path == "/output/photo_ENHANCED.png"


class TestRunSummary:
    def test_starts_at_zero(self):
        summary = RunSummary()
        assert summary.pages_scanned == 0
        assert summary.enqueued_jobs == 0
        assert summary.skipped_total == 0
        assert set(summary.skipped) == {r.value for r in SkipReason}

    def test_record_skip(self):
        summary = RunSummary()
        summary.record_skip(SkipReason.NON_IMAGE)
        summary.record_skip(SkipReason.NON_IMAGE)
        summary.record_skip(SkipReason.OUTSIDE_ROOT)
        assert summary.skipped["non_image"] == 2
        assert summary.skipped_total == 3

    def test_as_dict(self):
        data = RunSummary(trigger="webhook", request_id="r1").as_dict()
        assert data["trigger"] == "webhook"
        assert data["skipped"]["missing_path"] == 0
        assert "duration_seconds" in data
