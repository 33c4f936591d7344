"""Tests for batch reports"""

from audio_catalog.ingest.report import (
    STATUS_FAILED,
    STATUS_SUCCEEDED,
    STATUS_SUCCEEDED_PARTIAL,
    BatchReport,
    ItemResult,
)


class TestBatchReport:
    """Test per-item result grouping"""

    def test_grouping_and_summary(self):
        """Test results are grouped by status"""
        report = BatchReport([
            ItemResult(source="a.mp3", stage="done", status=STATUS_SUCCEEDED, track_id="t1"),
            ItemResult(source="b.mp3", stage="done", status=STATUS_SUCCEEDED_PARTIAL, missing_tiers=["low"]),
            ItemResult(source="c.mp3", stage="extraction", status=STATUS_FAILED,
                       error_kind="corrupt_file", reason="Unrecognized audio container"),
            ItemResult(source="d.mp3", stage="transcoding", status=STATUS_FAILED,
                       error_kind="cancelled", reason="cancelled"),
        ])

        assert report.summary() == "1 succeeded, 1 partial, 2 failed (of 4)"
        assert [r.source for r in report.failed] == ["c.mp3", "d.mp3"]
        assert report.result_for("b.mp3").is_partial
        assert report.result_for("b.mp3").succeeded
        assert report.result_for("d.mp3").cancelled
        assert not report.result_for("c.mp3").cancelled
        assert report.result_for("missing.mp3") is None

    def test_to_dict(self):
        """Test results serialize for logs and front ends"""
        result = ItemResult(source="c.mp3", stage="extraction", status=STATUS_FAILED, error_kind="corrupt_file")
        assert result.to_dict()["error_kind"] == "corrupt_file"
        assert result.to_dict()["missing_tiers"] == []
