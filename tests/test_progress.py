"""Tests for the ingest progress bar"""

from audio_catalog.core.progress import IngestProgressBar
from audio_catalog.ingest.report import STATUS_FAILED, STATUS_SUCCEEDED, STATUS_SUCCEEDED_PARTIAL, ItemResult


class TestIngestProgressBar:
    """Test counters fed by item results"""

    def test_counts_from_results(self):
        """Test each status lands in its own counter"""
        progress = IngestProgressBar(total=3)

        progress.update_from_result(ItemResult(source="/in/a.mp3", stage="done", status=STATUS_SUCCEEDED))
        progress.update_from_result(ItemResult(source="/in/b.mp3", stage="done",
                                               status=STATUS_SUCCEEDED_PARTIAL, missing_tiers=["low"]))
        progress.update_from_result(ItemResult(source="/in/c.mp3", stage="extraction", status=STATUS_FAILED))

        assert (progress.succeeded, progress.partial, progress.failed) == (1, 1, 1)
        assert progress.completed == 3
        assert progress.last_item == "c.mp3"
        assert "⚠ 1" in progress.counts_text()

    def test_long_names_shortened(self):
        """Test the last item column keeps a fixed width"""
        progress = IngestProgressBar(total=1)
        progress.update_from_result(ItemResult(source="/in/" + "x" * 60 + ".mp3", stage="done",
                                               status=STATUS_SUCCEEDED))

        assert len(progress.last_item) == 28
        assert progress.last_item.endswith("…")
        assert "⚠" not in progress.counts_text()
