"""
Per-item and per-batch ingestion results.

Each file handed to Orchestrator.ingest_batch() ends in exactly one
ItemResult; the BatchReport collects them in input order.

Statuses:
    succeeded          - persisted with every configured tier
    succeeded_partial  - persisted, some optional tiers missing
    failed             - not persisted; `stage` names where it stopped
"""

from dataclasses import dataclass, field
from enum import Enum


class ItemState(str, Enum):
    """States of one item's pipeline. PERSISTED and FAILED are terminal."""
    SELECTED = "selected"
    METADATA_EXTRACTED = "metadata_extracted"
    ALBUM_RESOLVED = "album_resolved"
    TRANSCODING = "transcoding"
    UPLOADING = "uploading"
    PERSISTED = "persisted"
    FAILED = "failed"


class ItemStage(str, Enum):
    """Stage an item was working on; reported with failures."""
    EXTRACTION = "extraction"
    ALBUM_RESOLUTION = "album_resolution"
    TRANSCODING = "transcoding"
    UPLOADING = "uploading"
    PERSISTENCE = "persistence"
    DONE = "done"


STATUS_SUCCEEDED = "succeeded"
STATUS_SUCCEEDED_PARTIAL = "succeeded_partial"
STATUS_FAILED = "failed"

CANCELLED_REASON = "cancelled"


@dataclass
class ItemResult:
    """
    Outcome of one file.

    Attributes:
        source: Input file path as given.
        stage: Stage reached ("done" on success, failing stage otherwise).
        status: succeeded | succeeded_partial | failed.
        track_id: Persisted track id (None on failure).
        album_id: Resolved album id, if resolution happened.
        missing_tiers: Optional tiers that could not be produced.
        error_kind: CatalogError.kind of the failure ("cancelled" if cancelled).
        reason: Human-readable failure reason.
    """
    source: str
    stage: str
    status: str
    track_id: str | None = None
    album_id: str | None = None
    missing_tiers: list[str] = field(default_factory=list)
    error_kind: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != STATUS_FAILED

    @property
    def is_partial(self) -> bool:
        return self.status == STATUS_SUCCEEDED_PARTIAL

    @property
    def cancelled(self) -> bool:
        return self.status == STATUS_FAILED and self.reason == CANCELLED_REASON

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "stage": self.stage,
            "status": self.status,
            "track_id": self.track_id,
            "album_id": self.album_id,
            "missing_tiers": list(self.missing_tiers),
            "error_kind": self.error_kind,
            "reason": self.reason,
        }


@dataclass
class BatchReport:
    """Results of one ingest_batch() call, in input order."""
    results: list[ItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> list[ItemResult]:
        return [r for r in self.results if r.status == STATUS_SUCCEEDED]

    @property
    def partial(self) -> list[ItemResult]:
        return [r for r in self.results if r.status == STATUS_SUCCEEDED_PARTIAL]

    @property
    def failed(self) -> list[ItemResult]:
        return [r for r in self.results if r.status == STATUS_FAILED]

    def result_for(self, source: str) -> ItemResult | None:
        for result in self.results:
            if result.source == source:
                return result
        return None

    def summary(self) -> str:
        return (
            f"{len(self.succeeded)} succeeded, {len(self.partial)} partial, "
            f"{len(self.failed)} failed (of {self.total})"
        )
