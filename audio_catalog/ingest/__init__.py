"""
Ingest module for audio-catalog.

Components:
    - AppContext: shared handles built once at startup
    - Orchestrator: batch ingestion, audio replacement, deletion
    - BatchReport / ItemResult: per-item outcomes

Usage:
    from audio_catalog.ingest import AppContext, Orchestrator

    orchestrator = Orchestrator(AppContext.create(config))
    report = await orchestrator.ingest_batch(paths)
"""

from audio_catalog.ingest.context import AppContext
from audio_catalog.ingest.orchestrator import Orchestrator
from audio_catalog.ingest.report import (
    BatchReport,
    ItemResult,
    ItemStage,
    ItemState,
)

__all__ = [
    "AppContext",
    "Orchestrator",
    "BatchReport",
    "ItemResult",
    "ItemStage",
    "ItemState",
]
