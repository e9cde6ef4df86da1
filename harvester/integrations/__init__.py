"""Integration helpers for external social-media and web ingestion."""

from __future__ import annotations

from .scrapers.pipeline import (
    IngestionOutcome,
    IngestionRequest,
    IngestionServices,
    create_services,
    ingest_account,
    run_ingestion,
)

__all__ = [
    "IngestionOutcome",
    "IngestionRequest",
    "IngestionServices",
    "create_services",
    "ingest_account",
    "run_ingestion",
]
