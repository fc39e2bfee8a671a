"""Pydantic models for dump results."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class FetchFailure(BaseModel):
    """A per-node detail fetch that failed and was skipped."""

    value_id: str
    method: str
    message: str


class DetailFetchResult(BaseModel):
    """Per-node layout and details payloads keyed by diagnostics ``valueId``."""

    layout_by_id: dict[str, Any] = Field(default_factory=dict)
    """``getLayoutExplorerNode`` results."""

    details_by_id: dict[str, Any] = Field(default_factory=dict)
    """``getDetailsSubtree`` results."""

    failures: list[FetchFailure] = Field(default_factory=list)
    """Fetches that failed; their entries are missing from the maps."""

    node_ids: list[str] = Field(default_factory=list)
    """Discovered ids, in traversal order."""


class AssetIssue(BaseModel):
    """An image asset that could not be embedded."""

    image_path: str
    """Raw ``imagePath`` value reported by the crawler."""

    resolved_path: Path | None = None
    """Path that was tried on disk."""

    error: str
    """Marker stored on the node (``properties.error``)."""


class DesignDumpResult(BaseModel):
    """Result of a full design dump."""

    dump_dir: Path
    summary_path: Path
    layout_path: Path
    details_path: Path
    merged_path: Path

    node_count: int
    """Number of distinct ``valueId`` entries discovered."""

    layout_count: int
    details_count: int
    failures: list[FetchFailure] = Field(default_factory=list)


class LayoutDumpResult(BaseModel):
    """Result of a crawler-based layout dump."""

    dump_dir: Path
    raw_path: Path
    """Raw evaluation string, written before parsing."""

    final_path: Path
    """Final JSON with embedded assets."""

    success_log_path: Path
    node_count: int
    raw_length: int

    complete: bool
    """False when the raw string may still be truncated."""

    asset_issues: list[AssetIssue] = Field(default_factory=list)
    details: DetailFetchResult | None = None
    """Per-node details when requested."""
