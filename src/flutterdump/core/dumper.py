"""Dump orchestration: run the inspector calls and persist the artifacts."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flutterdump.core.assets import embed_images
from flutterdump.core.injector import CRAWLER_LIBRARY_MARKER
from flutterdump.core.poller import wait_for_ready
from flutterdump.core.reconstructor import resolve_string
from flutterdump.core.session import Session
from flutterdump.core.tree import count_nodes, discover_and_fetch
from flutterdump.exceptions import CrawlerReportedError, ParseFailure, RemoteRpcError
from flutterdump.models.dump import DesignDumpResult, LayoutDumpResult
from flutterdump.models.vm import LibraryRef

# Dump directories, relative to the Flutter project
DESIGN_DUMP_DIR = "flutter_inspector_dump"
LAYOUT_DUMP_DIR = "flutter_figma_dump"

# Artifact names
SUMMARY_TREE_FILE = "summary_tree.json"
LAYOUT_BY_ID_FILE = "layout_by_id.json"
DETAILS_BY_ID_FILE = "details_by_id.json"
FULL_DESIGN_FILE = "full_design.json"
RAW_LAYOUT_FILE = "figma_layout_raw.json"
FINAL_LAYOUT_FILE = "figma_layout.json"
ERROR_LOG_FILE = "error_log.txt"
SUCCESS_LOG_FILE = "success_log.txt"

ENTRY_POINT_EXPRESSION = "figmaExtractorEntryPoint()"

ERROR_WINDOW = 200
ERROR_EDGE = 1000


def write_json(path: Path, data: Any) -> Path:
    """Write ``data`` as indented UTF-8 JSON."""
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def dump_design(
    session: Session,
    dump_dir: Path,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> DesignDumpResult:
    """Dump the root widget summary tree plus layout/details for every node.

    Args:
        session: Open dump session.
        dump_dir: Directory receiving the artifacts.
        sleep: Sleep function (replaceable in tests).

    Returns:
        DesignDumpResult describing the written files.
    """
    settings = session.settings
    log = session.log
    group = settings.object_group
    dump_dir.mkdir(parents=True, exist_ok=True)

    isolate_id = session.main_isolate_id()

    # Reset the inspector selection; older frameworks reject these
    try:
        session.inspector("setSelectionById", isolate_id, id="0", objectGroup=group)
    except RemoteRpcError as e:
        log.info("setSelectionById(0) failed (ignored): {}", e)
    try:
        session.inspector("getSelectedWidget", isolate_id, objectGroup=group)
    except RemoteRpcError as e:
        log.info("getSelectedWidget failed (ignored): {}", e)

    sleep(settings.settle_delay)

    tree = wait_for_ready(
        lambda: session.inspector(
            "getRootWidgetSummaryTree",
            isolate_id,
            objectGroup=group,
            isSummaryTree=True,
            withPreviews=True,
        ),
        settings.max_attempts,
        settings.retry_interval,
        description="getRootWidgetSummaryTree",
        sleep=sleep,
        log=log,
    )
    summary_path = write_json(dump_dir / SUMMARY_TREE_FILE, tree)
    log.info("Saved {}", summary_path)

    details = discover_and_fetch(
        session,
        tree,
        isolate_id=isolate_id,
        object_group=group,
        node_delay=settings.node_delay,
        sleep=sleep,
    )

    layout_path = write_json(dump_dir / LAYOUT_BY_ID_FILE, details.layout_by_id)
    details_path = write_json(dump_dir / DETAILS_BY_ID_FILE, details.details_by_id)
    merged_path = write_json(
        dump_dir / FULL_DESIGN_FILE,
        {
            "summaryTree": tree,
            "layoutById": details.layout_by_id,
            "detailsById": details.details_by_id,
        },
    )
    log.info("Saved {}, {} and {}", layout_path, details_path, merged_path)

    return DesignDumpResult(
        dump_dir=dump_dir,
        summary_path=summary_path,
        layout_path=layout_path,
        details_path=details_path,
        merged_path=merged_path,
        node_count=len(details.node_ids),
        layout_count=len(details.layout_by_id),
        details_count=len(details.details_by_id),
        failures=details.failures,
    )


def find_crawler_library(session: Session, isolate_id: str) -> LibraryRef | None:
    """Find the injected crawler library in the isolate, if loaded."""
    isolate = session.get_isolate(isolate_id)
    libraries = [LibraryRef.model_validate(lib) for lib in isolate.get("libraries") or []]

    for library in libraries:
        if CRAWLER_LIBRARY_MARKER in library.uri:
            session.log.info("Found crawler library: {} ({})", library.uri, library.id)
            return library

    session.log.warning("Crawler library not found, available libraries:")
    for library in libraries[:10]:
        session.log.warning("  - {}", library.uri)
    if len(libraries) > 10:
        session.log.warning("  ... and {} more", len(libraries) - 10)
    return None


def evaluate_entry_point(
    session: Session, isolate_id: str, library: LibraryRef | None
) -> Any:
    """Call the crawler entry point, in its library scope when possible."""
    if library is not None:
        try:
            return session.evaluate(isolate_id, ENTRY_POINT_EXPRESSION, target_id=library.id)
        except RemoteRpcError as e:
            session.log.warning("Library scope evaluation failed, retrying globally: {}", e)

    try:
        return session.evaluate(isolate_id, ENTRY_POINT_EXPRESSION)
    except RemoteRpcError as e:
        raise RemoteRpcError(
            f"{ENTRY_POINT_EXPRESSION} not found; make sure hot reload completed: {e}",
            e.error,
        ) from e


def write_parse_error_log(path: Path, text: str, error: json.JSONDecodeError) -> Path:
    """Write the context around a JSON decode failure."""
    lines = [
        "JSON parse error",
        f"Message: {error.msg}",
        f"JSON length: {len(text)} characters",
        "",
    ]

    start = max(0, error.pos - ERROR_WINDOW)
    end = min(len(text), error.pos + ERROR_WINDOW)
    lines += [
        f"Error position: {error.pos} (line {error.lineno}, column {error.colno})",
        f"Text around error ({start}-{end}):",
        text[start:end],
        "",
        f"First {ERROR_EDGE} characters:",
        text[:ERROR_EDGE],
        "",
    ]
    if len(text) > ERROR_EDGE:
        lines += [f"Last {ERROR_EDGE} characters:", text[-ERROR_EDGE:], ""]

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def parse_layout_json(text: str, raw_path: Path, dump_dir: Path) -> Any:
    """Decode the crawler output, writing an error log on failure.

    Raises:
        ParseFailure: If ``text`` is not valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        error_log = write_parse_error_log(dump_dir / ERROR_LOG_FILE, text, e)
        raise ParseFailure(
            f"JSON parse failed: {e}\n"
            f"Raw JSON saved to: {raw_path}\n"
            f"Error details: {error_log}\n"
            f"JSON length: {len(text)} characters\n"
            f"First 500 characters: {text[:500]}...",
            position=e.pos,
        ) from e


def check_crawler_error(data: Any) -> None:
    """Raise if the crawler reported an error instead of a layout.

    Raises:
        CrawlerReportedError: If ``data`` has an ``error`` field.
    """
    if not isinstance(data, dict) or not data.get("error"):
        return

    message = str(data["error"])
    if data.get("debug"):
        message += f"\nDebug info: {data['debug']}"
    if data.get("hint"):
        message += f"\nHint: {data['hint']}"
    if data.get("stackTrace"):
        message += f"\n\nStack trace:\n{data['stackTrace']}"
    raise CrawlerReportedError(message)


def dump_layout(
    session: Session,
    dump_dir: Path,
    project_path: Path,
    *,
    include_details: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> LayoutDumpResult:
    """Evaluate the injected crawler and persist its layout document.

    The raw string is written to disk before parsing, so a failed parse
    never loses data.

    Args:
        session: Open dump session.
        dump_dir: Directory receiving the artifacts.
        project_path: Flutter project root (base for image assets).
        include_details: Also fetch layout/details for every ``valueId``.
        sleep: Sleep function (replaceable in tests).

    Returns:
        LayoutDumpResult describing the written files.
    """
    settings = session.settings
    log = session.log
    dump_dir.mkdir(parents=True, exist_ok=True)

    isolate_id = session.main_isolate_id()
    library = find_crawler_library(session, isolate_id)

    # Give the reloaded app time to render
    sleep(settings.evaluate_delay)

    log.info("Evaluating {}", ENTRY_POINT_EXPRESSION)
    result = evaluate_entry_point(session, isolate_id, library)
    resolved = resolve_string(session, isolate_id, result)
    text = resolved.value
    log.info("JSON string length: {} characters", len(text))

    raw_path = dump_dir / RAW_LAYOUT_FILE
    raw_path.write_text(text, encoding="utf-8")
    log.info("Saved raw JSON: {}", raw_path)

    data = parse_layout_json(text, raw_path, dump_dir)
    check_crawler_error(data)

    log.info("Embedding image assets as Base64")
    issues = embed_images(
        data, project_path, max_bytes=settings.max_asset_bytes, log=log
    )

    details = None
    if include_details:
        details = discover_and_fetch(
            session,
            data,
            isolate_id=isolate_id,
            object_group=settings.object_group,
            node_delay=settings.node_delay,
            sleep=sleep,
        )
        if isinstance(data, dict):
            data["layoutById"] = details.layout_by_id
            data["detailsById"] = details.details_by_id

    final_path = write_json(dump_dir / FINAL_LAYOUT_FILE, data)
    log.info("Saved {}", final_path)

    node_count = count_nodes(data)
    success_log_path = dump_dir / SUCCESS_LOG_FILE
    success_log_path.write_text(
        "Layout extraction succeeded\n\n"
        f"Extracted at: {datetime.now(timezone.utc).isoformat()}\n"
        f"JSON length: {len(text)} characters\n"
        f"Node count: {node_count}\n"
        f"Complete: {'yes' if resolved.complete else 'no (value may be truncated)'}\n\n"
        "Files:\n"
        f"- {final_path}\n"
        f"- {raw_path}\n",
        encoding="utf-8",
    )
    log.info("Extracted {} node(s)", node_count)

    return LayoutDumpResult(
        dump_dir=dump_dir,
        raw_path=raw_path,
        final_path=final_path,
        success_log_path=success_log_path,
        node_count=node_count,
        raw_length=len(text),
        complete=resolved.complete,
        asset_issues=issues,
        details=details,
    )
