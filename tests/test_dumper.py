import json

import pytest

from flutterdump.core.dumper import (
    ERROR_LOG_FILE,
    FINAL_LAYOUT_FILE,
    RAW_LAYOUT_FILE,
    SUCCESS_LOG_FILE,
    check_crawler_error,
    dump_design,
    dump_layout,
)
from flutterdump.exceptions import (
    CrawlerReportedError,
    NoIsolateError,
    ParseFailure,
    RemoteRpcError,
    StabilizationTimeout,
)

ISOLATE = {"isolates": [{"type": "@Isolate", "id": "isolates/1", "name": "main"}]}
CRAWLER_LIBRARY = {"id": "libraries/9", "uri": "package:app/figma_temp_crawler.dart"}
NODE_IDS = [f"inspector-{i}" for i in range(5)]


def _chain(ids, **extra):
    root = {"valueId": ids[0], "children": [], **extra}
    parent = root
    for value_id in ids[1:]:
        child = {"valueId": value_id, "children": []}
        parent["children"].append(child)
        parent = child
    return root


def _serve_node_details(target):
    target.on("ext.flutter.inspector.getLayoutExplorerNode", lambda p: {"layoutOf": p["id"]})
    target.on("ext.flutter.inspector.getDetailsSubtree", lambda p: {"detailsOf": p["arg"]})


def _string_result(text, **extra):
    return {"type": "@Instance", "kind": "String", "valueAsString": text, **extra}


@pytest.fixture
def design_target(target):
    target.on("getVM", ISOLATE)
    target.on("ext.flutter.inspector.getSelectedWidget", {})
    target.on("ext.flutter.inspector.getRootWidgetSummaryTree", _chain(NODE_IDS))
    _serve_node_details(target)
    return target


@pytest.fixture
def layout_target(target):
    target.on("getVM", ISOLATE)
    target.on("getIsolate", {"type": "Isolate", "libraries": [CRAWLER_LIBRARY]})
    _serve_node_details(target)
    return target


def test_design_dump_writes_all_artifacts(session, design_target, tmp_path, sleeper):
    result = dump_design(session, tmp_path, sleep=sleeper)

    assert (result.node_count, result.layout_count, result.details_count) == (5, 5, 5)
    assert result.failures == []

    merged = json.loads(result.merged_path.read_text(encoding="utf-8"))
    assert set(merged) == {"summaryTree", "layoutById", "detailsById"}
    assert merged["summaryTree"] == _chain(NODE_IDS)
    assert merged["layoutById"]["inspector-3"] == {"layoutOf": "inspector-3"}
    assert json.loads(result.layout_path.read_text(encoding="utf-8")) == merged["layoutById"]
    assert json.loads(result.details_path.read_text(encoding="utf-8")) == merged["detailsById"]
    assert json.loads(result.summary_path.read_text(encoding="utf-8")) == merged["summaryTree"]


def test_design_dump_uses_inspector_parameters(session, design_target, tmp_path, sleeper):
    dump_design(session, tmp_path, sleep=sleeper)

    group = session.settings.object_group
    assert design_target.params_for("ext.flutter.inspector.setSelectionById") == [
        {"id": "0", "objectGroup": group, "isolateId": "isolates/1"}
    ]
    assert design_target.params_for("ext.flutter.inspector.getRootWidgetSummaryTree") == [
        {
            "objectGroup": group,
            "isSummaryTree": True,
            "withPreviews": True,
            "isolateId": "isolates/1",
        }
    ]


def test_design_dump_waits_for_the_widget_tree(session, design_target, tmp_path, sleeper):
    attempts = []

    def summary(params):
        attempts.append(params)
        if len(attempts) < 3:
            raise design_target.not_ready()
        return _chain(NODE_IDS)

    design_target.on("ext.flutter.inspector.getRootWidgetSummaryTree", summary)

    result = dump_design(session, tmp_path, sleep=sleeper)

    assert len(attempts) == 3
    assert result.layout_count == 5
    assert sleeper.calls.count(session.settings.retry_interval) == 2


def test_design_dump_gives_up_after_max_attempts(
    session_factory, design_target, settings, tmp_path, sleeper
):
    def never_ready(params):
        raise design_target.not_ready()

    design_target.on("ext.flutter.inspector.getRootWidgetSummaryTree", never_ready)
    settings = settings.model_copy(update={"max_attempts": 4})

    with session_factory(settings=settings) as session:
        with pytest.raises(StabilizationTimeout, match="4 attempts"):
            dump_design(session, tmp_path, sleep=sleeper)

    assert design_target.count("ext.flutter.inspector.getRootWidgetSummaryTree") == 4
    assert not (tmp_path / "summary_tree.json").exists()


def test_design_dump_without_isolates(session, target, tmp_path, sleeper):
    target.on("getVM", {"isolates": []})

    with pytest.raises(NoIsolateError):
        dump_design(session, tmp_path, sleep=sleeper)


def test_layout_dump_reconstructs_truncated_result(session, layout_target, tmp_path, sleeper):
    document = _chain(NODE_IDS, type="Frame", name="Root")
    full = json.dumps(document)
    layout_target.on(
        "evaluate",
        _string_result(full[:128], id="objects/1", valueAsStringIsTruncated=True),
    )
    layout_target.on("getObject", {"type": "Instance", "kind": "String", "valueAsString": full})

    result = dump_layout(session, tmp_path, tmp_path, include_details=True, sleep=sleeper)

    assert layout_target.count("getObject") == 1
    assert layout_target.params_for("evaluate") == [
        {
            "isolateId": "isolates/1",
            "targetId": "libraries/9",
            "expression": "figmaExtractorEntryPoint()",
        }
    ]
    assert result.complete
    assert result.node_count == 5
    assert result.raw_length == len(full)
    assert len(result.details.layout_by_id) == 5
    assert len(result.details.details_by_id) == 5

    assert (tmp_path / RAW_LAYOUT_FILE).read_text(encoding="utf-8") == full
    final = json.loads((tmp_path / FINAL_LAYOUT_FILE).read_text(encoding="utf-8"))
    assert final["name"] == "Root"
    assert set(final["layoutById"]) == set(NODE_IDS)
    assert set(final["detailsById"]) == set(NODE_IDS)
    assert "Node count: 5" in (tmp_path / SUCCESS_LOG_FILE).read_text(encoding="utf-8")


def test_layout_dump_keeps_raw_text_on_parse_failure(session, layout_target, tmp_path, sleeper):
    broken = '{"type": "Frame", "children": [{"type": "Text"'
    layout_target.on("evaluate", _string_result(broken))

    with pytest.raises(ParseFailure) as exc_info:
        dump_layout(session, tmp_path, tmp_path, sleep=sleeper)

    assert exc_info.value.position is not None
    assert (tmp_path / RAW_LAYOUT_FILE).read_text(encoding="utf-8") == broken
    error_log = (tmp_path / ERROR_LOG_FILE).read_text(encoding="utf-8")
    assert f"JSON length: {len(broken)} characters" in error_log
    assert not (tmp_path / FINAL_LAYOUT_FILE).exists()


def test_layout_dump_reports_crawler_error(session, layout_target, tmp_path, sleeper):
    layout_target.on(
        "evaluate",
        _string_result(json.dumps({"error": "No root element", "hint": "Hot reload first"})),
    )

    with pytest.raises(CrawlerReportedError, match="Hint: Hot reload first"):
        dump_layout(session, tmp_path, tmp_path, sleep=sleeper)

    assert (tmp_path / RAW_LAYOUT_FILE).exists()


def test_layout_dump_falls_back_to_global_scope(session, layout_target, tmp_path, sleeper):
    def evaluate(params):
        if "targetId" in params:
            raise layout_target.Failure({"code": 113, "message": "Expression compilation error"})
        return _string_result(json.dumps({"type": "Frame"}))

    layout_target.on("evaluate", evaluate)

    result = dump_layout(session, tmp_path, tmp_path, sleep=sleeper)

    assert [("targetId" in p) for p in layout_target.params_for("evaluate")] == [True, False]
    assert result.node_count == 1
    assert result.details is None


def test_layout_dump_without_entry_point(session, layout_target, tmp_path, sleeper):
    layout_target.on("getIsolate", {"type": "Isolate", "libraries": []})

    def evaluate(params):
        raise layout_target.Failure(
            {"code": 113, "message": "Server error", "data": {"details": "not found"}}
        )

    layout_target.on("evaluate", evaluate)

    with pytest.raises(RemoteRpcError, match="hot reload"):
        dump_layout(session, tmp_path, tmp_path, sleep=sleeper)

    assert layout_target.count("evaluate") == 1


def test_check_crawler_error_ignores_layouts():
    check_crawler_error({"type": "Frame", "error": None})
    check_crawler_error([{"error": "not a document"}])
