"""Diagnostics tree traversal and per-node detail fetching."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any, Union

from flutterdump.exceptions import RemoteRpcError
from flutterdump.models.dump import DetailFetchResult, FetchFailure

if TYPE_CHECKING:
    from flutterdump.core.session import Session

JsonValue = Union[dict[str, "JsonValue"], list["JsonValue"], str, int, float, bool, None]

VALUE_ID_KEY = "valueId"
CHILDREN_KEY = "children"


def iter_nodes(tree: JsonValue) -> Iterator[dict[str, Any]]:
    """Yield every object in a JSON tree, depth-first in document order.

    Node references are nested under varying field names depending on node
    kind, so every object and array is descended into, not only
    ``children``. Containers already visited are skipped, so the walk
    terminates even on self-referential structures.
    """
    stack: list[Any] = [tree]
    seen: set[int] = set()

    while stack:
        current = stack.pop()
        if not isinstance(current, (dict, list)):
            continue
        if id(current) in seen:
            continue
        seen.add(id(current))

        if isinstance(current, dict):
            yield current
            children = current.values()
        else:
            children = current

        # Reversed so the first child is visited first
        stack.extend(
            child for child in reversed(list(children)) if isinstance(child, (dict, list))
        )


def collect_value_ids(tree: JsonValue) -> list[str]:
    """Collect every distinct diagnostics ``valueId`` in a tree.

    Returns:
        Ids in first-seen order, without duplicates.
    """
    ids: dict[str, None] = {}
    for node in iter_nodes(tree):
        value_id = node.get(VALUE_ID_KEY)
        if isinstance(value_id, str):
            ids.setdefault(value_id, None)
    return list(ids)


def count_nodes(node: JsonValue) -> int:
    """Count a node and its ``children`` recursively."""
    if not isinstance(node, dict):
        return 0

    count = 0
    stack = [node]
    while stack:
        current = stack.pop()
        count += 1
        children = current.get(CHILDREN_KEY)
        if isinstance(children, list):
            stack.extend(child for child in children if isinstance(child, dict))
    return count


def discover_and_fetch(
    session: Session,
    tree: JsonValue,
    *,
    isolate_id: str,
    object_group: str,
    node_delay: float = 0.01,
    sleep: Callable[[float], None] = time.sleep,
) -> DetailFetchResult:
    """Fetch layout explorer data and the details subtree for every node.

    Both calls are issued sequentially per node, and nodes are processed
    one at a time with ``node_delay`` between them so the app's UI thread is
    not flooded. A remote error on either call is logged and the entry is
    left out; connection failures propagate.

    Args:
        session: Open dump session.
        tree: Diagnostics tree to scan for ``valueId`` entries.
        isolate_id: Isolate running the inspector.
        object_group: Inspector object group.
        node_delay: Seconds slept between nodes.
        sleep: Sleep function (replaceable in tests).

    Returns:
        DetailFetchResult with both maps and the recorded failures.
    """
    log = session.log
    result = DetailFetchResult(node_ids=collect_value_ids(tree))
    log.info("Collected {} diagnostics valueId(s)", len(result.node_ids))

    for index, value_id in enumerate(result.node_ids):
        log.debug("Fetching details for {}", value_id)

        try:
            result.layout_by_id[value_id] = session.inspector(
                "getLayoutExplorerNode",
                isolate_id,
                id=value_id,
                groupName=object_group,
                subtreeDepth="1",
            )
        except RemoteRpcError as e:
            _record_failure(result, log, value_id, "getLayoutExplorerNode", e)

        try:
            result.details_by_id[value_id] = session.inspector(
                "getDetailsSubtree",
                isolate_id,
                objectGroup=object_group,
                arg=value_id,
                subtreeDepth="2",
            )
        except RemoteRpcError as e:
            _record_failure(result, log, value_id, "getDetailsSubtree", e)

        if node_delay and index < len(result.node_ids) - 1:
            sleep(node_delay)

    log.info(
        "Fetched {} layout node(s) and {} details subtree(s), {} failure(s)",
        len(result.layout_by_id),
        len(result.details_by_id),
        len(result.failures),
    )
    return result


def _record_failure(
    result: DetailFetchResult, log, value_id: str, method: str, error: Exception
) -> None:
    log.warning("{}({}) failed: {}", method, value_id, error)
    result.failures.append(
        FetchFailure(value_id=value_id, method=method, message=str(error))
    )
