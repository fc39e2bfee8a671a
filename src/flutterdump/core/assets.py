"""Embed image assets referenced by crawler nodes as Base64."""

from __future__ import annotations

import base64
import re
from pathlib import Path
from typing import Any

from loguru import logger

from flutterdump.exceptions import AssetError, AssetNotFound, AssetTooLarge
from flutterdump.models.dump import AssetIssue
from flutterdump.models.settings import MAX_ASSET_BYTES

_QUOTED_PATH_RE = re.compile(r"""["']([^"']+)["']""")
_IMAGE_WRAPPER_RE = re.compile(r"^.*Image\(.*name:\s*")


def extract_asset_path(raw_path: str) -> str:
    """Extract the asset path from an image provider description.

    ``AssetImage(name: "assets/logo.png")`` becomes ``assets/logo.png``.
    """
    match = _QUOTED_PATH_RE.search(raw_path)
    if match:
        return match.group(1)
    return _IMAGE_WRAPPER_RE.sub("", raw_path).removesuffix(")")


def load_asset(project_root: Path, relative_path: str, max_bytes: int) -> str:
    """Read an asset under ``project_root`` and return it Base64-encoded.

    Raises:
        AssetNotFound: If the file does not exist.
        AssetTooLarge: If the file exceeds ``max_bytes``.
    """
    full_path = project_root / Path(relative_path)
    if not full_path.is_file():
        raise AssetNotFound(str(full_path))

    size = full_path.stat().st_size
    if size > max_bytes:
        raise AssetTooLarge(str(full_path), size, max_bytes)

    return base64.b64encode(full_path.read_bytes()).decode("ascii")


def embed_images(
    tree: Any,
    project_root: Path,
    *,
    max_bytes: int = MAX_ASSET_BYTES,
    log=logger,
) -> list[AssetIssue]:
    """Attach ``properties.imageBase64`` to every ``Image`` node in place.

    Nodes whose asset is missing or too large get ``properties.error``
    instead; the tree walk follows ``children``.

    Returns:
        One AssetIssue per asset that could not be embedded.
    """
    issues: list[AssetIssue] = []
    stack = [tree]

    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue

        properties = node.get("properties")
        if (
            node.get("type") == "Image"
            and isinstance(properties, dict)
            and properties.get("imagePath")
        ):
            issue = _embed_node(properties, project_root, max_bytes, log)
            if issue is not None:
                issues.append(issue)

        children = node.get("children")
        if isinstance(children, list):
            stack.extend(reversed(children))

    return issues


def _embed_node(
    properties: dict[str, Any], project_root: Path, max_bytes: int, log
) -> AssetIssue | None:
    image_path = str(properties["imagePath"])
    relative_path = extract_asset_path(image_path)

    try:
        properties["imageBase64"] = load_asset(project_root, relative_path, max_bytes)
    except AssetError as e:
        log.warning("{} (imagePath: {})", e, image_path)
        properties["error"] = e.marker
        return AssetIssue(
            image_path=image_path, resolved_path=Path(e.path), error=e.marker
        )
    except OSError as e:
        log.error("Failed to read image {}: {}", relative_path, e)
        properties["error"] = f"Image read failed: {e}"
        return AssetIssue(image_path=image_path, error=properties["error"])

    log.debug("Embedded image: {}", relative_path)
    return None
