"""CSS queries against DOM snapshots of failed tests.

The snapshot HTML comes from the application under test. It is parsed with
the pure-Python ``html.parser`` backend and never rendered or executed, and
every size that could blow up parsing or the response is capped.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from cypress_mcp.constants import (
    MAX_ELEMENT_CHARS,
    MAX_QUERY_RESULTS,
    MAX_SELECTOR_LENGTH,
    MAX_SNAPSHOT_BYTES,
    OUTPUT_DIR_NAME,
    SNAPSHOTS_SUBDIR,
)
from cypress_mcp.security.errors import (
    InvalidTargetError,
    MalformedUpstreamDataError,
    NotFoundError,
    TraversalError,
)
from cypress_mcp.security.paths import canonical_root, is_contained
from cypress_mcp.tools.last_run import read_last_run

__all__ = ["breadcrumb", "element_label", "query_dom", "read_snapshot"]

logger = logging.getLogger(__name__)

MAX_LABEL_CHARS = 200
MAX_BREADCRUMB_DEPTH = 50
MAX_BREADCRUMB_CHARS = 500


def element_label(el: Tag) -> str:
    """``tag#id.class1.class2``, capped so one huge class attribute stays small."""
    tag = (el.name or "").lower()
    el_id = el.get("id")
    ident = f"#{el_id}" if el_id else ""
    classes = el.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    dotted = "." + ".".join(classes) if classes else ""
    return (f"{tag}{ident}{dotted}" or "(unknown)")[:MAX_LABEL_CHARS]


def breadcrumb(el: Tag) -> str:
    """Ancestor chain from the document root down to ``el``."""
    parts: list[str] = []
    current = el
    while (
        isinstance(current, Tag)
        and not isinstance(current, BeautifulSoup)
        and len(parts) < MAX_BREADCRUMB_DEPTH
    ):
        parts.append(element_label(current))
        current = current.parent
    return " > ".join(reversed(parts))[:MAX_BREADCRUMB_CHARS]


def read_snapshot(project_root: Path, snapshot_path: str) -> str:
    """Read a snapshot recorded in the last-run data.

    The recorded path is relative to the output directory and must land in
    its ``snapshots`` subdirectory both before and after symlink resolution.

    Raises:
        TraversalError: The path leaves the snapshots directory
        NotFoundError: The snapshot file is gone
        MalformedUpstreamDataError: The snapshot exceeds the size ceiling
    """
    root = canonical_root(project_root)
    output_dir = root / OUTPUT_DIR_NAME
    snapshots_dir = output_dir / SNAPSHOTS_SUBDIR

    if "\x00" in snapshot_path:
        raise TraversalError("Access denied: invalid snapshot path")
    lexical = os.path.normpath(os.path.join(output_dir, snapshot_path))
    if not is_contained(snapshots_dir, lexical):
        raise TraversalError("Access denied: invalid snapshot path")

    try:
        real = os.path.realpath(lexical, strict=True)
    except FileNotFoundError:
        raise NotFoundError(snapshot_path, kind="Snapshot file") from None
    if not is_contained(snapshots_dir, real):
        raise TraversalError("Access denied: snapshot is a symlink outside the snapshots directory")

    size = os.stat(real).st_size
    if size > MAX_SNAPSHOT_BYTES:
        raise MalformedUpstreamDataError(
            f"Snapshot file too large ({size} bytes). DOM snapshot may be oversized."
        )
    with open(real, "rb") as f:
        return f.read(MAX_SNAPSHOT_BYTES).decode("utf-8", errors="replace")


def query_dom(project_root: Path, spec: str, test_title: str, selector: str) -> str:
    """Run ``selector`` against the DOM snapshot of one test.

    The test is looked up by spec and title in the last-run data; the agent
    never supplies a snapshot path directly.

    Returns:
        JSON describing up to ``MAX_QUERY_RESULTS`` matches, or a short
        explanation when there is nothing to query
    """
    if len(selector) > MAX_SELECTOR_LENGTH:
        raise InvalidTargetError(f"selector too long (max {MAX_SELECTOR_LENGTH} characters)")

    data = read_last_run(project_root)
    if data is None:
        return "No test results found. Run Cypress tests first."
    entry, case = data.find_case(spec, test_title)
    if entry is None:
        return f"Spec not found: {spec}"
    if case is None:
        return f"Test not found: {test_title}"
    if not case.dom_snapshot_path:
        return "No DOM snapshot for this test. Snapshots are only captured for failed tests."

    html = read_snapshot(project_root, case.dom_snapshot_path)
    soup = BeautifulSoup(html, "html.parser")
    try:
        matches = soup.select(selector)
    except (SelectorSyntaxError, NotImplementedError) as exc:
        return f"Invalid CSS selector: {exc}"

    if not matches:
        return f"No elements found matching selector: {selector}"

    results = []
    for index, el in enumerate(matches[:MAX_QUERY_RESULTS]):
        raw = str(el)
        if len(raw) > MAX_ELEMENT_CHARS:
            raw = f"{raw[:MAX_ELEMENT_CHARS]}<!-- truncated -->"
        results.append({"index": index, "breadcrumb": breadcrumb(el), "outer_html": raw})

    logger.debug("query_dom matched %d elements for %r", len(matches), selector)
    return json.dumps(
        {
            "selector": selector,
            "total_matches": len(matches),
            "showing": len(results),
            "truncated": len(matches) > MAX_QUERY_RESULTS,
            "results": results,
        },
        indent=2,
    )
