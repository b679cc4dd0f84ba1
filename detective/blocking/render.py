"""Output shapes for a blocking analysis: tree rows, flat rows, nested chains, JSON."""

from __future__ import annotations

import json
from typing import Any

from detective.blocking.models import BlockingAnalysis, BlockingNode, BlockingOptions

INDENT = "    "
HEAD_MARKER = "HEAD -> "
CHILD_MARKER = "|---> "

ROW_FIELDS = (
    "session_id",
    "blocked_by",
    "blocking_level",
    "database_name",
    "login_name",
    "host_name",
    "program_name",
    "status",
    "command",
    "wait_type",
    "wait_time",
    "wait_resource",
    "blocking_duration_seconds",
    "cpu_time",
    "physical_io",
    "memory_usage",
    "open_tran",
)


def sql_text_for(node: BlockingNode, options: BlockingOptions) -> str:
    """Full SQL text with details on, a fixed-length preview with details off."""
    text = node.sql_text or "N/A"
    if options.include_details or len(text) <= options.sql_preview_length:
        return text
    return text[: options.sql_preview_length] + "..."


def tree_label(node: BlockingNode) -> str:
    """``HEAD -> SPID: 55 (Blocking Head)`` / ``    |---> SPID: 60 (Blocked by: 55)``."""
    marker = HEAD_MARKER if node.blocking_level == 0 else CHILD_MARKER
    if node.is_blocked:
        relation = f"(Blocked by: {node.blocked_by})"
    else:
        relation = "(Blocking Head)"
    label = f"{INDENT * node.blocking_level}{marker}SPID: {node.session_id} {relation}"
    decoded = node.decoded_wait
    if decoded is not None and decoded.qualified_name:
        label += f" on {decoded.qualified_name}"
    return label


def _row(node: BlockingNode, options: BlockingOptions) -> dict[str, Any]:
    row = {name: getattr(node, name) for name in ROW_FIELDS}
    row["sql_text"] = sql_text_for(node, options)
    if node.decoded_wait is not None:
        row["decoded_wait"] = node.decoded_wait.model_dump(mode="json", exclude_none=True)
    return row


def render_tree(nodes: list[BlockingNode], options: BlockingOptions) -> list[dict[str, Any]]:
    """One row per placed session, depth-first (parents before children). Orphans excluded."""
    placed = sorted((n for n in nodes if not n.is_orphan), key=lambda n: n.level_path)
    return [{"tree": tree_label(n), **_row(n, options)} for n in placed]


def render_flat(nodes: list[BlockingNode], options: BlockingOptions) -> list[dict[str, Any]]:
    """Every retained session, orphans included, by level then longest blocking first."""
    ordered = sorted(
        nodes, key=lambda n: (n.blocking_level, -n.blocking_duration_seconds, n.session_id)
    )
    rows = []
    for n in ordered:
        row = _row(n, options)
        row["is_orphan"] = n.is_orphan
        rows.append(row)
    return rows


def render_grouped(nodes: list[BlockingNode], options: BlockingOptions) -> dict[str, Any]:
    """Nested records: one chain per head with recursive ``blocked_sessions``."""
    children: dict[int, list[BlockingNode]] = {}
    for n in sorted(nodes, key=lambda n: n.level_path):
        if not n.is_orphan and not n.is_blocking_head:
            children.setdefault(n.blocked_by, []).append(n)

    def build(node: BlockingNode) -> dict[str, Any]:
        record = _row(node, options)
        record["level_path"] = node.level_path
        record["blocked_sessions"] = [build(c) for c in children.get(node.session_id, [])]
        return record

    heads = sorted((n for n in nodes if n.is_blocking_head), key=lambda n: n.level_path)
    return {
        "chains": [build(h) for h in heads],
        "orphans": [_row(n, options) for n in nodes if n.is_orphan],
    }


def render_text(rows: list[dict[str, Any]]) -> str:
    """Tree rows as plain text, one line per session."""
    return "\n".join(r["tree"] for r in rows)


def render(analysis: BlockingAnalysis, options: BlockingOptions) -> Any:
    """Render ``analysis.nodes`` in ``options.output_format``."""
    fmt = options.output_format
    if fmt == "tree":
        return render_tree(analysis.nodes, options)
    if fmt == "flat":
        return render_flat(analysis.nodes, options)
    if fmt == "grouped":
        return render_grouped(analysis.nodes, options)
    if fmt == "json":
        return json.dumps(render_flat(analysis.nodes, options), default=str)
    raise ValueError(f"Unknown output format: {fmt!r}")
