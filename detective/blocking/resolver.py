"""Blocking chain resolution over a session snapshot.

The snapshot is read once and never re-queried. Resolution runs in three passes:

1. filter: keep user sessions that are blocked, plus the unblocked sessions they wait on,
   honouring the minimum duration and the active-only option;
2. forest: breadth-first walk from every blocking head along ``blocked_by`` edges, placing each
   session once at its shallowest level, up to ``max_depth`` levels;
3. aggregate: summary, wait-type and per-database breakdowns.

Sessions that end up outside every tree (their blocker was filtered out, or they sit on a
``blocked_by`` cycle) are orphans: kept in flat output, left out of the tree.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from detective.blocking.models import (
    BlockingAnalysis,
    BlockingNode,
    BlockingOptions,
    BlockingSummary,
    DatabaseStat,
    SessionRecord,
    WaitTypeStat,
)
from detective.blocking.render import render

logger = logging.getLogger(__name__)

LOCK_WAIT_PREFIX = "LCK"
IO_WAIT_PREFIX = "PAGEIOLATCH"
PATH_SEPARATOR = "->"
MIN_PATH_WIDTH = 4


class BlockingChainResolver:
    """Builds blocking forests from session snapshots."""

    def __init__(self, options: BlockingOptions | None = None):
        self.options = options or BlockingOptions()

    def resolve(
        self,
        snapshot: Iterable[SessionRecord | dict[str, Any]],
        options: BlockingOptions | None = None,
    ) -> BlockingAnalysis:
        """Resolve one snapshot into a rendered blocking analysis."""
        started = time.perf_counter()
        options = options or self.options

        sessions = [
            s if isinstance(s, SessionRecord) else SessionRecord.model_validate(s)
            for s in snapshot
        ]
        logger.debug("Blocking snapshot: %d sessions before filtering", len(sessions))

        retained = self.filter_sessions(sessions, options)
        logger.debug(
            "Blocking snapshot: %d sessions retained (floor=%d, min_seconds=%d, active_only=%s)",
            len(retained),
            options.system_session_floor,
            options.min_blocking_seconds,
            options.only_active_blocking,
        )

        nodes = self.build_forest(retained, options)
        heads = [n.session_id for n in nodes if n.is_blocking_head]
        orphans = [n.session_id for n in nodes if n.is_orphan]
        logger.debug(
            "Blocking forest: %d heads, %d placed, %d orphans",
            len(heads),
            len(nodes) - len(orphans),
            len(orphans),
        )

        analysis = BlockingAnalysis(
            nodes=nodes,
            heads=heads,
            orphans=orphans,
            summary=summarize(nodes),
            wait_types=wait_type_breakdown(nodes),
            databases=database_breakdown(nodes),
            output_format=options.output_format,
            snapshot_size=len(sessions),
            analyzed_at=datetime.now(timezone.utc),
        )
        analysis.rendered = render(analysis, options)
        analysis.elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        return analysis

    def filter_sessions(
        self, sessions: list[SessionRecord], options: BlockingOptions
    ) -> list[SessionRecord]:
        """User sessions involved in blocking, first occurrence of each session id.

        Blocked sessions are kept on their own merits; an unblocked session is kept only when
        a kept blocked session waits on it.
        """
        unique: dict[int, SessionRecord] = {}
        for s in sessions:
            unique.setdefault(s.session_id, s)
        blockers = {s.blocked_by for s in unique.values() if s.is_blocked}

        def eligible(s: SessionRecord) -> bool:
            if s.session_id <= options.system_session_floor:
                return False
            if s.blocking_duration_seconds < options.min_blocking_seconds:
                return False
            # idle sessions only matter while they hold locks someone waits on
            return not (
                options.only_active_blocking and s.is_sleeping and s.session_id not in blockers
            )

        blocked = {sid for sid, s in unique.items() if s.is_blocked and eligible(s)}
        waited_on = {unique[sid].blocked_by for sid in blocked}
        return [
            s
            for sid, s in unique.items()
            if sid in blocked or (sid in waited_on and not s.is_blocked and eligible(s))
        ]

    def build_forest(
        self, sessions: list[SessionRecord], options: BlockingOptions
    ) -> list[BlockingNode]:
        """Place every session in the forest or mark it as an orphan.

        Returned in ascending session id order.
        """
        by_id = {s.session_id: s for s in sessions}
        width = max([MIN_PATH_WIDTH] + [len(str(sid)) for sid in by_id])

        children: dict[int, list[int]] = defaultdict(list)
        for s in sessions:
            if s.is_blocked and s.blocked_by in by_id:
                children[s.blocked_by].append(s.session_id)
        for kids in children.values():
            kids.sort()

        heads = sorted(sid for sid, s in by_id.items() if not s.is_blocked and children.get(sid))

        placed: dict[int, tuple[int, str]] = {}
        queue: deque[int] = deque()
        for head in heads:
            placed[head] = (0, f"{head:0{width}d}")
            queue.append(head)

        while queue:
            parent = queue.popleft()
            level, path = placed[parent]
            if level >= options.max_depth:
                logger.warning(
                    "Blocking chain under session %d reached max depth %d; not descending",
                    parent,
                    options.max_depth,
                    extra={"session_id": parent},
                )
                continue
            for child in children.get(parent, ()):
                if child in placed:
                    continue
                placed[child] = (level + 1, f"{path}{PATH_SEPARATOR}{child:0{width}d}")
                queue.append(child)

        nodes = []
        for sid in sorted(by_id):
            session = by_id[sid].model_dump()
            if sid in placed:
                level, path = placed[sid]
                nodes.append(
                    BlockingNode(
                        **session,
                        blocking_level=level,
                        level_path=path,
                        is_blocking_head=level == 0,
                    )
                )
            else:
                nodes.append(
                    BlockingNode(**session, level_path=f"{sid:0{width}d}", is_orphan=True)
                )
        return nodes


def summarize(nodes: list[BlockingNode]) -> BlockingSummary:
    """Totals over the blocked sessions of a forest."""
    blocked = [n for n in nodes if n.is_blocked]
    if not blocked:
        return BlockingSummary()

    durations = [n.blocking_duration_seconds for n in blocked]
    wait_types = [n.wait_type or "" for n in blocked]
    return BlockingSummary(
        blocking=True,
        total_blocked_sessions=len(blocked),
        unique_blocking_heads=sum(1 for n in nodes if n.is_blocking_head),
        max_blocking_depth=max(n.blocking_level for n in nodes),
        avg_blocking_duration_seconds=round(sum(durations) / len(durations), 2),
        max_blocking_duration_seconds=max(durations),
        lock_waits=sum(1 for w in wait_types if w.startswith(LOCK_WAIT_PREFIX)),
        io_waits=sum(1 for w in wait_types if w.startswith(IO_WAIT_PREFIX)),
    )


def wait_type_breakdown(nodes: list[BlockingNode]) -> list[WaitTypeStat]:
    """Per wait type: session count, mean and max wait time. Busiest first."""
    groups: dict[str, list[int]] = defaultdict(list)
    for n in nodes:
        if n.wait_type:
            groups[n.wait_type].append(n.wait_time)

    stats = [
        WaitTypeStat(
            wait_type=wait_type,
            session_count=len(times),
            avg_wait_time_ms=round(sum(times) / len(times), 2),
            max_wait_time_ms=max(times),
        )
        for wait_type, times in groups.items()
    ]
    return sorted(stats, key=lambda s: (-s.session_count, s.wait_type))


def database_breakdown(nodes: list[BlockingNode]) -> list[DatabaseStat]:
    """Per database: blocked session count and mean blocking duration. Busiest first."""
    groups: dict[str, list[int]] = defaultdict(list)
    for n in nodes:
        if n.is_blocked and n.database_name:
            groups[n.database_name].append(n.blocking_duration_seconds)

    stats = [
        DatabaseStat(
            database_name=name,
            blocked_sessions=len(durations),
            avg_blocking_duration_seconds=round(sum(durations) / len(durations), 2),
        )
        for name, durations in groups.items()
    ]
    return sorted(stats, key=lambda s: (-s.blocked_sessions, s.database_name))
