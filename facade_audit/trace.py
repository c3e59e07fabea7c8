"""Main-thread task extraction from a Chrome trace.

Finds the renderer main thread, collects its top-level tasks and attributes
each task to the script URLs seen on the events nested inside it.
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import MainThreadTask

logger = logging.getLogger(__name__)

TOP_LEVEL_TASK_NAMES = frozenset({
    "RunTask",
    "ThreadControllerImpl::RunTask",
    "TaskQueueManager::ProcessTaskFromWorkQueue",
})

MAIN_THREAD_NAME = "CrRendererMain"


def _trace_events(trace: dict | list) -> list[dict]:
    if isinstance(trace, dict):
        return list(trace.get("traceEvents") or [])
    return list(trace or [])


def find_main_thread(events: list[dict]) -> tuple[int, int] | None:
    """Return (pid, tid) of the renderer main thread.

    Prefers the CrRendererMain thread with the most complete events; falls
    back to the busiest thread when no thread_name metadata is present.
    """
    complete_counts = Counter(
        (e.get("pid"), e.get("tid")) for e in events if e.get("ph") == "X"
    )

    candidates = [
        (e.get("pid"), e.get("tid"))
        for e in events
        if e.get("ph") == "M"
        and e.get("name") == "thread_name"
        and (e.get("args") or {}).get("name") == MAIN_THREAD_NAME
    ]
    if candidates:
        # max() keeps the first of equal counts
        return max(candidates, key=lambda key: complete_counts.get(key, 0))

    if not complete_counts:
        return None
    return complete_counts.most_common(1)[0][0]


def _event_urls(event: dict) -> list[str]:
    data = (event.get("args") or {}).get("data") or {}
    urls = []
    for key in ("url", "scriptName"):
        value = data.get(key)
        if isinstance(value, str) and value:
            urls.append(value)
    for frame in data.get("stackTrace") or []:
        if isinstance(frame, dict) and frame.get("url"):
            urls.append(frame["url"])
    return urls


def get_main_thread_tasks(trace: dict | list) -> list[MainThreadTask]:
    """Extract top-level main-thread tasks (times in ms) from a trace."""
    events = _trace_events(trace)
    main_thread = find_main_thread(events)
    if main_thread is None:
        logger.warning("No main thread found in trace (%d events)", len(events))
        return []

    thread_events = sorted(
        (
            e for e in events
            if e.get("ph") == "X"
            and (e.get("pid"), e.get("tid")) == main_thread
            and isinstance(e.get("ts"), (int, float))
        ),
        key=lambda e: (e["ts"], -(e.get("dur") or 0)),
    )

    tasks: list[MainThreadTask] = []
    current: MainThreadTask | None = None
    current_end_us = 0.0
    for event in thread_events:
        ts = event["ts"]
        dur = event.get("dur") or 0
        if current is not None and ts < current_end_us:
            for url in _event_urls(event):
                if url not in current.attributable_urls:
                    current.attributable_urls.append(url)
            continue
        if event.get("name") not in TOP_LEVEL_TASK_NAMES:
            continue
        current = MainThreadTask(
            start_time=ts / 1000,
            end_time=(ts + dur) / 1000,
            self_time=dur / 1000,
            attributable_urls=list(dict.fromkeys(_event_urls(event))),
        )
        current_end_us = ts + dur
        tasks.append(current)

    logger.debug("Found %d top-level tasks on main thread %s", len(tasks), main_thread)
    return tasks
