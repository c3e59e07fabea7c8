"""Per-URL transfer size, timing and main-thread blocking summaries.

Aggregates network records and main-thread tasks into one UrlSummary per
URL, plus per-entity totals when a knowledge base is supplied.
"""

from __future__ import annotations

import logging

from .config import AuditSettings
from .models import (
    MainThreadTask,
    NetworkRecord,
    ResourceType,
    ThirdPartySummaries,
    ThrottlingMethod,
    UrlSummary,
)
from .third_party_db import ThirdPartyDatabase

logger = logging.getLogger(__name__)

# Bucket for main-thread work not attributable to any script request
OTHER_URL = "Other"

DEFAULT_BLOCKING_THRESHOLD_MS = 50.0


def cpu_multiplier(settings: AuditSettings) -> float:
    """CPU slowdown applied to task durations; only simulated throttling scales them."""
    if settings.throttling_method == ThrottlingMethod.SIMULATE.value:
        return settings.cpu_slowdown_multiplier
    return 1.0


def get_attributable_url(task: MainThreadTask, script_urls: set[str]) -> str:
    """Last attributable URL of the task that was loaded as a script."""
    for url in reversed(task.attributable_urls):
        if url in script_urls:
            return url
    return OTHER_URL


def get_summaries(
    network_records: list[NetworkRecord],
    tasks: list[MainThreadTask],
    multiplier: float = 1.0,
    tp_db: ThirdPartyDatabase | None = None,
    blocking_threshold_ms: float = DEFAULT_BLOCKING_THRESHOLD_MS,
) -> ThirdPartySummaries:
    summaries = ThirdPartySummaries()
    by_url = summaries.by_url

    for record in network_records:
        summary = by_url.setdefault(record.url, UrlSummary())
        summary.transfer_size += record.transfer_size
        summary.first_start_time = min(summary.first_start_time, record.start_time)
        summary.first_end_time = min(summary.first_end_time, record.end_time)

    script_urls = {
        r.url for r in network_records if r.resource_type == ResourceType.SCRIPT.value
    }

    for task in tasks:
        url = get_attributable_url(task, script_urls)
        summary = by_url.setdefault(url, UrlSummary())
        task_duration = task.self_time * multiplier
        summary.main_thread_time += task_duration
        # Time past the threshold is blocking; this ignores FCP, unlike TBT proper
        summary.blocking_time += max(task_duration - blocking_threshold_ms, 0.0)

    if tp_db is not None:
        for url, summary in by_url.items():
            entity = tp_db.get_entity(url)
            if entity is None:
                continue
            total = summaries.by_entity.setdefault(entity.name, UrlSummary())
            total.transfer_size += summary.transfer_size
            total.blocking_time += summary.blocking_time
            total.main_thread_time += summary.main_thread_time
            total.first_start_time = min(total.first_start_time, summary.first_start_time)
            total.first_end_time = min(total.first_end_time, summary.first_end_time)

    logger.debug(
        "Summarized %d records and %d tasks into %d URLs (multiplier=%s)",
        len(network_records), len(tasks), len(by_url), multiplier,
    )
    return summaries
