"""Page-load artifacts: JSON storage, main-resource resolution and async access."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path

from .errors import ArtifactError, MainResourceNotFound
from .models import MainThreadTask, NetworkRecord, PageArtifacts, ResourceType
from .trace import get_main_thread_tasks
from .utils import strip_fragment

logger = logging.getLogger(__name__)


def _record_from_dict(data: dict) -> NetworkRecord:
    return NetworkRecord(
        url=data["url"],
        resource_type=data.get("resource_type", ResourceType.OTHER.value),
        start_time=float(data.get("start_time", 0.0)),
        end_time=float(data.get("end_time", data.get("start_time", 0.0))),
        transfer_size=int(data.get("transfer_size") or 0),
        method=data.get("method", "GET"),
        status_code=data.get("status_code"),
        mime_type=data.get("mime_type"),
    )


def load_artifacts(path: str | Path) -> PageArtifacts:
    """Load page-load artifacts saved by ``save_artifacts`` or the capture step."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ArtifactError(str(path), "file not found") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ArtifactError(str(path), str(e)) from e

    if not isinstance(raw, dict):
        raise ArtifactError(str(path), "top level must be an object")
    try:
        requested_url = raw["requested_url"]
        records = [_record_from_dict(r) for r in raw.get("network_records") or []]
    except (KeyError, TypeError, ValueError) as e:
        raise ArtifactError(str(path), f"malformed field: {e}") from e

    trace = raw.get("trace_events") or []
    if isinstance(trace, dict):
        trace = trace.get("traceEvents") or []

    artifacts = PageArtifacts(
        requested_url=requested_url,
        final_url=raw.get("final_url") or requested_url,
        network_records=records,
        trace_events=trace,
        fetched_at=raw.get("fetched_at", ""),
    )
    logger.info(
        "Loaded artifacts for %s: %d network records, %d trace events",
        artifacts.final_url, len(records), len(trace),
    )
    return artifacts


def save_artifacts(artifacts: PageArtifacts, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(artifacts), f)
    logger.info("Saved artifacts to %s", path)
    return path


def find_main_resource(records: list[NetworkRecord], final_url: str, requested_url: str | None = None) -> NetworkRecord:
    """Find the network record of the page's main document.

    Tries the final URL, then the requested URL (both without fragment),
    then the first document request. Only document records qualify.
    """
    documents = [r for r in records if r.resource_type == ResourceType.DOCUMENT.value]
    for url in (final_url, requested_url):
        if not url:
            continue
        target = strip_fragment(url)
        for record in documents:
            if strip_fragment(record.url) == target:
                return record
    if documents:
        return documents[0]
    raise MainResourceNotFound(final_url)


class ArtifactStore:
    """Lazily computed, cached views over one page load.

    The three getters are independent of each other, so callers may await
    them concurrently.
    """

    def __init__(self, artifacts: PageArtifacts):
        self.artifacts = artifacts
        self._tasks: list[MainThreadTask] | None = None
        self._main_resource: NetworkRecord | None = None

    async def network_records(self) -> list[NetworkRecord]:
        return self.artifacts.network_records

    async def main_resource(self) -> NetworkRecord:
        if self._main_resource is None:
            self._main_resource = find_main_resource(
                self.artifacts.network_records,
                self.artifacts.final_url,
                self.artifacts.requested_url,
            )
        return self._main_resource

    async def main_thread_tasks(self) -> list[MainThreadTask]:
        if self._tasks is None:
            self._tasks = await asyncio.to_thread(get_main_thread_tasks, self.artifacts.trace_events)
        return self._tasks
