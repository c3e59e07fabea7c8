"""Playwright page-load capture.

Loads a single URL in a fresh Chromium context with tracing enabled, records
every request's timing and transfer size, and returns PageArtifacts the
audit can run on (or that can be saved and audited later).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time

from playwright.async_api import Browser, Error as PlaywrightError, Request as PWRequest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .config import FacadeAuditConfig
from .errors import CaptureError
from .models import NetworkRecord, PageArtifacts
from .utils import now_iso

logger = logging.getLogger(__name__)

TRACE_CATEGORIES = [
    "devtools.timeline",
    "disabled-by-default-devtools.timeline",
    "disabled-by-default-devtools.timeline.stack",
    "toplevel",
    "v8.execute",
    "blink.user_timing",
]


class _RequestLog:
    """Collects request timings and sizes as Playwright reports them."""

    def __init__(self) -> None:
        self.entries: list[dict] = []
        self._pending: list[asyncio.Task] = []

    def on_finished(self, request: PWRequest) -> None:
        self._pending.append(asyncio.ensure_future(self._record(request, failed=False)))

    def on_failed(self, request: PWRequest) -> None:
        self._pending.append(asyncio.ensure_future(self._record(request, failed=True)))

    async def _record(self, request: PWRequest, failed: bool) -> None:
        timing = request.timing
        transfer_size = 0
        status_code = None
        mime_type = None
        if not failed:
            try:
                sizes = await request.sizes()
                transfer_size = sizes["responseBodySize"] + sizes["responseHeadersSize"]
            except PlaywrightError as e:
                logger.debug("No sizes for %s: %s", request.url, e)
            try:
                response = await request.response()
                if response is not None:
                    status_code = response.status
                    mime_type = response.headers.get("content-type")
            except PlaywrightError as e:
                logger.debug("No response for %s: %s", request.url, e)

        self.entries.append({
            "url": request.url,
            "method": request.method,
            "resource_type": request.resource_type,
            "wall_start": timing.get("startTime", -1),
            "response_end": timing.get("responseEnd", -1),
            "transfer_size": max(transfer_size, 0),
            "status_code": status_code,
            "mime_type": mime_type,
        })

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending)
            self._pending.clear()

    def to_records(self) -> list[NetworkRecord]:
        """Convert wall-clock timings to ms relative to the first request."""
        starts = [e["wall_start"] for e in self.entries if e["wall_start"] > 0]
        origin = min(starts) if starts else 0.0
        records = []
        for e in sorted(self.entries, key=lambda e: e["wall_start"]):
            start = e["wall_start"] - origin if e["wall_start"] > 0 else 0.0
            end = start + e["response_end"] if e["response_end"] >= 0 else start
            records.append(NetworkRecord(
                url=e["url"],
                resource_type=e["resource_type"],
                start_time=start,
                end_time=end,
                transfer_size=e["transfer_size"],
                method=e["method"],
                status_code=e["status_code"],
                mime_type=e["mime_type"],
            ))
        return records


async def capture_page(browser: Browser, url: str, config: FacadeAuditConfig) -> PageArtifacts:
    """Load ``url`` once and capture its network records and trace.

    A navigation timeout keeps whatever was captured so far; any other
    browser failure raises CaptureError.
    """
    fetched_at = now_iso()
    start_time = time.monotonic()
    settings = config.capture
    request_log = _RequestLog()
    final_url = url
    trace_events: list[dict] = []

    context = None
    tracing = False
    try:
        context = await browser.new_context(
            viewport={"width": settings.viewport.width, "height": settings.viewport.height},
            user_agent=settings.user_agent or None,
        )
        page = await context.new_page()
        page.on("requestfinished", request_log.on_finished)
        page.on("requestfailed", request_log.on_failed)

        await browser.start_tracing(page=page, categories=TRACE_CATEGORIES)
        tracing = True

        try:
            await page.goto(url, timeout=settings.page_timeout_ms, wait_until="load")
        except PlaywrightTimeout:
            logger.warning("Timeout loading %s, auditing partial load", url)

        # Let deferred embeds fetch their follow-up resources
        if settings.dwell_ms > 0:
            await asyncio.sleep(settings.dwell_ms / 1000)

        final_url = page.url or url
        raw_trace = await browser.stop_tracing()
        tracing = False
        trace_events = json.loads(raw_trace).get("traceEvents", [])
        # Requests finishing after this point are not part of the capture
        page.remove_listener("requestfinished", request_log.on_finished)
        page.remove_listener("requestfailed", request_log.on_failed)
        await request_log.drain()

    except PlaywrightError as e:
        logger.error("Error capturing %s: %s", url, e)
        raise CaptureError(f"Failed to capture {url}: {e}") from e
    finally:
        if tracing:
            try:
                await browser.stop_tracing()
            except PlaywrightError as e:
                logger.debug("Failed to stop tracing: %s", e)
        if context:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug("Failed to close context: %s", e)

    records = request_log.to_records()
    logger.info(
        "Captured %s in %.1fs: %d requests, %d trace events",
        final_url, time.monotonic() - start_time, len(records), len(trace_events),
    )
    return PageArtifacts(
        requested_url=url,
        final_url=final_url,
        network_records=records,
        trace_events=trace_events,
        fetched_at=fetched_at,
    )
