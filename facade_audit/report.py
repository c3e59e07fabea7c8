"""Terminal rendering and JSON/CSV export of facade audit results."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

from .models import FacadeAuditResult

logger = logging.getLogger(__name__)

URL_WIDTH = 60
TOP_THIRD_PARTIES = 5


def format_bytes(size: float) -> str:
    if size < 1024:
        return f"{int(size)} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.1f} MiB"


def format_ms(ms: float) -> str:
    return f"{ms:,.0f} ms"


def _shorten(url: str, width: int = URL_WIDTH) -> str:
    if len(url) <= width:
        return url
    return url[: width - 3] + "..."


def render_table(result: FacadeAuditResult) -> str:
    """Render the result as a plain-text table with one indented line per URL."""
    if result.not_applicable:
        return "No third-party resources with facade alternatives found."

    headers = [h.text for h in result.headings] or ["Product", "Transfer Size", "Main-Thread Blocking Time"]
    lines = [
        f"{headers[0]:<{URL_WIDTH + 4}} {headers[1]:>14} {headers[2]:>26}",
        "-" * (URL_WIDTH + 4 + 14 + 26 + 2),
    ]
    for row in result.rows:
        lines.append(
            f"{row.product:<{URL_WIDTH + 4}} "
            f"{format_bytes(row.transfer_size):>14} {format_ms(row.blocking_time):>26}"
        )
        for item in row.sub_items:
            lines.append(
                f"    {_shorten(item.url):<{URL_WIDTH}} "
                f"{format_bytes(item.transfer_size):>14} {format_ms(item.blocking_time):>26}"
            )
        if row.facades:
            lines.append(f"    facade: {', '.join(f.name for f in row.facades)}")
    return "\n".join(lines)


def render_summary(result: FacadeAuditResult) -> str:
    """Overview block: score, wasted totals and the heaviest third-party entities."""
    status = "N/A" if result.not_applicable else f"{result.score:.0f}"
    lines = [
        "=" * 70,
        "FACADE AUDIT",
        "=" * 70,
        f"  Page:          {result.page_url or '-'}",
        f"  First party:   {result.main_entity or '(unknown entity)'}",
        f"  Score:         {status}",
    ]
    if not result.not_applicable:
        lines += [
            f"  Opportunities: {result.display_value}",
            f"  Wasted bytes:  {format_bytes(result.summary.wasted_bytes)} ({result.summary.wasted_bytes:,} B)",
            f"  Blocking time: {format_ms(result.summary.wasted_ms)}",
        ]
    if result.third_parties:
        lines.append("  Top third parties:")
        for usage in result.third_parties[:TOP_THIRD_PARTIES]:
            lines.append(
                f"    {usage.entity_name:<30} {format_bytes(usage.transfer_size):>12} "
                f"{format_ms(usage.blocking_time):>12}"
            )
    lines.append("=" * 70)
    return "\n".join(lines)


def export_json(result: FacadeAuditResult, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    logger.info("Wrote JSON report to %s", path)
    return path


def export_csv(result: FacadeAuditResult, path: str | Path) -> Path:
    """One CSV line per (product, URL) pair."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([
            "product", "entity", "url", "first_start_time", "first_end_time",
            "transfer_size", "blocking_time",
        ])
        for row in result.rows:
            for item in row.sub_items:
                writer.writerow([
                    row.product, row.entity_name, item.url,
                    round(item.first_start_time, 3), round(item.first_end_time, 3),
                    item.transfer_size, round(item.blocking_time, 3),
                ])
    logger.info("Wrote CSV report to %s", path)
    return path
