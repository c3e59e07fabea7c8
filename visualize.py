#!/usr/bin/env python3
"""Facade Audit: charts and exports from the results database.

Usage:
    python visualize.py                    # Generate all charts
    python visualize.py --report           # Print text report to terminal
    python visualize.py --export-csv       # Export per-product totals as CSV
    python visualize.py --output-dir viz/  # Custom output directory
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from facade_audit.db import Database
from facade_audit.report import format_bytes, format_ms

DB_PATH = "data/facades.db"
OUTPUT_DIR = "output/viz"

CATEGORY_COLORS = {
    "(Video)": "#e74c3c",
    "(Customer Success)": "#3498db",
}


async def load_data(db_path: Path) -> tuple[list[dict], list[dict], dict]:
    db = Database(db_path)
    await db.connect()
    try:
        return await db.get_product_totals(), await db.get_page_totals(), await db.get_stats()
    finally:
        await db.close()


def _product_color(label: str) -> str:
    for suffix, color in CATEGORY_COLORS.items():
        if label.endswith(suffix):
            return color
    return "#636e72"


# ─── Chart 1: Wasted bytes per product ────────────────────────────────

def chart_wasted_bytes(products: list[dict], out: Path) -> None:
    """Horizontal bar chart of transfer size that facades could defer."""
    rows = sorted(products, key=lambda r: r["wasted_bytes"] or 0)[-20:]
    labels = [r["product_label"] for r in rows]
    kib = [(r["wasted_bytes"] or 0) / 1024 for r in rows]

    fig, ax = plt.subplots(figsize=(10, 8))
    bars = ax.barh(labels, kib, color=[_product_color(label) for label in labels],
                   edgecolor="white", linewidth=0.5)
    ax.set_xlabel("KiB loaded eagerly (all audited pages)")
    ax.set_title("Bytes That Could Wait for a Click", fontsize=14, fontweight="bold")

    for bar, val in zip(bars, kib):
        ax.text(val, bar.get_y() + bar.get_height() / 2,
                f" {val:,.0f}", va="center", fontsize=10)

    plt.tight_layout()
    fig.savefig(out / "wasted_bytes_by_product.png", dpi=150, bbox_inches="tight")
    plt.close()
    print(f"  -> {out / 'wasted_bytes_by_product.png'}")


# ─── Chart 2: Blocking time per product ───────────────────────────────

def chart_wasted_ms(products: list[dict], out: Path) -> None:
    """Horizontal bar chart of main-thread blocking time per product."""
    rows = sorted(products, key=lambda r: r["wasted_ms"] or 0)[-20:]
    labels = [r["product_label"] for r in rows]
    ms = [r["wasted_ms"] or 0 for r in rows]

    fig, ax = plt.subplots(figsize=(10, 8))
    ax.barh(labels, ms, color=[_product_color(label) for label in labels],
            edgecolor="white", linewidth=0.5)
    ax.set_xlabel("Main-thread blocking time (ms, all audited pages)")
    ax.set_title("Blocking Time From Facadable Embeds", fontsize=14, fontweight="bold")

    plt.tight_layout()
    fig.savefig(out / "wasted_ms_by_product.png", dpi=150, bbox_inches="tight")
    plt.close()
    print(f"  -> {out / 'wasted_ms_by_product.png'}")


# ─── Chart 3: Opportunities per page ──────────────────────────────────

def chart_opportunities_per_page(pages: list[dict], out: Path) -> None:
    """Histogram of facade opportunities found on each page's latest run."""
    counts = [r["opportunities"] for r in pages]
    if not counts:
        return

    fig, ax = plt.subplots(figsize=(8, 5))
    bins = range(0, max(counts) + 2)
    ax.hist(counts, bins=bins, color="#2ecc71", edgecolor="white", align="left")
    ax.set_xlabel("Facade alternatives available")
    ax.set_ylabel("Pages")
    ax.set_title("Facade Opportunities per Page", fontsize=14, fontweight="bold")
    ax.xaxis.set_major_locator(ticker.MaxNLocator(integer=True))
    ax.yaxis.set_major_locator(ticker.MaxNLocator(integer=True))

    plt.tight_layout()
    fig.savefig(out / "opportunities_per_page.png", dpi=150, bbox_inches="tight")
    plt.close()
    print(f"  -> {out / 'opportunities_per_page.png'}")


def export_csv(products: list[dict], out: Path) -> None:
    path = out / "product_totals.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=["product_label", "runs", "wasted_bytes", "wasted_ms"])
        writer.writeheader()
        writer.writerows(products)
    print(f"  -> {path}")


def print_report(products: list[dict], pages: list[dict], stats: dict) -> None:
    print("\n" + "=" * 70)
    print("FACADE AUDIT REPORT")
    print("=" * 70)
    print(f"  Pages audited:           {stats['total_pages']}")
    print(f"  Audit runs:              {stats['total_runs']}")
    print(f"  Runs with opportunities: {stats['runs_with_opportunities']}")
    print(f"  Total wasted bytes:      {format_bytes(stats['wasted_bytes'])}")
    print(f"  Total blocking time:     {format_ms(stats['wasted_ms'])}")

    print("\n  Top products:")
    for r in products[:10]:
        print(f"    {r['product_label']:<45} {format_bytes(r['wasted_bytes'] or 0):>10} "
              f"{format_ms(r['wasted_ms'] or 0):>10}  ({r['runs']} runs)")

    print("\n  Heaviest pages (latest run):")
    for r in pages[:10]:
        print(f"    {r['url']:<45} {format_bytes(r['wasted_bytes'] or 0):>10} "
              f"{r['opportunities']:>3} facades")
    print("=" * 70)


def main() -> None:
    parser = argparse.ArgumentParser(description="Facade Audit: visualize audit results")
    parser.add_argument("--db", default=DB_PATH, help="Path to SQLite database")
    parser.add_argument("--output-dir", default=OUTPUT_DIR, help="Output directory for charts")
    parser.add_argument("--report", action="store_true", help="Print text report only")
    parser.add_argument("--export-csv", action="store_true", help="Export CSV files")
    args = parser.parse_args()

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Database not found: {db_path}", file=sys.stderr)
        sys.exit(1)

    products, pages, stats = asyncio.run(load_data(db_path))

    if args.report:
        print_report(products, pages, stats)
        return

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)

    if args.export_csv:
        print("\nExporting CSV files...")
        export_csv(products, out)
        return

    print("\nGenerating charts...")
    chart_wasted_bytes(products, out)
    chart_wasted_ms(products, out)
    chart_opportunities_per_page(pages, out)
    print(f"\nDone! Output in: {out}/")


if __name__ == "__main__":
    main()
