"""Third-party resources that can be lazy loaded behind a facade.

Groups each page's third-party URLs by (entity, product), keeps the products
that have a known facade, and reports how many bytes and how much main-thread
blocking time loading them eagerly costs.
"""

from __future__ import annotations

import asyncio
import logging

from .config import AuditSettings
from .models import (
    Entity,
    FacadeAuditResult,
    FacadeRow,
    FacadeSubItem,
    Product,
    ProductSummary,
    TableHeading,
    ThirdPartyUsage,
    UrlSummary,
    WastedSummary,
)
from .network import ArtifactStore
from .third_party_db import ThirdPartyDatabase
from .timing import cpu_multiplier, get_summaries

logger = logging.getLogger(__name__)

# Primary product category -> label template; other categories show the bare name
CATEGORY_LABELS: dict[str, str] = {
    "video": "{product_name} (Video)",
    "customer-success": "{product_name} (Customer Success)",
}

HEADINGS = [
    TableHeading(key="product", item_type="text", text="Product",
                 sub_items_key="url", sub_items_type="url"),
    TableHeading(key="transfer_size", item_type="bytes", text="Transfer Size",
                 sub_items_key="transfer_size", granularity=1),
    TableHeading(key="blocking_time", item_type="ms", text="Main-Thread Blocking Time",
                 sub_items_key="blocking_time", granularity=1),
]


def product_label(product: Product) -> str:
    template = CATEGORY_LABELS.get(product.primary_category or "")
    if template is None:
        return product.name
    return template.format(product_name=product.name)


def display_value(count: int) -> str:
    noun = "alternative" if count == 1 else "alternatives"
    return f"{count} facade {noun} available"


def get_facadable_product_summaries(
    by_url: dict[str, UrlSummary],
    main_entity: Entity | None,
    tp_db: ThirdPartyDatabase,
) -> list[ProductSummary]:
    """Group third-party URLs under the facadable products they belong to.

    The first pass seeds one summary per (entity, product) from URLs that map
    directly to a product with a facade, and records the earliest time any of
    them finished loading. The second pass attributes the entity's other URLs
    to each of those products if they started at or after that cutoff, since
    they were most likely fetched by the product itself.
    """
    index: dict[tuple[str, str], ProductSummary] = {}

    for url, url_summary in by_url.items():
        entity = tp_db.get_entity(url)
        if entity is None or tp_db.is_first_party(url, main_entity):
            continue
        product = tp_db.get_product(url)
        if product is None or not product.has_facade:
            continue

        key = (entity.name, product.name)
        product_summary = index.get(key)
        if product_summary is None:
            product_summary = index[key] = ProductSummary(entity_name=entity.name, product=product)
        product_summary.url_summaries[url] = url_summary
        product_summary.cutoff_time = min(product_summary.cutoff_time, url_summary.first_end_time)

    by_entity: dict[str, list[ProductSummary]] = {}
    for product_summary in index.values():
        by_entity.setdefault(product_summary.entity_name, []).append(product_summary)

    for url, url_summary in by_url.items():
        entity = tp_db.get_entity(url)
        if entity is None or tp_db.is_first_party(url, main_entity):
            continue
        product = tp_db.get_product(url)
        if product is not None and product.has_facade:
            continue

        # Every facadable product of the entity gets the URL, so it may be counted more than once
        for product_summary in by_entity.get(entity.name, []):
            if url_summary.first_start_time < product_summary.cutoff_time:
                continue
            product_summary.url_summaries.setdefault(url, url_summary)
            logger.debug("Attributed %s to %s", url, product_summary.product.name)

    return list(index.values())


def build_row(product_summary: ProductSummary) -> FacadeRow:
    product = product_summary.product
    row = FacadeRow(
        product=product_label(product),
        product_name=product.name,
        entity_name=product_summary.entity_name,
        facades=list(product.facades),
    )
    items = []
    for url, stats in product_summary.url_summaries.items():
        items.append(FacadeSubItem(
            url=url,
            first_start_time=stats.first_start_time,
            first_end_time=stats.first_end_time,
            transfer_size=stats.transfer_size,
            blocking_time=stats.blocking_time,
        ))
        row.transfer_size += stats.transfer_size
        row.blocking_time += stats.blocking_time
    # sorted() is stable, equal sizes keep insertion order
    row.sub_items = sorted(items, key=lambda item: item.transfer_size, reverse=True)
    return row


def build_report(product_summaries: list[ProductSummary]) -> FacadeAuditResult:
    """Turn product summaries into a scored table with wasted bytes/ms totals."""
    summary = WastedSummary()
    rows: list[FacadeRow] = []
    for product_summary in product_summaries:
        row = build_row(product_summary)
        summary.wasted_bytes += row.transfer_size
        summary.wasted_ms += row.blocking_time
        rows.append(row)

    if not rows:
        return FacadeAuditResult(score=1.0, not_applicable=True)

    return FacadeAuditResult(
        score=0.0,
        display_value=display_value(len(rows)),
        rows=rows,
        summary=summary,
        headings=list(HEADINGS),
    )


def summarize_third_parties(
    by_entity: dict[str, UrlSummary],
    main_entity: Entity | None,
) -> list[ThirdPartyUsage]:
    """Per-entity totals for every entity other than the page's own, largest first."""
    usage = [
        ThirdPartyUsage(
            entity_name=name,
            transfer_size=summary.transfer_size,
            blocking_time=summary.blocking_time,
            main_thread_time=summary.main_thread_time,
        )
        for name, summary in by_entity.items()
        if main_entity is None or name != main_entity.name
    ]
    return sorted(usage, key=lambda u: (u.transfer_size, u.blocking_time), reverse=True)


async def run_facade_audit(
    store: ArtifactStore,
    tp_db: ThirdPartyDatabase,
    settings: AuditSettings,
) -> FacadeAuditResult:
    """Run the facade audit over one page load."""
    network_records, main_resource, tasks = await asyncio.gather(
        store.network_records(),
        store.main_resource(),
        store.main_thread_tasks(),
    )
    main_entity = tp_db.get_entity(main_resource.url)

    summaries = get_summaries(
        network_records,
        tasks,
        cpu_multiplier(settings),
        tp_db,
        settings.blocking_threshold_ms,
    )
    product_summaries = get_facadable_product_summaries(summaries.by_url, main_entity, tp_db)
    result = build_report(product_summaries)
    result.page_url = main_resource.url
    result.main_entity = main_entity.name if main_entity else None
    result.third_parties = summarize_third_parties(summaries.by_entity, main_entity)

    logger.info(
        "Facade audit for %s: %d URLs, %d facadable products, %d bytes / %.0f ms wasted",
        main_resource.url, len(summaries.by_url), len(result.rows),
        result.summary.wasted_bytes, result.summary.wasted_ms,
    )
    return result
