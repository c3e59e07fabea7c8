"""Data models for the facade audit."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum


class ThrottlingMethod(str, Enum):
    SIMULATE = "simulate"
    DEVTOOLS = "devtools"
    PROVIDED = "provided"


class ResourceType(str, Enum):
    DOCUMENT = "document"
    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    FONT = "font"
    MEDIA = "media"
    XHR = "xhr"
    FETCH = "fetch"
    OTHER = "other"


# ── Third-party knowledge base ──

@dataclass(frozen=True)
class Facade:
    name: str
    repo: str = ""


@dataclass
class Product:
    name: str
    entity_name: str
    categories: list[str] = field(default_factory=list)
    url_patterns: list[str] = field(default_factory=list)
    facades: list[Facade] = field(default_factory=list)

    @property
    def has_facade(self) -> bool:
        return bool(self.facades)

    @property
    def primary_category(self) -> str | None:
        return self.categories[0] if self.categories else None


@dataclass
class Entity:
    name: str
    domains: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    homepage: str | None = None
    products: list[Product] = field(default_factory=list)


# ── Page load artifacts ──

@dataclass
class NetworkRecord:
    url: str
    resource_type: str = ResourceType.OTHER.value
    start_time: float = 0.0
    end_time: float = 0.0
    transfer_size: int = 0
    method: str = "GET"
    status_code: int | None = None
    mime_type: str | None = None


@dataclass
class MainThreadTask:
    start_time: float
    end_time: float
    self_time: float
    attributable_urls: list[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class PageArtifacts:
    requested_url: str
    final_url: str
    network_records: list[NetworkRecord] = field(default_factory=list)
    trace_events: list[dict] = field(default_factory=list)
    fetched_at: str = ""


# ── Timing summaries ──

@dataclass
class UrlSummary:
    first_start_time: float = math.inf
    first_end_time: float = math.inf
    transfer_size: int = 0
    blocking_time: float = 0.0
    main_thread_time: float = 0.0


@dataclass
class ThirdPartySummaries:
    by_url: dict[str, UrlSummary] = field(default_factory=dict)
    by_entity: dict[str, UrlSummary] = field(default_factory=dict)


# ── Facade audit ──

@dataclass
class ProductSummary:
    entity_name: str
    product: Product
    cutoff_time: float = math.inf
    url_summaries: dict[str, UrlSummary] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_name, self.product.name)


@dataclass
class FacadeSubItem:
    url: str
    first_start_time: float
    first_end_time: float
    transfer_size: int
    blocking_time: float


@dataclass
class FacadeRow:
    product: str
    product_name: str
    entity_name: str
    transfer_size: int = 0
    blocking_time: float = 0.0
    facades: list[Facade] = field(default_factory=list)
    sub_items: list[FacadeSubItem] = field(default_factory=list)


@dataclass
class WastedSummary:
    wasted_bytes: int = 0
    wasted_ms: float = 0.0


@dataclass
class ThirdPartyUsage:
    """Totals for one third-party entity across the whole page load."""
    entity_name: str
    transfer_size: int = 0
    blocking_time: float = 0.0
    main_thread_time: float = 0.0


@dataclass
class TableHeading:
    key: str
    item_type: str
    text: str
    sub_items_key: str | None = None
    sub_items_type: str | None = None
    granularity: float | None = None


@dataclass
class FacadeAuditResult:
    score: float
    not_applicable: bool = False
    display_value: str | None = None
    rows: list[FacadeRow] = field(default_factory=list)
    summary: WastedSummary = field(default_factory=WastedSummary)
    headings: list[TableHeading] = field(default_factory=list)
    page_url: str | None = None
    main_entity: str | None = None
    third_parties: list[ThirdPartyUsage] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize in the camelCase shape consumed by report renderers."""
        return {
            "pageUrl": self.page_url,
            "mainEntity": self.main_entity,
            "score": self.score,
            "notApplicable": self.not_applicable,
            "displayValue": self.display_value,
            "summary": {
                "wastedBytes": self.summary.wasted_bytes,
                "wastedMs": self.summary.wasted_ms,
            },
            "rows": [
                {
                    "productLabel": row.product,
                    "productName": row.product_name,
                    "entity": row.entity_name,
                    "transferSize": row.transfer_size,
                    "blockingTime": row.blocking_time,
                    "facades": [{"name": f.name, "repo": f.repo} for f in row.facades],
                    "subRows": [
                        {
                            "url": item.url,
                            "firstStartTime": item.first_start_time,
                            "firstEndTime": item.first_end_time,
                            "transferSize": item.transfer_size,
                            "blockingTime": item.blocking_time,
                        }
                        for item in row.sub_items
                    ],
                }
                for row in self.rows
            ],
            "thirdParties": [
                {
                    "entity": usage.entity_name,
                    "transferSize": usage.transfer_size,
                    "blockingTime": usage.blocking_time,
                    "mainThreadTime": usage.main_thread_time,
                }
                for usage in self.third_parties
            ],
        }
