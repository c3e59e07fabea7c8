"""Configuration loading and typed config dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class AuditSettings:
    throttling_method: str = "simulate"  # simulate | devtools | provided
    cpu_slowdown_multiplier: float = 4.0
    blocking_threshold_ms: float = 50.0


@dataclass
class Viewport:
    width: int = 1350
    height: int = 940


@dataclass
class CaptureSettings:
    page_timeout_ms: int = 45000
    dwell_ms: int = 5000       # wait after load so deferred embeds fetch their assets
    headless: bool = True
    viewport: Viewport = field(default_factory=Viewport)
    user_agent: str | None = None


@dataclass
class ThirdPartySettings:
    entities_path: str | None = None


@dataclass
class DatabaseSettings:
    path: str = "data/facades.db"


@dataclass
class OutputSettings:
    export_dir: str = "output/"


@dataclass
class FacadeAuditConfig:
    project_root: Path = field(default_factory=lambda: Path.cwd())
    audit: AuditSettings = field(default_factory=AuditSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    third_party: ThirdPartySettings = field(default_factory=ThirdPartySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    output: OutputSettings = field(default_factory=OutputSettings)

    def resolve_path(self, relative_path: str) -> Path:
        """Resolve a relative path against the project root."""
        p = Path(relative_path)
        if p.is_absolute():
            return p
        return self.project_root / p


def _build_flat(cls, data: dict | None):
    """Build a flat dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        return cls()
    fieldnames = set(cls.__dataclass_fields__)
    return cls(**{k: v for k, v in data.items() if k in fieldnames})


def load_config(path: str | Path) -> FacadeAuditConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = Path(path)
    project_root = config_path.parent

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = {}

    capture_raw = raw.get("capture") or {}
    config = FacadeAuditConfig(
        project_root=project_root,
        audit=_build_flat(AuditSettings, raw.get("audit")),
        capture=CaptureSettings(
            page_timeout_ms=capture_raw.get("page_timeout_ms", 45000),
            dwell_ms=capture_raw.get("dwell_ms", 5000),
            headless=capture_raw.get("headless", True),
            viewport=_build_flat(Viewport, capture_raw.get("viewport")),
            user_agent=capture_raw.get("user_agent"),
        ),
        third_party=_build_flat(ThirdPartySettings, raw.get("third_party")),
        database=_build_flat(DatabaseSettings, raw.get("database")),
        output=_build_flat(OutputSettings, raw.get("output")),
    )

    return config
