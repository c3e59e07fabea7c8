"""CLI entry point and audit orchestration."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from playwright.async_api import async_playwright

from .capture import capture_page
from .config import FacadeAuditConfig, load_config
from .db import Database
from .errors import AuditError
from .facades import run_facade_audit
from .models import PageArtifacts, ThrottlingMethod
from .network import ArtifactStore, load_artifacts, save_artifacts
from .report import export_csv, export_json, render_summary, render_table
from .third_party_db import ThirdPartyDatabase
from .utils import normalize_url

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="facade_audit",
        description="Find third-party embeds that could be lazy loaded behind a facade",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--url", type=str, default=None,
        help="Load this page in Chromium and audit it",
    )
    source.add_argument(
        "--artifacts", type=str, default=None,
        help="Audit a previously saved artifacts JSON file instead of loading a page",
    )
    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--entities", type=str, default=None,
        help="Override the third-party-web entities.json file",
    )
    parser.add_argument(
        "--throttling", type=str, default=None,
        choices=[m.value for m in ThrottlingMethod],
        help="Override the throttling method used to scale main-thread time",
    )
    parser.add_argument(
        "--save-artifacts", type=str, default=None,
        help="Write the captured page load to this JSON file",
    )
    parser.add_argument(
        "--json", type=str, default=None,
        help="Write the result as JSON (bare filenames go to output.export_dir)",
    )
    parser.add_argument(
        "--csv", type=str, default=None,
        help="Write per-URL rows as CSV (bare filenames go to output.export_dir)",
    )
    parser.add_argument(
        "--no-db", action="store_true",
        help="Do not store the result in the results database",
    )
    parser.add_argument(
        "--headed", action="store_true",
        help="Run in headed mode (visible browser window)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quiet noisy loggers
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _export_path(path: str, config: FacadeAuditConfig) -> Path:
    """Place bare filenames in the configured export directory."""
    p = Path(path)
    if p.parent == Path("."):
        return config.resolve_path(config.output.export_dir) / p
    return p


async def _capture(url: str, config: FacadeAuditConfig) -> PageArtifacts:
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=config.capture.headless)
        logger.info("Browser launched (headless=%s)", config.capture.headless)
        try:
            return await capture_page(browser, url, config)
        finally:
            await browser.close()


async def main(args: argparse.Namespace) -> int:
    """Run one audit; returns the process exit status."""
    setup_logging(args.verbose)

    config_path = Path(args.config).resolve()
    config = load_config(config_path)

    # Apply CLI overrides
    if args.headed:
        config.capture.headless = False
    if args.throttling:
        config.audit.throttling_method = args.throttling

    entities_path = None
    if args.entities:
        entities_path = Path(args.entities)
    elif config.third_party.entities_path:
        entities_path = config.resolve_path(config.third_party.entities_path)
    tp_db = ThirdPartyDatabase(entities_path=entities_path)

    try:
        if args.artifacts:
            artifacts = await asyncio.to_thread(load_artifacts, args.artifacts)
        else:
            artifacts = await _capture(normalize_url(args.url), config)

        if args.save_artifacts:
            save_artifacts(artifacts, args.save_artifacts)

        result = await run_facade_audit(ArtifactStore(artifacts), tp_db, config.audit)
    except AuditError as e:
        logger.error("%s", e)
        return 1

    print(render_table(result))
    print()
    print(render_summary(result))

    if args.json:
        export_json(result, _export_path(args.json, config))
    if args.csv:
        export_csv(result, _export_path(args.csv, config))

    if not args.no_db:
        db = Database(config.resolve_path(config.database.path))
        await db.connect()
        try:
            run_id = await db.save_audit_result(result.page_url or artifacts.final_url, result)
            logger.info("Stored audit run %d in %s", run_id, db.db_path)
        finally:
            await db.close()

    return 0


def run() -> None:
    """Console-script entry point."""
    args = parse_args(sys.argv[1:])
    sys.exit(asyncio.run(main(args)))
