"""Shared test fixtures for facade audit tests."""

import pytest

from facade_audit.models import Entity, Facade, NetworkRecord, Product, UrlSummary
from facade_audit.third_party_db import ThirdPartyDatabase

CHAT_JS = "https://widget.acme-chat.com/chat.js"
CHAT_ASSETS = "https://static.acme-chat.com/chat-assets.png"
PLAYER_JS = "https://video.acme-chat.com/player.js"
PAGE_URL = "https://www.example.com/"


def url_summary(start, end=None, size=0, blocking=0.0):
    """UrlSummary with first start/end, transfer size and blocking time."""
    return UrlSummary(
        first_start_time=start,
        first_end_time=start if end is None else end,
        transfer_size=size,
        blocking_time=blocking,
    )


def make_acme_entity(with_video=False):
    products = [
        Product(
            name="AcmeChat",
            entity_name="Acme",
            categories=["customer-success"],
            url_patterns=["chat.js"],
            facades=[Facade(name="Acme Lite Chat", repo="https://example.org/acme-lite")],
        ),
        Product(
            name="AcmeAnalytics",
            entity_name="Acme",
            categories=["analytics"],
            url_patterns=["collect.js"],
        ),
    ]
    if with_video:
        products.append(Product(
            name="AcmeVideo",
            entity_name="Acme",
            categories=["video"],
            url_patterns=["player.js"],
            facades=[Facade(name="Acme Lite Video")],
        ))
    return Entity(
        name="Acme",
        domains=["*.acme-chat.com"],
        categories=["customer-success"],
        products=products,
    )


@pytest.fixture
def tp_db():
    """Knowledge base with built-ins plus Acme and the first-party Example entity."""
    db = ThirdPartyDatabase()
    db.add_entity(make_acme_entity())
    db.add_entity(Entity(name="Example", domains=["*.example.com"], categories=["hosting"]))
    return db


@pytest.fixture
def tp_db_two_products():
    """Knowledge base where Acme has two facadable products."""
    db = ThirdPartyDatabase()
    db.add_entity(make_acme_entity(with_video=True))
    db.add_entity(Entity(name="Example", domains=["*.example.com"], categories=["hosting"]))
    return db


@pytest.fixture
def acme_chat_by_url():
    """The chat.js + chat-assets.png page load."""
    return {
        CHAT_JS: url_summary(100, 150, size=50000, blocking=120.0),
        CHAT_ASSETS: url_summary(200, 260, size=20000, blocking=0.0),
    }


@pytest.fixture
def page_records():
    """Network records of a page embedding YouTube and Acme chat."""
    return [
        NetworkRecord(url=PAGE_URL, resource_type="document", start_time=0, end_time=80, transfer_size=15000),
        NetworkRecord(url="https://www.example.com/app.js", resource_type="script",
                      start_time=90, end_time=140, transfer_size=30000),
        NetworkRecord(url="https://www.youtube.com/embed/abc123", resource_type="document",
                      start_time=150, end_time=300, transfer_size=40000),
        NetworkRecord(url="https://www.youtube.com/s/player/base.js", resource_type="script",
                      start_time=320, end_time=500, transfer_size=300000),
        NetworkRecord(url=CHAT_JS, resource_type="script", start_time=100, end_time=150, transfer_size=50000),
        NetworkRecord(url=CHAT_ASSETS, resource_type="image", start_time=200, end_time=260, transfer_size=20000),
        NetworkRecord(url="https://www.google-analytics.com/analytics.js", resource_type="script",
                      start_time=110, end_time=170, transfer_size=20000),
    ]
