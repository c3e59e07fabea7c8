"""Third-party entity, product and facade identification.

Combines a built-in knowledge base of common embeds and chat widgets with
an optional third-party-web style ``entities.json`` file.

Entity: set of domains a company uses to deliver third-party resources.
Product: specific piece of software belonging to an entity.
Facade: placeholder that looks like the product and replaces itself with
the real thing when the user needs it.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from .models import Entity, Facade, Product
from .utils import extract_hostname, extract_registered_domain

logger = logging.getLogger(__name__)

LITE_YOUTUBE = {"name": "Lite YouTube", "repo": "https://github.com/paulirish/lite-youtube-embed"}
LITE_VIMEO = {"name": "Lite Vimeo", "repo": "https://github.com/luwes/lite-vimeo-embed"}
LIVE_CHAT_LOADER = {"name": "React Live Chat Loader", "repo": "https://github.com/calibreapp/react-live-chat-loader"}
INTERCOM_FACADE = {"name": "Intercom Facade", "repo": "https://github.com/danielbachhuber/intercom-facade/"}
WISTIA_FACADE = {"name": "Wistia Thumbnail Embed", "repo": "https://wistia.com/support/developers/embed-options"}
MAPS_STATIC = {"name": "Static Map", "repo": "https://developers.google.com/maps/documentation/maps-static"}

# Built-in knowledge base in entities.json shape.
# Domains: "*.example.com" or a bare host; either one also covers its subdomains.
BUILTIN_ENTITIES: list[dict] = [
    {
        "name": "YouTube",
        "homepage": "https://youtube.com",
        "categories": ["video"],
        "domains": ["*.youtube.com", "*.ggpht.com", "*.youtube-nocookie.com", "*.ytimg.com"],
        "products": [
            {
                "name": "YouTube Embedded Player",
                "urlPatterns": ["youtube.com/embed/", "youtube-nocookie.com/embed/"],
                "facades": [LITE_YOUTUBE],
            },
        ],
    },
    {
        "name": "Vimeo",
        "homepage": "https://vimeo.com",
        "categories": ["video"],
        "domains": ["*.vimeo.com", "*.vimeocdn.com"],
        "products": [
            {
                "name": "Vimeo Embedded Player",
                "urlPatterns": ["player.vimeo.com/video/"],
                "facades": [LITE_VIMEO],
            },
        ],
    },
    {
        "name": "Wistia",
        "homepage": "https://wistia.com",
        "categories": ["video"],
        "domains": ["*.wistia.com", "*.wistia.net", "embedwistia-a.akamaihd.net"],
        "products": [
            {
                "name": "Wistia Embed",
                "urlPatterns": ["wistia.com/embed/medias/", "wistia.net/embed/medias/", "assets/external/E-v1.js"],
                "facades": [WISTIA_FACADE],
            },
        ],
    },
    {
        "name": "Intercom",
        "homepage": "https://www.intercom.com",
        "categories": ["customer-success"],
        "domains": ["*.intercom.io", "*.intercomcdn.com", "*.intercomassets.com"],
        "products": [
            {
                "name": "Intercom Widget",
                "urlPatterns": ["widget.intercom.io", "js.intercomcdn.com/shim.latest.js"],
                "facades": [LIVE_CHAT_LOADER, INTERCOM_FACADE],
            },
        ],
    },
    {
        "name": "Drift",
        "homepage": "https://www.drift.com",
        "categories": ["customer-success"],
        "domains": ["*.drift.com", "*.driftt.com"],
        "products": [
            {
                "name": "Drift Live Chat",
                "urlPatterns": ["/^https?:\\/\\/js\\.driftt\\.com\\/include\\//", "/^https?:\\/\\/js\\.driftt\\.com\\/core\\//"],
                "facades": [LIVE_CHAT_LOADER],
            },
        ],
    },
    {
        "name": "Help Scout",
        "homepage": "https://www.helpscout.net",
        "categories": ["customer-success"],
        "domains": ["*.helpscout.net", "*.helpscout.com"],
        "products": [
            {
                "name": "Help Scout Beacon",
                "urlPatterns": ["beacon-v2.helpscout.net"],
                "facades": [LIVE_CHAT_LOADER],
            },
        ],
    },
    {
        "name": "Facebook",
        "homepage": "https://www.facebook.com",
        "categories": ["social"],
        "domains": ["*.facebook.com", "*.facebook.net", "*.fbcdn.net", "*.atdmt.com"],
        "products": [
            {
                "name": "Facebook Messenger Customer Chat",
                "urlPatterns": ["sdk/xfbml.customerchat.js"],
                "categories": ["customer-success"],
                "facades": [LIVE_CHAT_LOADER],
            },
        ],
    },
    {
        "name": "Google Maps",
        "homepage": "https://developers.google.com/maps",
        "categories": ["utility"],
        "domains": ["maps.google.com", "maps.googleapis.com", "maps.gstatic.com"],
        "products": [
            {
                "name": "Google Maps JavaScript API",
                "urlPatterns": ["maps.googleapis.com/maps/api/js"],
                "facades": [MAPS_STATIC],
            },
        ],
    },
    {
        "name": "LiveChat",
        "homepage": "https://www.livechat.com",
        "categories": ["customer-success"],
        "domains": ["*.livechatinc.com", "*.livechat.com"],
        "products": [
            {
                "name": "LiveChat",
                "urlPatterns": ["cdn.livechatinc.com/tracking.js", "secure.livechatinc.com/"],
                "facades": [LIVE_CHAT_LOADER],
            },
        ],
    },
    {
        "name": "Zendesk",
        "homepage": "https://www.zendesk.com",
        "categories": ["customer-success"],
        "domains": ["*.zdassets.com", "*.zendesk.com", "*.zopim.com"],
        "products": [
            {
                "name": "Zendesk Chat",
                "urlPatterns": ["static.zdassets.com/ekr/snippet.js", "v2.zopim.com/"],
                "facades": [LIVE_CHAT_LOADER],
            },
        ],
    },
    {
        "name": "Google Analytics",
        "homepage": "https://marketingplatform.google.com/about/analytics/",
        "categories": ["analytics"],
        "domains": ["*.google-analytics.com", "*.urchin.com", "analytics.google.com"],
    },
    {
        "name": "Google Tag Manager",
        "homepage": "https://marketingplatform.google.com/about/tag-manager/",
        "categories": ["tag-manager"],
        "domains": ["*.googletagmanager.com"],
    },
    {
        "name": "Hotjar",
        "homepage": "https://www.hotjar.com",
        "categories": ["analytics"],
        "domains": ["*.hotjar.com", "*.hotjar.io"],
    },
    {
        "name": "Google CDN",
        "homepage": "https://developers.google.com/speed/libraries/",
        "categories": ["cdn"],
        "domains": ["ajax.googleapis.com"],
    },
    {
        "name": "Cloudflare CDN",
        "homepage": "https://cdnjs.com",
        "categories": ["cdn"],
        "domains": ["cdnjs.cloudflare.com"],
    },
]


def _parse_entity(data: dict) -> Entity:
    """Build an Entity (and its products) from an entities.json entry."""
    name = data["name"]
    categories = [str(c) for c in data.get("categories") or []]
    products = []
    for product_data in data.get("products") or []:
        facades = [
            Facade(name=f.get("name", ""), repo=f.get("repo", ""))
            for f in product_data.get("facades") or []
            if isinstance(f, dict)
        ]
        products.append(Product(
            name=product_data["name"],
            entity_name=name,
            categories=list(product_data.get("categories") or categories),
            url_patterns=[str(p) for p in product_data.get("urlPatterns") or []],
            facades=facades,
        ))
    return Entity(
        name=name,
        domains=[str(d).lower() for d in data.get("domains") or []],
        categories=categories,
        homepage=data.get("homepage"),
        products=products,
    )


class ThirdPartyDatabase:
    """Entity/product/facade knowledge base.

    Combines built-in knowledge of common facadable products with an
    optional third-party-web ``entities.json`` file. File entries replace
    built-in entries of the same name.
    """

    def __init__(self, entities_path: str | Path | None = None):
        self._entities: dict[str, Entity] = {}
        # host -> entity name, split by how the domain was declared
        self._exact_hosts: dict[str, str] = {}
        self._wildcard_domains: dict[str, str] = {}
        self._host_cache: dict[str, Entity | None] = {}
        self._regex_cache: dict[str, re.Pattern | None] = {}

        for entry in BUILTIN_ENTITIES:
            self.add_entity(_parse_entity(entry))

        if entities_path:
            self._load_entities_file(Path(entities_path))

        logger.info(
            "ThirdPartyDatabase loaded with %d entities, %d products with facades",
            len(self._entities), sum(1 for _ in self.facadable_products()),
        )

    def _load_entities_file(self, path: Path) -> None:
        """Load a third-party-web entities.json file."""
        if not path.exists():
            logger.warning("Entities file not found: %s", path)
            return
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read entities file %s: %s", path, e)
            return

        if isinstance(data, dict):
            data = data.get("entities", [])
        if not isinstance(data, list):
            logger.error("Entities file %s is not a list of entities", path)
            return

        count = 0
        for entry in data:
            if not isinstance(entry, dict):
                continue
            try:
                entity = _parse_entity(entry)
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed entity entry in %s: %s", path, e)
                continue
            self.add_entity(entity)
            count += 1
        logger.info("Loaded %d entities from %s", count, path)

    def add_entity(self, entity: Entity) -> None:
        """Register an entity, replacing any existing entity with the same name."""
        if entity.name in self._entities:
            self._remove_domains(entity.name)
        self._entities[entity.name] = entity
        for domain in entity.domains:
            if domain.startswith("*."):
                self._wildcard_domains[domain[2:]] = entity.name
            else:
                self._exact_hosts[domain] = entity.name
        self._host_cache.clear()

    def _remove_domains(self, entity_name: str) -> None:
        for index in (self._exact_hosts, self._wildcard_domains):
            for domain in [d for d, name in index.items() if name == entity_name]:
                del index[domain]

    def _lookup_domain(self, domain: str) -> str | None:
        name = self._exact_hosts.get(domain)
        if name is None:
            name = self._wildcard_domains.get(domain)
        return name

    def _entity_for_host(self, host: str) -> Entity | None:
        if host in self._host_cache:
            return self._host_cache[host]

        # Walk up parent domains: js.maps.googleapis.com -> maps.googleapis.com -> googleapis.com
        name = None
        parts = host.split(".")
        for i in range(len(parts)):
            name = self._lookup_domain(".".join(parts[i:]))
            if name is not None:
                break
        if name is None:
            # tldextract also reads ideographic full stops as dots
            name = self._lookup_domain(extract_registered_domain(host))
        entity = self._entities.get(name) if name else None
        self._host_cache[host] = entity
        return entity

    def get_entity(self, url: str) -> Entity | None:
        """Return the entity serving ``url``, or None if unknown or not a network URL."""
        host = extract_hostname(url).lower()
        if not host:
            return None
        return self._entity_for_host(host)

    def get_product(self, url: str) -> Product | None:
        """Return the first product of the URL's entity whose URL pattern matches."""
        entity = self.get_entity(url)
        if entity is None:
            return None
        for product in entity.products:
            if any(self._pattern_matches(pattern, url) for pattern in product.url_patterns):
                return product
        return None

    def is_first_party(self, url: str, main_entity: Entity | None) -> bool:
        """Whether ``url`` belongs to the same entity as the page's main resource."""
        if main_entity is None:
            return False
        entity = self.get_entity(url)
        return entity is not None and entity.name == main_entity.name

    def _pattern_matches(self, pattern: str, url: str) -> bool:
        """Match a product URL pattern: ``/regex/`` or a plain substring."""
        if len(pattern) > 2 and pattern.startswith("/") and pattern.endswith("/"):
            if pattern not in self._regex_cache:
                try:
                    self._regex_cache[pattern] = re.compile(pattern[1:-1])
                except re.error as e:
                    logger.warning("Invalid product URL pattern %r: %s", pattern, e)
                    self._regex_cache[pattern] = None
            regex = self._regex_cache[pattern]
            return bool(regex and regex.search(url))
        return pattern in url

    def facadable_products(self):
        """Iterate over every product that has at least one facade."""
        for entity in self._entities.values():
            for product in entity.products:
                if product.has_facade:
                    yield product

    @property
    def entity_count(self) -> int:
        return len(self._entities)
