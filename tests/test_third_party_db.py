"""Unit tests for the third-party entity/product knowledge base."""

import json

import pytest

from facade_audit.models import Entity, Product
from facade_audit.third_party_db import ThirdPartyDatabase


class TestEntityLookup:
    """Test URL to entity resolution."""

    def setup_method(self):
        self.db = ThirdPartyDatabase()

    def test_wildcard_domain_matches_subdomains(self):
        assert self.db.get_entity("https://www.youtube.com/embed/xyz").name == "YouTube"
        assert self.db.get_entity("https://i.ytimg.com/vi/xyz/hqdefault.jpg").name == "YouTube"

    def test_wildcard_domain_matches_apex(self):
        assert self.db.get_entity("https://youtube.com/watch?v=1").name == "YouTube"

    def test_declared_host_covers_its_subdomains_not_siblings(self):
        assert self.db.get_entity("https://maps.googleapis.com/maps/api/js").name == "Google Maps"
        assert self.db.get_entity("https://js.maps.googleapis.com/x.js").name == "Google Maps"
        assert self.db.get_entity("https://fonts.googleapis.com/css") is None

    def test_most_specific_domain_wins(self):
        assert self.db.get_entity("https://ajax.googleapis.com/ajax/libs/jquery.js").name == "Google CDN"
        assert self.db.get_entity("https://maps.googleapis.com/maps/api/js").name == "Google Maps"

    def test_bare_host_under_multi_label_suffix(self):
        db = ThirdPartyDatabase()
        db.add_entity(Entity(name="Chatty", domains=["chatty.co.uk"]))
        assert db.get_entity("https://cdn.eu.chatty.co.uk/widget.js").name == "Chatty"
        assert db.get_entity("https://other.co.uk/widget.js") is None

    def test_registered_domain_fallback(self):
        """Hosts the dot-split walk cannot read resolve through tldextract."""
        assert self.db.get_entity("https://www.youtube\u3002com/embed/x").name == "YouTube"

    def test_host_is_case_insensitive(self):
        assert self.db.get_entity("https://WIDGET.Intercom.io/widget/abc").name == "Intercom"

    @pytest.mark.parametrize("url", [
        "",
        "not a url",
        "Other",
        "data:text/javascript,alert(1)",
        "blob:https://www.youtube.com/0b1c",
        "about:blank",
        "https://unknown.example.test/a.js",
    ])
    def test_unresolvable_urls_return_none(self, url):
        assert self.db.get_entity(url) is None

    def test_port_and_credentials_are_ignored(self):
        assert self.db.get_entity("https://user:pw@player.vimeo.com:443/video/1").name == "Vimeo"


class TestProductLookup:
    """Test URL to product resolution and facade availability."""

    def setup_method(self):
        self.db = ThirdPartyDatabase()

    def test_substring_pattern(self):
        product = self.db.get_product("https://www.youtube.com/embed/xyz?autoplay=0")
        assert product.name == "YouTube Embedded Player"
        assert product.has_facade
        assert product.categories == ["video"]

    def test_regex_pattern(self):
        product = self.db.get_product("https://js.driftt.com/include/1600000000000/abc.js")
        assert product.name == "Drift Live Chat"
        assert self.db.get_product("https://js.driftt.com/deploy/assets/x.js") is None

    def test_entity_url_without_product(self):
        assert self.db.get_entity("https://www.youtube.com/s/player/base.js").name == "YouTube"
        assert self.db.get_product("https://www.youtube.com/s/player/base.js") is None

    def test_product_without_facade(self):
        db = ThirdPartyDatabase()
        db.add_entity(Entity(
            name="Streamly",
            domains=["*.streamly.test"],
            products=[Product(name="Streamly Player", entity_name="Streamly", categories=["video"],
                              url_patterns=["player.js"])],
        ))
        product = db.get_product("https://cdn.streamly.test/player.js")
        assert product.name == "Streamly Player"
        assert not product.has_facade

    @pytest.mark.parametrize("url, name", [
        ("https://fast.wistia.com/embed/medias/abc.jsonp", "Wistia Embed"),
        ("https://fast.wistia.net/assets/external/E-v1.js", "Wistia Embed"),
        ("https://cdn.livechatinc.com/tracking.js", "LiveChat"),
        ("https://static.zdassets.com/ekr/snippet.js?key=abc", "Zendesk Chat"),
        ("https://widget.intercom.io/widget/abc", "Intercom Widget"),
        ("https://beacon-v2.helpscout.net/", "Help Scout Beacon"),
        ("https://player.vimeo.com/video/1", "Vimeo Embedded Player"),
        ("https://maps.googleapis.com/maps/api/js?key=abc", "Google Maps JavaScript API"),
    ])
    def test_builtin_facadable_products(self, url, name):
        product = self.db.get_product(url)
        assert product.name == name
        assert product.has_facade

    def test_substring_pattern_dot_is_literal(self):
        assert self.db.get_product("https://fast.wistia.com/assets/external/E-v1.js").name == "Wistia Embed"
        assert self.db.get_product("https://fast.wistia.com/assets/external/E-v1Xjs") is None

    def test_product_category_overrides_entity_category(self):
        product = self.db.get_product("https://connect.facebook.net/en_US/sdk/xfbml.customerchat.js")
        assert product.categories == ["customer-success"]
        assert self.db.get_entity("https://connect.facebook.net/en_US/sdk.js").categories == ["social"]

    def test_no_product_for_unknown_url(self):
        assert self.db.get_product("https://unknown.example.test/embed/") is None

    def test_facadable_products_all_have_facades(self):
        products = list(self.db.facadable_products())
        assert products
        assert all(p.facades for p in products)
        names = {p.name for p in products}
        assert {"Wistia Embed", "LiveChat", "Zendesk Chat"} <= names


class TestFirstParty:
    """Test first-party detection against the page's entity."""

    def setup_method(self):
        self.db = ThirdPartyDatabase()
        self.youtube = self.db.get_entity("https://www.youtube.com/")

    def test_same_entity_is_first_party(self):
        assert self.db.is_first_party("https://i.ytimg.com/x.jpg", self.youtube) is True

    def test_other_entity_is_third_party(self):
        assert self.db.is_first_party("https://player.vimeo.com/video/1", self.youtube) is False

    def test_no_main_entity(self):
        assert self.db.is_first_party("https://www.youtube.com/embed/1", None) is False

    def test_unknown_url(self):
        assert self.db.is_first_party("https://unknown.example.test/", self.youtube) is False

    def test_same_name_different_instance(self):
        """Entities are compared by name, not identity."""
        lookalike = Entity(name="YouTube")
        assert self.db.is_first_party("https://www.youtube.com/embed/1", lookalike) is True


class TestEntitiesFile:
    """Test loading third-party-web entities.json files."""

    def test_load_entities_file(self, tmp_path):
        path = tmp_path / "entities.json"
        path.write_text(json.dumps([
            {
                "name": "Chatty",
                "categories": ["customer-success"],
                "domains": ["*.chatty.test", "embed.chatty-cdn.test"],
                "products": [
                    {
                        "name": "Chatty Bubble",
                        "urlPatterns": ["/bubble.js"],
                        "facades": [{"name": "Chatty Lite", "repo": "https://example.org/lite"}],
                    }
                ],
            }
        ]))
        db = ThirdPartyDatabase(entities_path=path)

        assert db.get_entity("https://app.chatty.test/x").name == "Chatty"
        assert db.get_entity("https://embed.chatty-cdn.test/x").name == "Chatty"
        product = db.get_product("https://app.chatty.test/bubble.js")
        assert product.name == "Chatty Bubble"
        assert product.categories == ["customer-success"]
        assert product.facades[0].repo == "https://example.org/lite"

    def test_file_entity_replaces_builtin(self, tmp_path):
        path = tmp_path / "entities.json"
        path.write_text(json.dumps([
            {"name": "YouTube", "categories": ["video"], "domains": ["*.youtube.com"]},
        ]))
        db = ThirdPartyDatabase(entities_path=path)

        assert db.get_product("https://www.youtube.com/embed/1") is None
        # Domains of the replaced entry are gone
        assert db.get_entity("https://i.ytimg.com/x.jpg") is None

    def test_missing_file_is_ignored(self, tmp_path):
        db = ThirdPartyDatabase(entities_path=tmp_path / "missing.json")
        assert db.get_entity("https://www.youtube.com/").name == "YouTube"

    def test_malformed_file_is_ignored(self, tmp_path):
        path = tmp_path / "entities.json"
        path.write_text("{not json")
        db = ThirdPartyDatabase(entities_path=path)
        assert db.entity_count == ThirdPartyDatabase().entity_count

    def test_malformed_entries_are_skipped(self, tmp_path):
        path = tmp_path / "entities.json"
        path.write_text(json.dumps([
            "not an entity",
            {"domains": ["*.nameless.test"]},
            {"name": "Valid", "domains": ["*.valid.test"]},
        ]))
        db = ThirdPartyDatabase(entities_path=path)

        assert db.get_entity("https://x.valid.test/").name == "Valid"
        assert db.get_entity("https://x.nameless.test/") is None

    def test_invalid_regex_pattern_never_matches(self):
        db = ThirdPartyDatabase()
        db.add_entity(Entity(name="Broken", domains=["*.broken.test"], products=[]))
        assert db._pattern_matches("/([unclosed/", "https://x.broken.test/") is False
