"""Utility functions for domain extraction and URL normalization."""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import urldefrag, urlparse

import tldextract

# Schemes that never belong to a network entity
NON_NETWORK_SCHEMES = ("data:", "blob:", "about:", "chrome:", "chrome-extension:", "javascript:")


def extract_registered_domain(url_or_domain: str) -> str:
    """Extract the registered domain from a URL or domain string.

    Examples:
        'https://www.youtube.com/embed/x' -> 'youtube.com'
        'widget.intercom.io' -> 'intercom.io'
    """
    ext = tldextract.extract(url_or_domain)
    # registered_domain is deprecated from tldextract 5.3 on
    domain = getattr(ext, "top_domain_under_public_suffix", None)
    if domain is None:
        domain = ext.registered_domain
    if domain:
        return domain
    # Fallback for IPs or unusual domains
    try:
        parsed = urlparse(url_or_domain if "://" in url_or_domain else f"https://{url_or_domain}")
        return parsed.hostname or url_or_domain
    except ValueError:
        return url_or_domain


def extract_hostname(url: str) -> str:
    """Extract hostname from a URL, or "" if it has none."""
    if url.startswith(NON_NETWORK_SCHEMES):
        return ""
    try:
        parsed = urlparse(url)
        return parsed.hostname or ""
    except ValueError:
        return ""


def strip_fragment(url: str) -> str:
    return urldefrag(url)[0]


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def normalize_url(url: str) -> str:
    """Ensure URL has a scheme and strip trailing slash."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")
