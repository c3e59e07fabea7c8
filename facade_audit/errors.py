"""Exceptions raised by the facade audit pipeline."""

from __future__ import annotations


class AuditError(Exception):
    """Base error for anything that stops an audit from producing a result."""


class ArtifactError(AuditError):
    """Raised when a saved page-load artifact cannot be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid artifact file {path}: {reason}")


class MainResourceNotFound(AuditError):
    """Raised when no network record matches the page's main document."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unable to identify the main resource for {url}")


class CaptureError(AuditError):
    """Raised when a live page load fails for reasons other than a timeout."""
