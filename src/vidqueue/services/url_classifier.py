"""Match submitted URLs against the supported platform domains."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlsplit

from vidqueue.config import DEFAULT_SUPPORTED_DOMAINS
from vidqueue.errors import ValidationError

_ALLOWED_SCHEMES = {"http", "https"}


class UrlClassifier:
    """Accepts URLs whose host is one of the configured domains.

    Matching ignores case and an optional ``www.`` prefix. The scheme may be
    omitted; when present it must be http or https.
    """

    def __init__(self, domains: Mapping[str, str] | None = None) -> None:
        source = DEFAULT_SUPPORTED_DOMAINS if domains is None else domains
        self._domains = {_normalize_host(d): p for d, p in source.items()}

    @property
    def domains(self) -> dict[str, str]:
        return dict(self._domains)

    def classify(self, url: str) -> str | None:
        """Return the platform hint for ``url``, or None if unsupported."""
        host = _extract_host(url)
        if host is None:
            return None
        return self._domains.get(host)

    def validate(self, url: str) -> str:
        """Like ``classify`` but raise ValidationError on rejection."""
        platform = self.classify(url)
        if platform is None:
            supported = ", ".join(sorted(self._domains))
            raise ValidationError(f"Unsupported URL (expected one of: {supported})")
        return platform


def _normalize_host(host: str) -> str:
    host = host.strip().lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def _extract_host(url: str) -> str | None:
    url = url.strip()
    if not url or any(c.isspace() for c in url):
        return None
    if "://" not in url:
        url = f"https://{url}"
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return None
    if parts.scheme.lower() not in _ALLOWED_SCHEMES or not hostname:
        return None
    return _normalize_host(hostname)
