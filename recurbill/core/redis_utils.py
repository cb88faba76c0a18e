"""TLS options for the Celery broker when REDIS_URL uses ``rediss://``."""
from __future__ import annotations

import ssl
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import certifi

from recurbill.core.config import settings

_CERT_REQS = {
    "none": ssl.CERT_NONE,
    "optional": ssl.CERT_OPTIONAL,
    "required": ssl.CERT_REQUIRED,
}


def _add_query_param(url: str, key: str, value: str) -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    query[key] = [value]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def normalize_cert_reqs(value: str | None = None) -> str:
    """Managed Redis hosts often present self-signed certs, so default to ``none``."""
    candidate = (value or settings.REDIS_SSL_CERT_REQS or "none").lower()
    return candidate if candidate in _CERT_REQS else "none"


def get_ca_cert_path() -> str:
    return settings.REDIS_SSL_CA_CERTS or certifi.where()


def prepare_redis_url(url: str | None) -> str | None:
    """Append TLS query params to a ``rediss://`` URL; other URLs pass through."""
    if not url or not url.startswith("rediss://"):
        return url
    url = _add_query_param(url, "ssl_cert_reqs", normalize_cert_reqs())
    return _add_query_param(url, "ssl_ca_certs", get_ca_cert_path())


def get_ssl_options(url: str | None = None) -> dict[str, Any] | None:
    """Kombu-style ``broker_use_ssl`` options, or None for plain redis."""
    url = url if url is not None else settings.REDIS_URL
    if not url or not url.startswith("rediss://"):
        return None
    return {
        "ssl_cert_reqs": _CERT_REQS[normalize_cert_reqs()],
        "ssl_ca_certs": get_ca_cert_path(),
    }
