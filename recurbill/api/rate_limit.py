import logging

from prometheus_client import Counter
from slowapi import Limiter
from slowapi.util import get_remote_address

from recurbill.core.config import settings
from recurbill.core.redis_utils import prepare_redis_url

logger = logging.getLogger(__name__)

_PROM_RATE_LIMIT = Counter("recurbill_rate_limit_exceeded_events", "Rate limit exceeded events (handler invocations)")

# Manual billing triggers send real email, so keep them tight.
RATE_LIMITS = {
    "billing_run": "5/minute",
    "billing_process_client": "30/minute",
    "onboard_client": "60/minute",
}


def _storage_uri() -> str:
    if settings.ENV.lower() != "prod" or not settings.REDIS_URL:
        logger.info("Rate limiter using in-memory storage (%s mode)", settings.ENV)
        return "memory://"
    return prepare_redis_url(settings.REDIS_URL) or "memory://"


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    enabled=settings.RATE_LIMIT_ENABLED,
)


def increment_rate_limit_exceeded() -> None:
    _PROM_RATE_LIMIT.inc()
