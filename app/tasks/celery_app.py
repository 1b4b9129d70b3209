from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from celery import Celery
from app.core.config import settings

HOLD_SWEEP_SECONDS = 60.0


def broker_url(url: str) -> str:
    """rediss:// brokers need an explicit ssl_cert_reqs for Celery to connect."""
    parsed = urlparse(url or "")
    if parsed.scheme != "rediss":
        return url
    query = dict(parse_qsl(parsed.query))
    query.setdefault("ssl_cert_reqs", "CERT_NONE")
    return urlunparse(parsed._replace(query=urlencode(query)))


celery = Celery(
    "busbook",
    broker=broker_url(settings.REDIS_URL),
    backend=broker_url(settings.REDIS_URL),
    include=["app.tasks.jobs"],
)

celery.conf.update(
    timezone="Asia/Kathmandu",
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
    beat_schedule={
        # seats of unpaid groups go back on sale shortly after BOOKING_HOLD_MINUTES
        "expire-holds-every-minute": {
            "task": "app.tasks.jobs.expire_holds",
            "schedule": HOLD_SWEEP_SECONDS,
            "options": {"expires": HOLD_SWEEP_SECONDS},
        },
    },
)
