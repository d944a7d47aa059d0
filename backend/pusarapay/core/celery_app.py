import ssl

from celery import Celery
from pusarapay.core.config import settings

# Mirror work only; the web process never waits on results.
celery_app = Celery(
    "pusarapay",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["pusarapay.tasks.mirror_celery"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_default_queue="pusarapay-mirror",
    broker_connection_retry_on_startup=True,
)

# Managed Redis (rediss://) ships self-signed certificates
if settings.CELERY_BROKER_URL.startswith("rediss://"):
    celery_app.conf.broker_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}
if settings.CELERY_RESULT_BACKEND.startswith("rediss://"):
    celery_app.conf.redis_backend_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}
