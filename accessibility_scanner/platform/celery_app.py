from celery import Celery
from kombu import Queue

from accessibility_scanner.platform.config import Settings, get_settings

SCAN_TASK_NAME = "accessibility_scanner.features.scan.workers.tasks.run_scan_job"


def create_celery_app(settings: Settings) -> Celery:
    """
    Create and configure the Celery application.

    A single durable queue carries scan jobs. Lease semantics come from
    late acknowledgement: a message stays unacknowledged (and invisible to
    other consumers) while a worker slot holds it, and is redelivered if the
    worker dies or the visibility timeout elapses.
    """
    celery_app = Celery(
        "accessibility_scanner",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["accessibility_scanner.features.scan.workers.tasks"],
    )

    celery_app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,

        # Terminal job records are an operational aid only
        result_expires=settings.JOB_RESULT_EXPIRES_SECONDS,
        result_extended=True,

        task_routes={
            SCAN_TASK_NAME: {"queue": settings.SCAN_QUEUE_NAME},
        },
        task_queues=(
            Queue(settings.SCAN_QUEUE_NAME, durable=True),
        ),
        task_default_queue=settings.SCAN_QUEUE_NAME,

        # Worker pool: one browser session per execution slot
        worker_pool="threads",
        worker_concurrency=settings.WORKER_CONCURRENCY,
        worker_prefetch_multiplier=1,

        # Lease handling
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        broker_transport_options={
            "visibility_timeout": settings.BROKER_VISIBILITY_TIMEOUT_SECONDS,
        },
        broker_connection_retry_on_startup=True,
    )

    return celery_app


celery_app = create_celery_app(get_settings())
