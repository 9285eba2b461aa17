"""Adjudicator Celery application — task broker and configuration.

Initialises the Celery app with Redis as both broker and result backend and
exposes the app instance for use by workers
(``celery -A adjudicator.celery_app worker``).

Pipeline jobs are long-running and not idempotent at the model-call level, so
tasks are acknowledged late and each worker takes one job at a time.
"""

from __future__ import annotations

import logging

from celery import Celery

from adjudicator.config import settings

logger = logging.getLogger("adjudicator.celery")

# ---------------------------------------------------------------------------
# App initialisation
# ---------------------------------------------------------------------------

app = Celery(
    "adjudicator",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["adjudicator.tasks"],
)

# ---------------------------------------------------------------------------
# Serialisation & transport settings
# ---------------------------------------------------------------------------

app.conf.update(
    # Serialisation
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behaviour
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # Keep results for 24 hours
    result_expires=86400,
)

logger.info("Celery app configured: broker=%s", settings.redis_url)
