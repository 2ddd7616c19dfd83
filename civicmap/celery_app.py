"""
Celery application initialization and configuration.
This module sets up Celery to use Redis as the message broker.
"""

import os
from celery import Celery
from kombu import Exchange, Queue

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

app = Celery(
    "civic_issue_map",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,

    task_acks_late=True,
    worker_prefetch_multiplier=1,

    task_routes={
        "civicmap.tasks.celery_tasks.reconcile_approvals": {"queue": "issues"},
    },
    task_queues=[
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("issues", Exchange("issues"), routing_key="issues"),
    ],
)

# Explicitly import task modules so the @app.task decorators register
from civicmap.tasks import celery_tasks  # noqa: E402, F401
