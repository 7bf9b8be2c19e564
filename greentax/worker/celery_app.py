"""
Celery Application Configuration
"""
from celery import Celery
from greentax.config import settings

# Create Celery app
celery_app = Celery(
    "greentax_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "greentax.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # Results expire after 1 hour
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_ignore_result=True,  # Fire-and-forget; outcomes are logged
)

# Task routing
celery_app.conf.task_routes = {
    "greentax.worker.tasks.evaluate_society_compliance": {"queue": "compliance"},
    "greentax.worker.tasks.*": {"queue": "default"},
}

# Daily sweep so tiers decay even when a society stops uploading
celery_app.conf.beat_schedule = {
    "evaluate-all-societies": {
        "task": "greentax.worker.tasks.evaluate_all_societies",
        "schedule": 86400.0,
    },
}
