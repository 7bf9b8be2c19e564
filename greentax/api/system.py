"""
System Router - Health checks and monitoring
"""
from fastapi import APIRouter
from greentax.utils.helpers import utcnow
import redis
from greentax.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@router.get("/health/worker")
async def worker_health():
    """
    Broker status and pending background evaluations.
    """
    redis_status = "unhealthy"
    worker_queue_depth = 0
    try:
        r = redis.from_url(settings.REDIS_URL)
        r.ping()
        redis_status = "healthy"
        worker_queue_depth = r.llen("compliance") or 0
    except redis.RedisError:
        pass

    return {
        "redis": redis_status,
        "worker_queue_depth": worker_queue_depth,
        "eager_mode": settings.CELERY_TASK_ALWAYS_EAGER,
        "timestamp": utcnow().isoformat() + "Z"
    }
