from celery import Celery
from celery.schedules import crontab
from flightprice.config import get_settings

settings = get_settings()

app = Celery(
    "flightprice",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["celery_app.tasks.refresh_prices"]
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,
    # One browser-driven scrape per worker at a time
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
)

app.conf.beat_schedule = {
    "refresh-tracked-routes": {
        "task": "celery_app.tasks.refresh_prices.refresh_tracked_routes",
        "schedule": crontab(minute=15, hour="*/6"),
    },
}
