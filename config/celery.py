"""
Celery configuration for the Auction Lot Crawler.

Crawls run on their own "crawl" queue so a long batch never blocks the
default queue.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("auction_crawler")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "crawl": {
        "exchange": "crawl",
        "routing_key": "crawl",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

# Default task routing
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "auctions.tasks.crawl_*": {"queue": "crawl"},
    "auctions.tasks.sync_taxonomy": {"queue": "default"},
}

app.conf.beat_schedule = {
    "crawl-all-auction-houses-every-6-hours": {
        "task": "auctions.tasks.crawl_all_auction_houses",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "sync-taxonomy-monthly": {
        "task": "auctions.tasks.sync_taxonomy",
        "schedule": crontab(minute=0, hour=3, day_of_month=1),
    },
}

