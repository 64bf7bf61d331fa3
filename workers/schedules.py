"""Celery beat schedules for periodic tasks."""

from celery.schedules import crontab

# Schedule definitions
# These are imported into celery_app.py

SCHEDULES = {
    # Bus factor for every organization: daily at 2 AM
    "calculate-bus-factors-nightly": {
        "task": "workers.tasks.bus_factor.calculate_all_bus_factors",
        "schedule": crontab(minute=0, hour=2),
        "options": {"queue": "analysis"},
    },

    # Drop cached graphs before the nightly run so it reads fresh activity
    "invalidate-graph-cache-nightly": {
        "task": "workers.tasks.bus_factor.invalidate_graph_cache",
        "schedule": crontab(minute=45, hour=1),
        "options": {"queue": "maintenance"},
    },
}


def get_schedules():
    """Get all schedules for Celery beat."""
    return SCHEDULES
