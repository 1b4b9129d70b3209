from app.tasks.celery_app import celery
from app.tasks import worker_jobs


@celery.task(name="app.tasks.jobs.expire_holds", acks_late=True)
def expire_holds(limit: int = 500):
    return worker_jobs.expire_holds(limit=limit)
