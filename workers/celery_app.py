# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# Builds the Celery app that runs StudySpark's scheduled sweeps.
#
# Usage:
#   celery -A workers.celery_app worker -Q default,notifications --loglevel=info
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry
from dotenv import load_dotenv

load_dotenv()

from app.config import settings  # noqa: E402

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    """Drop credentials from a broker URL before logging it."""
    return url.split("@")[-1]


def create_celery_app() -> Celery:
    """Create the worker app with Redis as broker and result backend."""
    app = Celery(
        "studyspark_worker",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["workers.tasks"],
    )
    app.config_from_object("workers.config:CeleryConfig")

    logger.info(f"Celery app created with broker: {_redacted(settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Signals
# =============================================================================

@task_prerun.connect
def log_task_start(sender=None, task_id=None, task=None, **extra):
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def log_task_end(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    # Sweep tasks return a summary dict worth keeping in the log
    summary = retval if isinstance(retval, dict) else None
    logger.info(f"Task finished: {task.name} [{task_id}] state={state} summary={summary}")


@task_retry.connect
def log_task_retry(sender=None, request=None, reason=None, **extra):
    logger.warning(f"Task retrying: {sender.name} [{request.id}] - {reason}")


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **extra):
    logger.error(f"Task failed: {sender.name} [{task_id}] - {exception}")


if __name__ == "__main__":
    celery_app.start()
